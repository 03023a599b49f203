"""Tests for the OpenAI-compatible adapters (OpenAI and Groq)."""

import time

import pytest
import requests

from codeforge.config import GenerationConfig
from codeforge.gateway import resolve
from codeforge.groq import GroqAdapter
from codeforge.llm import (
    ChatMessage,
    ErrorKind,
    ModelClientError,
    ModelConfigurationError,
    ProviderConfig,
    ProviderType,
)
from codeforge.openai_client import OpenAIAdapter

from conftest import FakeResponse, FakeSession, project_json, sse


def completion(content, total_tokens=None):
    payload = {"choices": [{"message": {"role": "assistant", "content": content}}]}
    if total_tokens is not None:
        payload["usage"] = {"total_tokens": total_tokens}
    return FakeResponse(200, payload)


def make_adapter(*responses, api_key="sk-test"):
    session = FakeSession(*responses)
    config = ProviderConfig(type=ProviderType.OPENAI, model="gpt-4o-mini", api_key=api_key)
    return OpenAIAdapter(config, session=session), session


def test_generate_project_returns_structure_and_usage():
    adapter, session = make_adapter(completion(project_json("src/index.ts"), total_tokens=42))

    result = adapter.generate_project("A TypeScript hello world")

    assert result.success
    assert result.tokens_used == 42
    assert [item.path for item in result.project_structure.files] == ["src/index.ts"]
    assert result.message is None

    url, kwargs = session.posts[0]
    assert url == "https://api.openai.com/v1/chat/completions"
    assert kwargs["headers"]["Authorization"] == "Bearer sk-test"
    assert kwargs["headers"]["Content-Type"] == "application/json"
    assert kwargs["timeout"] == 120.0
    body = kwargs["json"]
    assert body["model"] == "gpt-4o-mini"
    assert body["temperature"] == 0.7
    assert body["max_tokens"] == 16000
    assert "stream" not in body
    assert [message["role"] for message in body["messages"]] == ["system", "user"]
    assert "A TypeScript hello world" in body["messages"][1]["content"]


def test_plain_answer_is_conversational():
    adapter, _ = make_adapter(completion("Hello! How can I help?"))

    result = adapter.chat([ChatMessage.user("hi")])

    assert result.success
    assert result.message == "Hello! How can I help?"
    assert result.project_structure is None
    assert result.tokens_used is None


def test_missing_api_key_fails_without_network():
    adapter, session = make_adapter(api_key=None)

    result = adapter.chat([ChatMessage.user("hi")])

    assert not result.success
    assert result.error_kind is ErrorKind.CONFIGURATION
    assert "OPENAI_API_KEY" in result.error
    assert session.calls == []


def test_api_error_message_is_surfaced():
    error = FakeResponse(401, {"error": {"message": "Incorrect API key provided"}}, reason="Unauthorized")
    adapter, _ = make_adapter(error)

    result = adapter.chat([ChatMessage.user("hi")])

    assert not result.success
    assert result.error == "OpenAI API error: Incorrect API key provided"
    assert result.error_kind is ErrorKind.TRANSPORT
    assert error.closed


def test_api_error_without_body_uses_status():
    adapter, _ = make_adapter(FakeResponse(502, text="<html>", reason="Bad Gateway"))

    result = adapter.chat([ChatMessage.user("hi")])

    assert result.error == "OpenAI API error: HTTP 502: Bad Gateway"


def test_empty_content_is_reported():
    adapter, _ = make_adapter(completion(""))

    result = adapter.chat([ChatMessage.user("hi")])

    assert not result.success
    assert result.error == "No response content from OpenAI"
    assert result.error_kind is ErrorKind.EMPTY_RESPONSE


def test_timeout_is_classified():
    adapter, _ = make_adapter(requests.Timeout("read timed out"))

    result = adapter.chat([ChatMessage.user("hi")])

    assert not result.success
    assert result.error_kind is ErrorKind.TIMEOUT
    assert result.error == "OpenAI request timed out after 120 seconds"


class TricklingResponse(FakeResponse):
    """Body that keeps arriving until the connection is closed underneath it."""

    @property
    def content(self):
        for _ in range(500):
            if self.closed:
                raise AttributeError("'NoneType' object has no attribute 'read'")
            time.sleep(0.01)
        return super().content


def test_slow_body_is_aborted_at_the_overall_deadline():
    response = TricklingResponse(200, {"choices": [{"message": {"content": "late"}}]})
    session = FakeSession(response)
    config = ProviderConfig(type=ProviderType.OPENAI, model="gpt-4o-mini", api_key="k")
    adapter = OpenAIAdapter(config, generation=GenerationConfig(timeout=0.2), session=session)

    started = time.monotonic()
    result = adapter.chat([ChatMessage.user("hi")])

    assert time.monotonic() - started < 2.0
    assert not result.success
    assert result.error_kind is ErrorKind.TIMEOUT
    assert result.error == "OpenAI request timed out after 0.2 seconds"
    assert response.closed


def test_body_within_deadline_is_not_closed_early():
    response = completion("on time")
    adapter, session = make_adapter(response)

    result = adapter.chat([ChatMessage.user("hi")])

    assert result.message == "on time"
    assert not response.closed
    assert session.posts[0][1]["stream"] is True


def test_unexpected_field_shapes_do_not_raise():
    payload = {"choices": [{"message": "text"}], "usage": 5}
    adapter, _ = make_adapter(FakeResponse(200, payload))

    result = adapter.chat([ChatMessage.user("hi")])

    assert not result.success
    assert result.error_kind is ErrorKind.EMPTY_RESPONSE
    assert result.tokens_used is None


def test_deeply_nested_reply_is_conversational():
    content = '{"a":' + "[" * 100000 + "]" * 100000 + "}"
    adapter, _ = make_adapter(completion(content))

    result = adapter.chat([ChatMessage.user("hi")])

    assert result.success
    assert result.project_structure is None
    assert result.message == content


def test_custom_generation_settings_reach_the_wire():
    session = FakeSession(completion("ok"))
    config = ProviderConfig(type=ProviderType.OPENAI, model="gpt-4o", api_key="k")
    generation = GenerationConfig(temperature=0.1, max_tokens=512, timeout=5.0)
    adapter = OpenAIAdapter(config, generation=generation, session=session)

    adapter.chat([ChatMessage.user("hi")])

    _, kwargs = session.posts[0]
    assert kwargs["json"]["temperature"] == 0.1
    assert kwargs["json"]["max_tokens"] == 512
    assert kwargs["timeout"] == 5.0


def test_image_is_sent_as_data_url():
    adapter, session = make_adapter(completion("A cat."))

    adapter.chat([ChatMessage.user("What is this?", image="aW1n")])

    message = session.posts[0][1]["json"]["messages"][0]
    assert message["content"][0] == {"type": "text", "text": "What is this?"}
    assert message["content"][1]["image_url"]["url"] == "data:image/jpeg;base64,aW1n"


def test_streaming_yields_deltas_in_order():
    lines = sse(
        {"choices": [{"delta": {"role": "assistant"}}]},
        {"choices": [{"delta": {"content": "Hel"}}]},
        {"choices": [{"delta": {"content": "lo"}}]},
        {"choices": [{"delta": {}}], "usage": {"total_tokens": 9}},
    )
    response = FakeResponse(200, lines=lines)
    adapter, session = make_adapter(response)
    deltas = []

    result = adapter.stream_chat([ChatMessage.user("hi")], deltas.append)

    assert deltas == ["Hel", "lo"]
    assert result.success
    assert result.message == "Hello"
    assert result.tokens_used == 9
    assert response.closed
    _, kwargs = session.posts[0]
    assert kwargs["stream"] is True
    assert kwargs["json"]["stream"] is True


def test_streamed_project_is_parsed_at_the_end():
    text = project_json("main.py")
    lines = sse(*({"choices": [{"delta": {"content": part}}]} for part in (text[:10], text[10:])))
    adapter, _ = make_adapter(FakeResponse(200, lines=lines))

    result = adapter.generate_project("python script", stream=True)

    assert result.success
    assert result.project_structure.files[0].path == "main.py"


def test_streaming_http_error_is_a_failure():
    error = FakeResponse(429, {"error": {"message": "Rate limit reached"}}, reason="Too Many Requests")
    adapter, _ = make_adapter(error)
    deltas = []

    result = adapter.stream_chat([ChatMessage.user("hi")], deltas.append)

    assert deltas == []
    assert not result.success
    assert result.error == "OpenAI API error: Rate limit reached"


def test_embeddings():
    adapter, session = make_adapter(FakeResponse(200, {"data": [{"embedding": [0.25, -0.5]}]}))

    assert adapter.get_embeddings("hello") == [0.25, -0.5]
    url, kwargs = session.posts[0]
    assert url == "https://api.openai.com/v1/embeddings"
    assert kwargs["json"] == {"model": "text-embedding-3-small", "input": "hello"}


def test_embedding_failure_raises():
    adapter, _ = make_adapter(FakeResponse(400, {"error": {"message": "bad input"}}))

    with pytest.raises(ModelClientError, match="OpenAI embedding failed: bad input"):
        adapter.get_embeddings("hello")


def test_embedding_without_key_raises_configuration_error():
    adapter, session = make_adapter(api_key=None)

    with pytest.raises(ModelConfigurationError):
        adapter.get_embeddings("hello")
    assert session.calls == []


def test_groq_uses_its_own_endpoint_and_defaults():
    session = FakeSession(completion("hi"))
    adapter = resolve("groq", {"apiKey": "gsk-test"}, session=session)

    result = adapter.chat([ChatMessage.user("hi")])

    assert isinstance(adapter, GroqAdapter)
    assert result.success
    url, kwargs = session.posts[0]
    assert url == "https://api.groq.com/openai/v1/chat/completions"
    assert kwargs["json"]["model"] == "llama-3.3-70b-versatile"
    assert kwargs["headers"]["Authorization"] == "Bearer gsk-test"


def test_groq_error_is_labelled():
    session = FakeSession(FakeResponse(401, {"error": {"message": "Invalid API Key"}}))
    adapter = resolve("groq", {"apiKey": "gsk-test"}, session=session)

    result = adapter.chat([ChatMessage.user("hi")])

    assert result.error == "Groq API error: Invalid API Key"


def test_groq_requires_key():
    adapter = resolve("groq", session=FakeSession())

    validation = adapter.validate()

    assert not validation.valid
    assert "console.groq.com" in validation.error
