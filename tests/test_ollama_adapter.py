"""Tests for the local Ollama adapter."""

import json

import numpy as np
import pytest
import requests

from codeforge.embedding import FALLBACK_DIMENSION, hashed_embedding
from codeforge.llm import ChatMessage, ErrorKind, ProviderConfig, ProviderType
from codeforge.ollama import OllamaAdapter, OllamaNotRunningError

from conftest import FakeResponse, FakeSession

TAGS = FakeResponse(200, {"models": [{"name": "codellama:latest"}, {"name": "llama3"}]})


def make_adapter(*responses):
    session = FakeSession(*responses)
    config = ProviderConfig(type=ProviderType.OLLAMA, model="codellama")
    return OllamaAdapter(config, session=session), session


def test_needs_no_api_key():
    adapter, _ = make_adapter()

    assert adapter.validate().valid
    assert adapter.base_url == "http://localhost:11434"


def test_not_running_fails_before_chat_request():
    adapter, session = make_adapter(requests.ConnectionError("refused"))

    result = adapter.chat([ChatMessage.user("hi")])

    assert not result.success
    assert result.error_kind is ErrorKind.NOT_RUNNING
    assert "Ollama is not running" in result.error
    assert "ollama pull codellama" in result.error
    assert [method for method, _, _ in session.calls] == ["GET"]
    assert session.calls[0][1] == "http://localhost:11434/api/tags"


def test_probe_rejects_unhealthy_server():
    adapter, _ = make_adapter(FakeResponse(500, text="boom", reason="Server Error"))

    with pytest.raises(OllamaNotRunningError):
        adapter.list_models()


def test_list_models():
    adapter, _ = make_adapter(TAGS)

    assert [model.name for model in adapter.list_models()] == ["codellama:latest", "llama3"]


def test_missing_model_has_pull_hint():
    missing = FakeResponse(404, {"error": "model 'codellama' not found, try pulling it first"})
    adapter, _ = make_adapter(TAGS, missing)

    result = adapter.chat([ChatMessage.user("hi")])

    assert result.error_kind is ErrorKind.MODEL_NOT_FOUND
    assert result.error == 'Model "codellama" not found. Run: ollama pull codellama'


def test_other_server_errors_are_reported():
    adapter, _ = make_adapter(TAGS, FakeResponse(500, {"error": "out of memory"}))

    result = adapter.chat([ChatMessage.user("hi")])

    assert result.error == "Ollama error: out of memory"
    assert result.error_kind is ErrorKind.TRANSPORT


def test_connection_lost_after_probe():
    adapter, _ = make_adapter(TAGS, requests.ConnectionError("reset"))

    result = adapter.chat([ChatMessage.user("hi")])

    assert not result.success
    assert "ollama serve" in result.error


def test_chat_payload_and_token_count():
    reply = FakeResponse(200, {"message": {"content": "hello"}, "prompt_eval_count": 3, "eval_count": 4})
    adapter, session = make_adapter(TAGS, reply)

    result = adapter.chat([ChatMessage.system("sys"), ChatMessage.user("look", image="aW1n")])

    assert result.message == "hello"
    assert result.tokens_used == 7
    url, kwargs = session.posts[0]
    assert url == "http://localhost:11434/api/chat"
    body = kwargs["json"]
    assert body["model"] == "codellama"
    assert body["stream"] is False
    assert body["options"] == {"temperature": 0.7, "num_predict": 16000}
    assert body["messages"][1] == {"role": "user", "content": "look", "images": ["aW1n"]}


def test_message_without_object_shape_is_empty():
    reply = FakeResponse(200, {"message": "hello", "eval_count": "many"})
    adapter, _ = make_adapter(TAGS, reply)

    result = adapter.chat([ChatMessage.user("hi")])

    assert not result.success
    assert result.error_kind is ErrorKind.EMPTY_RESPONSE


def test_ndjson_stream():
    lines = [
        json.dumps({"message": {"content": "Hel"}, "done": False}),
        "garbage",
        json.dumps({"message": {"content": "lo"}, "done": False}),
        json.dumps({"message": {"content": ""}, "done": True, "prompt_eval_count": 2, "eval_count": 5}),
    ]
    response = FakeResponse(200, lines=lines)
    adapter, session = make_adapter(TAGS, response)
    deltas = []

    result = adapter.stream_chat([ChatMessage.user("hi")], deltas.append)

    assert deltas == ["Hel", "lo"]
    assert result.message == "Hello"
    assert result.tokens_used == 7
    assert response.closed
    assert session.posts[0][1]["json"]["stream"] is True


def test_error_inside_stream_fails_the_call():
    lines = [json.dumps({"message": {"content": "a"}}), json.dumps({"error": "model crashed"})]
    adapter, _ = make_adapter(TAGS, FakeResponse(200, lines=lines))
    deltas = []

    result = adapter.stream_chat([ChatMessage.user("hi")], deltas.append)

    assert deltas == ["a"]
    assert not result.success
    assert result.error == "Ollama error: model crashed"


def test_remote_embeddings():
    adapter, session = make_adapter(FakeResponse(200, {"embedding": [0.5, 0.25]}))

    assert adapter.get_embeddings("text") == [0.5, 0.25]
    url, kwargs = session.posts[0]
    assert url == "http://localhost:11434/api/embeddings"
    assert kwargs["json"] == {"model": "nomic-embed-text", "prompt": "text"}


def test_embedding_fallback_when_unreachable():
    adapter, _ = make_adapter(requests.ConnectionError("refused"), requests.ConnectionError("refused"))

    first = adapter.get_embeddings("def add(a, b): return a + b")
    second = adapter.get_embeddings("def add(a, b): return a + b")

    assert first == second
    assert first == hashed_embedding("def add(a, b): return a + b")
    assert len(first) == FALLBACK_DIMENSION
    assert np.linalg.norm(first) == pytest.approx(1.0)


def test_embedding_fallback_on_server_error():
    adapter, _ = make_adapter(FakeResponse(404, {"error": "model not found"}))

    vector = adapter.get_embeddings("hello world")

    assert vector == hashed_embedding("hello world")
