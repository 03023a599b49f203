"""Tests for the chat session history handling."""

import json

from codeforge.chat import ChatSession, encode_image, render_structure
from codeforge.llm import ProviderConfig, ProviderType
from codeforge.openai_client import OpenAIAdapter

from conftest import FakeResponse, FakeSession, project_json, sse


def completion(content):
    return FakeResponse(200, {"choices": [{"message": {"content": content}}]})


def make_session(*responses, stream=False):
    session = FakeSession(*responses)
    adapter = OpenAIAdapter(
        ProviderConfig(type=ProviderType.OPENAI, model="gpt-4o-mini", api_key="sk"), session=session
    )
    return ChatSession(adapter, stream=stream), session


def test_history_accumulates_turns():
    chat, http = make_session(completion("Hi there!"), completion("Sure."))

    chat.ask("hello")
    chat.ask("can you help?")

    assert [message.role for message in chat.history] == ["system", "user", "assistant", "user", "assistant"]
    assert chat.history[2].content == "Hi there!"
    second_request = http.posts[1][1]["json"]["messages"]
    assert [message["content"] for message in second_request[1:]] == ["hello", "Hi there!", "can you help?"]


def test_failed_turn_is_not_recorded():
    chat, _ = make_session(FakeResponse(500, {"error": {"message": "overloaded"}}))

    result = chat.ask("hello")

    assert not result.success
    assert [message.role for message in chat.history] == ["system"]


def test_structured_reply_is_stored_as_json():
    chat, _ = make_session(completion("```json\n" + project_json("index.js") + "\n```"))

    result = chat.ask("make an app")

    assert result.project_structure is not None
    stored = json.loads(chat.history[-1].content)
    assert stored["files"][0]["path"] == "index.js"


def test_streaming_session_forwards_deltas():
    lines = sse({"choices": [{"delta": {"content": "Hel"}}]}, {"choices": [{"delta": {"content": "lo"}}]})
    chat, _ = make_session(FakeResponse(200, lines=lines), stream=True)
    deltas = []

    result = chat.ask("hi", on_delta=deltas.append)

    assert deltas == ["Hel", "lo"]
    assert result.message == "Hello"
    assert chat.history[-1].content == "Hello"


def test_image_is_attached_to_the_user_turn(tmp_path):
    image = tmp_path / "shot.jpg"
    image.write_bytes(b"\xff\xd8\xff")
    chat, http = make_session(completion("A screenshot."))

    chat.ask("what is this?", image=encode_image(image))

    content = http.posts[0][1]["json"]["messages"][-1]["content"]
    assert content[1]["image_url"]["url"] == "data:image/jpeg;base64,/9j/"


def test_render_structure_lists_files():
    chat, _ = make_session(completion(project_json("a.py", "b.py")))
    structure = chat.ask("two files").project_structure

    table = render_structure(structure)

    assert table.row_count == 2
    assert table.title == "demo"
