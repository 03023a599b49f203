import json
from typing import Any, Iterable, Iterator, List, Optional, Tuple

import pytest

from codeforge.llm import ProviderType

_NO_PAYLOAD = object()


class FakeResponse:
    """Stand-in for ``requests.Response`` with canned JSON or streamed lines.

    An exception placed in ``lines`` is raised when iteration reaches it,
    mimicking a connection dropped mid-stream.
    """

    def __init__(
        self,
        status_code: int = 200,
        payload: Any = _NO_PAYLOAD,
        *,
        lines: Optional[Iterable[Any]] = None,
        text: Optional[str] = None,
        reason: str = "OK",
    ) -> None:
        self.status_code = status_code
        self.reason = reason
        self._payload = payload
        self._lines = list(lines or [])
        if text is None:
            text = "" if payload is _NO_PAYLOAD else json.dumps(payload)
        self.text = text
        self.closed = False
        self.lines_read = 0

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    @property
    def content(self) -> bytes:
        return self.text.encode("utf-8")

    def json(self) -> Any:
        if self._payload is _NO_PAYLOAD:
            raise ValueError("No JSON object could be decoded")
        return self._payload

    def iter_lines(self) -> Iterator[Any]:
        for line in self._lines:
            if isinstance(line, Exception):
                raise line
            self.lines_read += 1
            yield line.encode("utf-8") if isinstance(line, str) else line

    def close(self) -> None:
        self.closed = True


class FakeSession:
    """Records outgoing requests and replays queued responses in order."""

    def __init__(self, *responses: Any) -> None:
        self.responses = list(responses)
        self.calls: List[Tuple[str, str, dict]] = []

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append(("POST", url, kwargs))
        return self._next()

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append(("GET", url, kwargs))
        return self._next()

    def _next(self) -> FakeResponse:
        if not self.responses:
            raise AssertionError("FakeSession received an unexpected request")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    @property
    def posts(self) -> List[Tuple[str, dict]]:
        return [(url, kwargs) for method, url, kwargs in self.calls if method == "POST"]


def sse(*payloads: Any, done: bool = True) -> List[str]:
    """Encode payloads as server-sent event lines."""

    lines: List[str] = []
    for payload in payloads:
        data = payload if isinstance(payload, str) else json.dumps(payload)
        lines.extend([f"data: {data}", ""])
    if done:
        lines.append("data: [DONE]")
    return lines


def project_json(*paths: str, folders: Optional[List[str]] = None) -> str:
    return json.dumps(
        {
            "projectName": "demo",
            "description": "Demo project",
            "folders": folders or [],
            "files": [{"path": path, "content": f"// {path}"} for path in paths],
            "suggestedCommands": ["npm install"],
        }
    )


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer credentials and overrides out of the tests."""
    for name in ("LLM_PROVIDER", "LLM_TIMEOUT", "LLM_TEMPERATURE", "LLM_MAX_TOKENS", "OLLAMA_HOST"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.delenv("APP_CONFIG_FILE", raising=False)
    for provider in ProviderType:
        prefix = provider.value.upper()
        for suffix in ("API_KEY", "MODEL", "BASE_URL", "EMBEDDING_MODEL"):
            monkeypatch.delenv(f"{prefix}_{suffix}", raising=False)
