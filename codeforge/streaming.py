"""Line decoders for streamed completions and the delta channel built on them."""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Iterable, Iterator, List, Optional, Sequence, Union

import requests

from .llm import ChatMessage, ErrorKind, ModelClientError, ProviderResult
from .logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - import for type checkers only
    from .base import BackendAdapter


LOGGER = get_logger(__name__)

CANCEL_POLL_INTERVAL = 0.05

Line = Union[str, bytes, None]


@dataclass
class StreamEvent:
    """One decoded unit of a streamed response."""

    text: str = ""
    tokens_used: Optional[int] = None


def _decode_line(raw: Line) -> Optional[str]:
    if raw is None:
        return None
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    return raw.rstrip("\r")


def iter_sse_data(lines: Iterable[Line]) -> Iterator[str]:
    """Yield the payload of every ``data:`` line of a server-sent event stream."""

    for raw in lines:
        line = _decode_line(raw)
        if not line or not line.startswith("data:"):
            continue
        data = line[5:]
        if data.startswith(" "):
            data = data[1:]
        yield data


def iter_sse_json(lines: Iterable[Line], *, terminator: Optional[str] = "[DONE]") -> Iterator[Dict[str, Any]]:
    """Decode SSE ``data:`` payloads as JSON objects, stopping at *terminator*."""

    for data in iter_sse_data(lines):
        if terminator is not None and data.strip() == terminator:
            return
        try:
            payload = json.loads(data)
        except ValueError:
            LOGGER.debug("Skipping malformed SSE payload: %r", data[:120])
            continue
        if isinstance(payload, dict):
            yield payload


def iter_ndjson(lines: Iterable[Line]) -> Iterator[Dict[str, Any]]:
    """Decode newline-delimited JSON, skipping blank and malformed lines."""

    for raw in lines:
        line = _decode_line(raw)
        if not line or not line.strip():
            continue
        try:
            payload = json.loads(line)
        except ValueError:
            LOGGER.debug("Skipping malformed NDJSON line: %r", line[:120])
            continue
        if isinstance(payload, dict):
            yield payload


class DeltaStream:
    """Pull-based channel of text deltas for a single streaming call.

    The HTTP request is issued when iteration starts. The response body is
    released when the stream is exhausted, fails, is abandoned, or is
    cancelled, whichever comes first. Failures never escape iteration; they
    are reported by :meth:`result`.
    """

    def __init__(
        self,
        adapter: "BackendAdapter",
        messages: Sequence[ChatMessage],
        *,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        self._adapter = adapter
        self._messages = list(messages)
        self._cancel = cancel or threading.Event()
        self._lock = threading.Lock()
        self._response: Optional[requests.Response] = None
        self._iterator: Optional[Iterator[str]] = None
        self._parts: List[str] = []
        self._tokens_used: Optional[int] = None
        self._failure: Optional[ProviderResult] = None
        self._finished = False
        self._done = threading.Event()

    def __iter__(self) -> Iterator[str]:
        if self._iterator is not None:
            raise RuntimeError("A DeltaStream can only be iterated once.")
        self._iterator = self._generate()
        return self._iterator

    def __enter__(self) -> "DeltaStream":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    @property
    def text(self) -> str:
        return "".join(self._parts)

    def cancel(self) -> None:
        """Stop the stream and release the response body, even mid-read."""

        self._cancel.set()
        self.close()

    def close(self) -> None:
        with self._lock:
            response, self._response = self._response, None
        if response is not None:
            response.close()

    def result(self) -> ProviderResult:
        """Drain the stream if needed and return the final outcome."""

        if self._iterator is None:
            for _ in self:
                pass
        elif not self._finished:
            self._iterator.close()

        if self._failure is not None:
            return self._failure
        if not self._finished:
            return ProviderResult.failure(
                f"{self._adapter.name} stream cancelled", ErrorKind.CANCELLED
            )
        return self._adapter._finish(self.text, self._tokens_used, streamed=True)

    def _generate(self) -> Iterator[str]:
        validation = self._adapter.validate()
        if not validation.valid:
            self._failure = ProviderResult.failure(
                validation.error or f"{self._adapter.name} is not configured",
                ErrorKind.CONFIGURATION,
            )
            return

        try:
            if self.cancelled:
                return
            response = self._adapter._open_stream(self._messages)
            with self._lock:
                self._response = response
            watcher = threading.Thread(
                target=self._watch_cancel, name="delta-stream-cancel", daemon=True
            )
            watcher.start()
            for event in self._adapter._decode_stream(response.iter_lines()):
                if self.cancelled:
                    return
                if event.tokens_used is not None:
                    self._tokens_used = event.tokens_used
                if event.text:
                    self._parts.append(event.text)
                    yield event.text
            self._finished = not self.cancelled
        except (ModelClientError, requests.RequestException) as exc:
            if not self.cancelled:
                self._failure = self._adapter._failure(exc, streaming=True)
        except (AttributeError, ValueError, OSError):
            # cancellation closes the body underneath a blocked read.
            if not self.cancelled:
                raise
        finally:
            self._done.set()
            self.close()

    def _watch_cancel(self) -> None:
        # An external cancel event cannot interrupt a blocked read by itself.
        while not self._done.wait(CANCEL_POLL_INTERVAL):
            if self._cancel.is_set():
                self.close()
                return
