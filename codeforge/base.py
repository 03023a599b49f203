"""Uniform contract shared by every backend adapter."""

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence

import requests

from .config import GenerationConfig
from .llm import (
    PROVIDER_INFO,
    ChatMessage,
    ConversationalReply,
    ErrorKind,
    ModelClientError,
    ModelConfigurationError,
    ModelConnectionError,
    ModelResponseError,
    ModelTimeoutError,
    ProviderConfig,
    ProviderInfo,
    ProviderResult,
    ProviderType,
    StructuredReply,
    ValidationResult,
)
from .logging import get_logger
from .parser import StructuredOutputParser
from .streaming import DeltaStream, Line, StreamEvent

LOGGER = get_logger(__name__)

OnDelta = Callable[[str], None]

SYSTEM_PROMPT = """You are an expert software engineer and code generator. Your task is to generate complete, production-ready project structures based on user descriptions.

CRITICAL RULES:
1. Return ONLY valid JSON, no markdown, no explanations, no code blocks
2. Use the exact JSON structure specified
3. Generate complete, working code - no placeholders or TODOs
4. Include all necessary imports and dependencies
5. Follow best practices for the chosen technology stack
6. Include proper error handling and validation
7. Add helpful comments in the code

JSON OUTPUT FORMAT (follow exactly):
{
  "projectName": "project-name",
  "description": "Brief description of what was generated",
  "folders": [
    "src",
    "src/components",
    "src/utils"
  ],
  "files": [
    {
      "path": "src/index.js",
      "content": "// actual code here"
    }
  ],
  "suggestedCommands": [
    "npm install",
    "npm start"
  ]
}"""

USER_PROMPT_TEMPLATE = """Generate a complete project for the following task:

{task}

Remember:
- Return ONLY the JSON object
- Include ALL necessary files
- Write complete, working code
- No placeholders or TODOs"""


def build_generation_messages(task_description: str) -> List[ChatMessage]:
    return [
        ChatMessage.system(SYSTEM_PROMPT),
        ChatMessage.user(USER_PROMPT_TEMPLATE.format(task=task_description)),
    ]


@dataclass
class Completion:
    text: str
    tokens_used: Optional[int] = None


class BackendAdapter(ABC):
    """Base class implementing the parts of the contract every backend shares.

    Subclasses describe the wire format: how a blocking completion is issued,
    how a streaming response is opened and decoded, and how embeddings are
    requested. The public methods here turn every failure into a
    :class:`ProviderResult` so callers never have to catch transport errors.
    """

    provider_type: ClassVar[ProviderType]
    label: ClassVar[str]
    missing_key_message: ClassVar[str] = ""

    def __init__(
        self,
        config: ProviderConfig,
        *,
        generation: Optional[GenerationConfig] = None,
        session: Optional[requests.Session] = None,
        parser: Optional[StructuredOutputParser] = None,
    ) -> None:
        self.config = config
        self.generation = generation or GenerationConfig()
        self._session = session or requests.Session()
        self._parser = parser or StructuredOutputParser()

    # ------------------------------------------------------------------
    # Descriptive helpers
    # ------------------------------------------------------------------
    @property
    def info(self) -> ProviderInfo:
        return PROVIDER_INFO[self.provider_type]

    @property
    def name(self) -> str:
        return self.info.name

    @property
    def model(self) -> str:
        return self.config.model or self.info.default_model

    @property
    def base_url(self) -> str:
        return (self.config.base_url or self.info.default_base_url).rstrip("/")

    @property
    def embedding_model(self) -> str:
        return self.config.embedding_model or self.info.default_embedding_model

    # ------------------------------------------------------------------
    # Public contract
    # ------------------------------------------------------------------
    def validate(self) -> ValidationResult:
        if self.info.requires_api_key and not self.config.api_key:
            return ValidationResult(valid=False, error=self.missing_key_message)
        return ValidationResult(valid=True)

    def chat(self, messages: Sequence[ChatMessage]) -> ProviderResult:
        validation = self.validate()
        if not validation.valid:
            return ProviderResult.failure(validation.error or "", ErrorKind.CONFIGURATION)

        try:
            completion = self._complete(list(messages))
        except (ModelClientError, requests.RequestException) as exc:
            return self._failure(exc)

        if not completion.text:
            return ProviderResult.failure(
                f"No response content from {self.label}", ErrorKind.EMPTY_RESPONSE
            )
        return self._finish(completion.text, completion.tokens_used)

    def stream(
        self, messages: Sequence[ChatMessage], *, cancel: Optional[threading.Event] = None
    ) -> DeltaStream:
        return DeltaStream(self, messages, cancel=cancel)

    def stream_chat(
        self,
        messages: Sequence[ChatMessage],
        on_delta: OnDelta,
        *,
        cancel: Optional[threading.Event] = None,
    ) -> ProviderResult:
        with self.stream(messages, cancel=cancel) as stream:
            for delta in stream:
                on_delta(delta)
            return stream.result()

    def get_embeddings(self, text: str) -> List[float]:
        validation = self.validate()
        if not validation.valid:
            raise ModelConfigurationError(validation.error or "")
        try:
            return self._embed(text)
        except requests.Timeout as exc:
            raise ModelTimeoutError(
                f"{self.label} embedding request timed out after {self.generation.timeout:g} seconds"
            ) from exc
        except requests.RequestException as exc:
            raise ModelConnectionError(f"{self.label} embedding request failed: {exc}") from exc

    def generate_project(
        self,
        task_description: str,
        *,
        stream: bool = False,
        on_delta: Optional[OnDelta] = None,
    ) -> ProviderResult:
        messages = build_generation_messages(task_description)
        if stream:
            return self.stream_chat(messages, on_delta or (lambda _delta: None))
        return self.chat(messages)

    # ------------------------------------------------------------------
    # Backend specifics
    # ------------------------------------------------------------------
    @abstractmethod
    def _complete(self, messages: List[ChatMessage]) -> Completion:
        """Issue one blocking completion request."""

    @abstractmethod
    def _open_stream(self, messages: List[ChatMessage]) -> requests.Response:
        """Start a streaming request and return the open, successful response."""

    @abstractmethod
    def _decode_stream(self, lines: Iterable[Line]) -> Iterator[StreamEvent]:
        """Turn raw response lines into stream events."""

    @abstractmethod
    def _embed(self, text: str) -> List[float]:
        """Request an embedding vector for *text*."""

    # ------------------------------------------------------------------
    # Shared plumbing
    # ------------------------------------------------------------------
    def _finish(
        self, text: str, tokens_used: Optional[int], *, streamed: bool = False
    ) -> ProviderResult:
        parsed = self._parser.parse(text)
        if parsed.success and parsed.data is not None:
            LOGGER.info(
                "%s returned a project with %s file(s)%s",
                self.name,
                len(parsed.data.files),
                " (streamed)" if streamed else "",
            )
            return ProviderResult.ok(StructuredReply(parsed.data), tokens_used=tokens_used)
        LOGGER.debug("Treating %s reply as conversational: %s", self.name, parsed.error)
        return ProviderResult.ok(ConversationalReply(text), tokens_used=tokens_used)

    def _failure(self, exc: Exception, *, streaming: bool = False) -> ProviderResult:
        if isinstance(exc, ModelClientError):
            result = ProviderResult.failure(str(exc), exc.kind)
        elif isinstance(exc, requests.Timeout):
            result = ProviderResult.failure(
                f"{self.label} request timed out after {self.generation.timeout:g} seconds",
                ErrorKind.TIMEOUT,
            )
        else:
            action = "streaming failed" if streaming else "request failed"
            result = ProviderResult.failure(f"{self.label} {action}: {exc}", ErrorKind.TRANSPORT)
        LOGGER.warning("%s call failed: %s", self.name, result.error)
        return result

    def _post(
        self,
        url: str,
        payload: Mapping[str, Any],
        *,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, str]] = None,
        stream: bool = False,
    ) -> requests.Response:
        """POST *payload* as JSON.

        Blocking calls read the whole body before returning, under one overall
        deadline of ``generation.timeout`` seconds. Streaming calls return as
        soon as the headers arrive and leave the body to the caller.
        """

        LOGGER.debug("POST %s model=%s stream=%s", url, payload.get("model", self.model), stream)
        deadline = time.monotonic() + self.generation.timeout
        response = self._session.post(
            url,
            json=payload,
            headers={"Content-Type": "application/json", **(headers or {})},
            params=params,
            timeout=self.generation.timeout,
            stream=True,
        )
        if not stream:
            self._read_body(response, deadline)
        return response

    def _read_body(self, response: requests.Response, deadline: float) -> None:
        # requests bounds each socket read, not the whole body; the timer
        # closes the response underneath a read that outlives the deadline.
        expired = threading.Event()

        def abort() -> None:
            expired.set()
            response.close()

        timer = threading.Timer(max(deadline - time.monotonic(), 0.0), abort)
        timer.daemon = True
        timer.start()
        try:
            body = response.content
        except (requests.RequestException, AttributeError, ValueError, OSError):
            if not expired.is_set():
                raise
            body = b""
        finally:
            timer.cancel()

        if expired.is_set():
            raise ModelTimeoutError(
                f"{self.label} request timed out after {self.generation.timeout:g} seconds"
            )
        LOGGER.debug("Read %s byte(s) from %s", len(body or b""), self.name)

    def _ensure_ok(self, response: requests.Response) -> None:
        if response.ok:
            return
        message = self._error_message(response)
        response.close()
        raise ModelClientError(f"{self.label} API error: {message}")

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            error = payload.get("error")
            if isinstance(error, dict) and error.get("message"):
                return str(error["message"])
            if isinstance(error, str) and error:
                return error
        return f"HTTP {response.status_code}: {response.reason}"

    def _json(self, response: requests.Response) -> Dict[str, Any]:
        try:
            payload = response.json()
        except ValueError as exc:
            raise ModelResponseError(f"{self.label} returned invalid JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise ModelResponseError(f"{self.label} returned an unexpected JSON payload.")
        return payload
