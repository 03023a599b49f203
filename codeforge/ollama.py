"""Adapter for a local Ollama server."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional

import requests

from .base import BackendAdapter, Completion
from .embedding import hashed_embedding
from .llm import (
    ChatMessage,
    ErrorKind,
    ModelClientError,
    ModelConnectionError,
    ModelNotFoundError,
    ModelResponseError,
    ProviderType,
)
from .logging import get_logger
from .streaming import Line, StreamEvent, iter_ndjson

LOGGER = get_logger(__name__)

PROBE_TIMEOUT = 5.0

NOT_RUNNING_MESSAGE = (
    "Ollama is not running. Please start Ollama first.\n\n"
    "Install from: https://ollama.ai\n"
    "Then run: ollama pull {model}"
)
CANNOT_CONNECT_MESSAGE = (
    "Cannot connect to Ollama. Make sure Ollama is running.\n\nStart with: ollama serve"
)


class OllamaClientError(ModelClientError):
    """Base exception raised for Ollama errors."""


class OllamaConnectionError(OllamaClientError, ModelConnectionError):
    """Raised when the Ollama HTTP API cannot be reached mid-request."""


class OllamaNotRunningError(OllamaConnectionError):
    """Raised when the pre-flight probe finds no Ollama server."""

    kind = ErrorKind.NOT_RUNNING


class OllamaModelNotFoundError(OllamaClientError, ModelNotFoundError):
    """Raised when the requested model is not pulled on the Ollama host."""


@dataclass
class OllamaModel:
    name: str


def _token_count(payload: Dict[str, Any]) -> Optional[int]:
    prompt = payload.get("prompt_eval_count")
    generated = payload.get("eval_count")
    counts = [value for value in (prompt, generated) if isinstance(value, int)]
    return sum(counts) if counts else None


def _message_text(payload: Dict[str, Any]) -> str:
    message = payload.get("message")
    content = message.get("content") if isinstance(message, dict) else None
    return content if isinstance(content, str) else ""


def _ollama_error(response: requests.Response, error_text: str) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict) and payload.get("error"):
        return str(payload["error"])
    return error_text.strip() or str(response.reason)


class OllamaAdapter(BackendAdapter):
    provider_type = ProviderType.OLLAMA
    label = "Ollama"

    # ------------------------------------------------------------------
    # Model discovery helpers
    # ------------------------------------------------------------------
    def list_models(self) -> List[OllamaModel]:
        url = f"{self.base_url}/api/tags"
        try:
            response = self._session.get(url, timeout=PROBE_TIMEOUT)
        except requests.RequestException as exc:
            raise OllamaNotRunningError(NOT_RUNNING_MESSAGE.format(model=self.model)) from exc

        if not response.ok:
            raise OllamaNotRunningError(NOT_RUNNING_MESSAGE.format(model=self.model))

        payload = self._json(response)
        models = payload.get("models") or []
        return [
            OllamaModel(name=str(model["name"]))
            for model in models
            if isinstance(model, dict) and model.get("name")
        ]

    def _probe(self) -> None:
        models = self.list_models()
        LOGGER.debug("Ollama is up with %s model(s) installed", len(models))

    # ------------------------------------------------------------------
    # Chat interaction
    # ------------------------------------------------------------------
    def _serialize(self, message: ChatMessage) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"role": message.role, "content": message.content}
        if message.image:
            payload["images"] = [message.image]
        return payload

    def _payload(self, messages: List[ChatMessage], *, stream: bool) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": [self._serialize(message) for message in messages],
            "stream": stream,
            "options": {
                "temperature": self.generation.temperature,
                "num_predict": self.generation.max_tokens,
            },
        }

    def _send(self, messages: List[ChatMessage], *, stream: bool) -> requests.Response:
        self._probe()
        try:
            response = self._post(
                f"{self.base_url}/api/chat", self._payload(messages, stream=stream), stream=stream
            )
        except requests.Timeout:
            raise
        except requests.ConnectionError as exc:
            raise OllamaConnectionError(CANNOT_CONNECT_MESSAGE) from exc
        self._check(response)
        return response

    def _check(self, response: requests.Response) -> None:
        if response.ok:
            return
        error_text = response.text or ""
        message = _ollama_error(response, error_text)
        response.close()
        if response.status_code == 404 or "not found" in error_text:
            raise OllamaModelNotFoundError(
                f'Model "{self.model}" not found. Run: ollama pull {self.model}'
            )
        raise OllamaClientError(f"Ollama error: {message}")

    def _complete(self, messages: List[ChatMessage]) -> Completion:
        response = self._send(messages, stream=False)
        data = self._json(response)
        return Completion(text=_message_text(data), tokens_used=_token_count(data))

    def _open_stream(self, messages: List[ChatMessage]) -> requests.Response:
        return self._send(messages, stream=True)

    def _decode_stream(self, lines: Iterable[Line]) -> Iterator[StreamEvent]:
        for payload in iter_ndjson(lines):
            if payload.get("error"):
                raise OllamaClientError(f"Ollama error: {payload['error']}")
            text = _message_text(payload)
            if payload.get("done"):
                yield StreamEvent(text=text, tokens_used=_token_count(payload))
                return
            yield StreamEvent(text=text)

    # ------------------------------------------------------------------
    # Embeddings
    # ------------------------------------------------------------------
    def get_embeddings(self, text: str) -> List[float]:
        """Embed remotely, or locally with the hashed fallback when Ollama is unavailable."""

        try:
            return super().get_embeddings(text)
        except ModelClientError as exc:
            LOGGER.warning("Ollama embeddings unavailable, using hashed fallback: %s", exc)
            return hashed_embedding(text)

    def _embed(self, text: str) -> List[float]:
        response = self._post(
            f"{self.base_url}/api/embeddings", {"model": self.embedding_model, "prompt": text}
        )
        if not response.ok:
            raise OllamaClientError(f"Ollama embedding failed: {self._error_message(response)}")
        vector = self._json(response).get("embedding")
        if not vector or not isinstance(vector, list):
            raise ModelResponseError("No embedding returned by Ollama")
        return [float(value) for value in vector]
