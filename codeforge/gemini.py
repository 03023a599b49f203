"""Adapter for the Google Gemini ``generativelanguage`` REST API."""

from __future__ import annotations

from typing import Any, Dict, Iterable, Iterator, List, Optional

import requests

from .base import BackendAdapter, Completion
from .llm import ChatMessage, ModelClientError, ModelResponseError, ProviderType
from .streaming import Line, StreamEvent, iter_sse_json


def to_gemini_contents(messages: Iterable[ChatMessage], *, image_mime_type: str = "image/jpeg") -> List[Dict[str, Any]]:
    """Convert chat messages to Gemini ``contents``.

    Gemini has no system role: system text is prepended to the next user turn,
    assistant turns become ``model`` turns and images travel as inline data.
    """

    contents: List[Dict[str, Any]] = []
    pending_system = ""

    for message in messages:
        if message.role == "system":
            pending_system += message.content + "\n\n"
        elif message.role == "user":
            parts: List[Dict[str, Any]] = [{"text": pending_system + message.content}]
            if message.image:
                parts.append({"inlineData": {"mimeType": image_mime_type, "data": message.image}})
            contents.append({"role": "user", "parts": parts})
            pending_system = ""
        elif message.role == "assistant":
            contents.append({"role": "model", "parts": [{"text": message.content}]})

    if pending_system:
        contents.append({"role": "user", "parts": [{"text": pending_system.rstrip()}]})
    return contents


def _candidate_text(payload: Dict[str, Any]) -> str:
    candidates = payload.get("candidates")
    if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
        return ""
    content = candidates[0].get("content")
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list):
        return ""
    return "".join(str(part.get("text", "")) for part in parts if isinstance(part, dict))


def _total_tokens(payload: Dict[str, Any]) -> Optional[int]:
    usage = payload.get("usageMetadata")
    if isinstance(usage, dict) and isinstance(usage.get("totalTokenCount"), int):
        return usage["totalTokenCount"]
    return None


class GeminiAdapter(BackendAdapter):
    provider_type = ProviderType.GEMINI
    label = "Gemini"
    missing_key_message = (
        "Gemini API key is required. Get a free key at aistudio.google.com and set "
        "GEMINI_API_KEY or gemini.api_key in config.yaml."
    )

    # Gemini only accepts the key as a query parameter; it is never logged.
    def _params(self, **extra: str) -> Dict[str, str]:
        return {**extra, "key": str(self.config.api_key)}

    def _payload(self, messages: List[ChatMessage]) -> Dict[str, Any]:
        return {
            "contents": to_gemini_contents(messages),
            "generationConfig": {
                "temperature": self.generation.temperature,
                "maxOutputTokens": self.generation.max_tokens,
            },
        }

    def _complete(self, messages: List[ChatMessage]) -> Completion:
        response = self._post(
            f"{self.base_url}/models/{self.model}:generateContent",
            self._payload(messages),
            params=self._params(),
        )
        self._ensure_ok(response)
        data = self._json(response)
        return Completion(text=_candidate_text(data), tokens_used=_total_tokens(data))

    def _open_stream(self, messages: List[ChatMessage]) -> requests.Response:
        response = self._post(
            f"{self.base_url}/models/{self.model}:streamGenerateContent",
            self._payload(messages),
            params=self._params(alt="sse"),
            stream=True,
        )
        self._ensure_ok(response)
        return response

    def _decode_stream(self, lines: Iterable[Line]) -> Iterator[StreamEvent]:
        for payload in iter_sse_json(lines, terminator=None):
            yield StreamEvent(text=_candidate_text(payload), tokens_used=_total_tokens(payload))

    def _embed(self, text: str) -> List[float]:
        model = self.embedding_model
        response = self._post(
            f"{self.base_url}/models/{model}:embedContent",
            {"model": f"models/{model}", "content": {"parts": [{"text": text}]}},
            params=self._params(),
        )
        if not response.ok:
            raise ModelClientError(f"Gemini embedding failed: {self._error_message(response)}")
        embedding = self._json(response).get("embedding")
        values = embedding.get("values") if isinstance(embedding, dict) else None
        if not values or not isinstance(values, list):
            raise ModelResponseError("No embedding returned by Gemini")
        return [float(value) for value in values]
