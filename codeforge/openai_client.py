"""Adapter for OpenAI-compatible Chat Completions endpoints."""

from __future__ import annotations

from typing import Any, Dict, Iterable, Iterator, List, Optional

import requests

from .base import BackendAdapter, Completion
from .llm import ChatMessage, ModelClientError, ModelResponseError, ProviderType
from .streaming import Line, StreamEvent, iter_sse_json


def _first_choice(payload: Dict[str, Any]) -> Dict[str, Any]:
    choices = payload.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        return choices[0]
    return {}


def _total_tokens(payload: Dict[str, Any]) -> Optional[int]:
    usage = payload.get("usage")
    if isinstance(usage, dict) and isinstance(usage.get("total_tokens"), int):
        return usage["total_tokens"]
    return None


class OpenAICompatibleAdapter(BackendAdapter):
    """Shared wire format for backends that speak the OpenAI REST dialect.

    Requests go to ``{base_url}/chat/completions`` with a bearer token; streams
    are server-sent events terminated by ``data: [DONE]``.
    """

    image_mime_type = "image/jpeg"

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.config.api_key}"}

    def _serialize(self, message: ChatMessage) -> Dict[str, Any]:
        if not message.image:
            return {"role": message.role, "content": message.content}
        return {
            "role": message.role,
            "content": [
                {"type": "text", "text": message.content},
                {
                    "type": "image_url",
                    "image_url": {"url": f"data:{self.image_mime_type};base64,{message.image}"},
                },
            ],
        }

    def _payload(self, messages: List[ChatMessage], *, stream: bool = False) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": [self._serialize(message) for message in messages],
            "temperature": self.generation.temperature,
            "max_tokens": self.generation.max_tokens,
        }
        if stream:
            payload["stream"] = True
        return payload

    def _complete(self, messages: List[ChatMessage]) -> Completion:
        response = self._post(
            f"{self.base_url}/chat/completions", self._payload(messages), headers=self._headers()
        )
        self._ensure_ok(response)
        data = self._json(response)

        message = _first_choice(data).get("message")
        content = message.get("content") if isinstance(message, dict) else None
        return Completion(
            text=content if isinstance(content, str) else "", tokens_used=_total_tokens(data)
        )

    def _open_stream(self, messages: List[ChatMessage]) -> requests.Response:
        response = self._post(
            f"{self.base_url}/chat/completions",
            self._payload(messages, stream=True),
            headers=self._headers(),
            stream=True,
        )
        self._ensure_ok(response)
        return response

    def _decode_stream(self, lines: Iterable[Line]) -> Iterator[StreamEvent]:
        for payload in iter_sse_json(lines):
            delta = _first_choice(payload).get("delta")
            content = delta.get("content") if isinstance(delta, dict) else None
            yield StreamEvent(
                text=content if isinstance(content, str) else "", tokens_used=_total_tokens(payload)
            )

    def _embed(self, text: str) -> List[float]:
        response = self._post(
            f"{self.base_url}/embeddings",
            {"model": self.embedding_model, "input": text},
            headers=self._headers(),
        )
        if not response.ok:
            raise ModelClientError(
                f"{self.label} embedding failed: {self._error_message(response)}"
            )
        data = self._json(response).get("data")
        vector = None
        if isinstance(data, list) and data and isinstance(data[0], dict):
            vector = data[0].get("embedding")
        if not vector or not isinstance(vector, list):
            raise ModelResponseError(f"No embedding returned by {self.label}")
        return [float(value) for value in vector]


class OpenAIAdapter(OpenAICompatibleAdapter):
    provider_type = ProviderType.OPENAI
    label = "OpenAI"
    missing_key_message = (
        "OpenAI API key is required. Set OPENAI_API_KEY or openai.api_key in config.yaml."
    )
