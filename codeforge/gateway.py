"""Backend selection: turn configuration into a concrete adapter."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Type, Union

import requests

from .base import BackendAdapter
from .config import AppConfig, GenerationConfig
from .gemini import GeminiAdapter
from .groq import GroqAdapter
from .llm import PROVIDER_INFO, ProviderConfig, ProviderInfo, ProviderResult, ProviderType
from .logging import get_logger
from .ollama import OllamaAdapter
from .openai_client import OpenAIAdapter

LOGGER = get_logger(__name__)

_ADAPTERS: Dict[ProviderType, Type[BackendAdapter]] = {
    ProviderType.OPENAI: OpenAIAdapter,
    ProviderType.GEMINI: GeminiAdapter,
    ProviderType.GROQ: GroqAdapter,
    ProviderType.OLLAMA: OllamaAdapter,
}


def _provider_config(
    provider_type: ProviderType, settings: Union[ProviderConfig, Mapping[str, Any], None]
) -> ProviderConfig:
    info = PROVIDER_INFO[provider_type]
    if isinstance(settings, ProviderConfig):
        values: Mapping[str, Any] = {
            "api_key": settings.api_key,
            "model": settings.model,
            "base_url": settings.base_url,
            "embedding_model": settings.embedding_model,
        }
    else:
        values = settings or {}
    return ProviderConfig(
        type=provider_type,
        api_key=values.get("api_key") or values.get("apiKey") or None,
        model=values.get("model") or info.default_model,
        base_url=values.get("base_url") or values.get("baseUrl") or info.default_base_url,
        embedding_model=values.get("embedding_model") or info.default_embedding_model,
    )


def resolve(
    provider: Union[ProviderType, str],
    config: Union[ProviderConfig, Mapping[str, Any], None] = None,
    *,
    generation: Optional[GenerationConfig] = None,
    session: Optional[requests.Session] = None,
) -> BackendAdapter:
    """Instantiate the adapter for *provider* with per-backend defaults applied.

    Raises :class:`UnknownProviderError` for tags outside the supported set.
    """

    provider_type = ProviderType.parse(provider)
    adapter_cls = _ADAPTERS[provider_type]
    return adapter_cls(
        _provider_config(provider_type, config), generation=generation, session=session
    )


def capabilities(provider: Union[ProviderType, str]) -> ProviderInfo:
    return PROVIDER_INFO[ProviderType.parse(provider)]


def providers() -> List[ProviderInfo]:
    return [PROVIDER_INFO[provider_type] for provider_type in ProviderType]


class ProviderGateway:
    """Resolves the configured backend on every call; nothing is cached."""

    def __init__(self, config: AppConfig, *, session: Optional[requests.Session] = None) -> None:
        self.config = config
        self._session = session

    def current(self, provider: Union[ProviderType, str, None] = None) -> BackendAdapter:
        provider_config = self.config.provider_config(provider)
        adapter = resolve(
            provider_config.type,
            provider_config,
            generation=self.config.generation,
            session=self._session,
        )
        LOGGER.debug("Resolved %s adapter with model '%s'", adapter.name, adapter.model)
        return adapter

    def capabilities(self, provider: Union[ProviderType, str, None] = None) -> ProviderInfo:
        return capabilities(provider or self.config.selected_provider)

    def providers(self) -> List[ProviderInfo]:
        return providers()

    def generate_project(self, task_description: str, **kwargs: Any) -> ProviderResult:
        return self.current().generate_project(task_description, **kwargs)
