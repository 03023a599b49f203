"""Configuration models and helpers for the provider gateway."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from dotenv import load_dotenv
import yaml

from .llm import PROVIDER_INFO, ProviderConfig, ProviderType

PROJECT_ROOT = Path(__file__).resolve().parent.parent

_DOTENV_LOADED = False


def _load_dotenv_once() -> None:
    global _DOTENV_LOADED
    if _DOTENV_LOADED:
        return

    env_file = os.getenv("ENV_FILE", ".env")
    env_path = Path(env_file)
    if not env_path.is_absolute():
        env_path = PROJECT_ROOT / env_file
    if env_path.exists():
        load_dotenv(env_path, override=False)
    _DOTENV_LOADED = True


def _env(key: str) -> Optional[str]:
    value = os.getenv(key)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _update_dataclass(instance: Any, values: Dict[str, Any]) -> None:
    for key, value in (values or {}).items():
        if hasattr(instance, key):
            setattr(instance, key, value)


@dataclass
class BackendConfig:
    """Per-backend connection settings; empty values fall back to catalogue defaults."""

    api_key: Optional[str] = None
    model: Optional[str] = None
    base_url: Optional[str] = None
    embedding_model: Optional[str] = None


@dataclass
class LLMConfig:
    """Which backend the tools talk to."""

    provider: str = "gemini"


@dataclass
class GenerationConfig:
    """Sampling parameters and transport limits shared by all adapters."""

    temperature: float = 0.7
    max_tokens: int = 16000
    timeout: float = 120.0


@dataclass
class MaterializerConfig:
    encoding: str = "utf-8"


@dataclass
class RateLimitConfig:
    """Token bucket used to throttle bulk embedding calls."""

    capacity: int = 10
    refill_rate: float = 2.0


@dataclass
class IndexConfig:
    """Layout and chunking of the on-disk code index."""

    cache_dir: str = ".ai-code-generator"
    index_file: str = "vector-index.json"
    include: List[str] = field(
        default_factory=lambda: [
            "**/*.ts",
            "**/*.tsx",
            "**/*.js",
            "**/*.jsx",
            "**/*.py",
            "**/*.java",
            "**/*.go",
            "**/*.rs",
            "**/*.cpp",
            "**/*.c",
        ]
    )
    exclude: List[str] = field(
        default_factory=lambda: ["node_modules/**", "**/node_modules/**", ".ai-code-generator/**"]
    )
    chunk_lines: int = 50
    overlap: int = 10

    def index_path(self, root: Path) -> Path:
        return Path(root) / self.cache_dir / self.index_file


@dataclass
class AppConfig:
    """Aggregate configuration container used throughout the project."""

    llm: LLMConfig = field(default_factory=LLMConfig)
    openai: BackendConfig = field(default_factory=BackendConfig)
    gemini: BackendConfig = field(default_factory=BackendConfig)
    groq: BackendConfig = field(default_factory=BackendConfig)
    ollama: BackendConfig = field(default_factory=BackendConfig)
    generation: GenerationConfig = field(default_factory=GenerationConfig)
    materializer: MaterializerConfig = field(default_factory=MaterializerConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    index: IndexConfig = field(default_factory=IndexConfig)

    @classmethod
    def load(cls, *, config_path: Optional[Path] = None) -> "AppConfig":
        """Create an :class:`AppConfig` from YAML/JSON and environment overrides."""

        _load_dotenv_once()
        instance = cls()

        file_path = config_path or _env("APP_CONFIG_FILE")
        if file_path is None:
            yaml_path = PROJECT_ROOT / "config.yaml"
            json_path = PROJECT_ROOT / "config.json"
            file_path = yaml_path if yaml_path.exists() or not json_path.exists() else json_path
        file_path = Path(file_path)
        if not file_path.is_absolute():
            file_path = PROJECT_ROOT / file_path
        if file_path.exists():
            with file_path.open("r", encoding="utf-8") as handle:
                if file_path.suffix.lower() in {".yaml", ".yml"}:
                    payload = yaml.safe_load(handle) or {}
                else:
                    payload = json.load(handle)
            instance.apply_mapping(payload)

        instance.apply_environment()
        return instance

    # ------------------------------------------------------------------
    # Override helpers
    # ------------------------------------------------------------------
    def apply_mapping(self, payload: Dict[str, Any]) -> None:
        if not payload:
            return

        for section in (
            "llm",
            "openai",
            "gemini",
            "groq",
            "ollama",
            "generation",
            "materializer",
            "rate_limit",
            "index",
        ):
            if section in payload:
                _update_dataclass(getattr(self, section), payload[section])

    def apply_environment(self) -> None:
        provider = _env("LLM_PROVIDER")
        if provider:
            self.llm.provider = provider.lower()

        for backend in ProviderType:
            prefix = backend.value.upper()
            settings = self.backend(backend)
            api_key = _env(f"{prefix}_API_KEY")
            if api_key:
                settings.api_key = api_key
            model = _env(f"{prefix}_MODEL")
            if model:
                settings.model = model
            base_url = _env(f"{prefix}_BASE_URL")
            if base_url:
                settings.base_url = base_url
            embedding_model = _env(f"{prefix}_EMBEDDING_MODEL")
            if embedding_model:
                settings.embedding_model = embedding_model

        ollama_host = _env("OLLAMA_HOST")
        if ollama_host:
            self.ollama.base_url = ollama_host

        timeout = _env("LLM_TIMEOUT")
        if timeout:
            self.generation.timeout = float(timeout)
        temperature = _env("LLM_TEMPERATURE")
        if temperature:
            self.generation.temperature = float(temperature)
        max_tokens = _env("LLM_MAX_TOKENS")
        if max_tokens:
            self.generation.max_tokens = int(max_tokens)

    # ------------------------------------------------------------------
    # Provider helpers
    # ------------------------------------------------------------------
    def backend(self, provider: Union[ProviderType, str]) -> BackendConfig:
        return getattr(self, ProviderType.parse(provider).value)

    @property
    def selected_provider(self) -> ProviderType:
        return ProviderType.parse(self.llm.provider or "gemini")

    def provider_config(self, provider: Union[ProviderType, str, None] = None) -> ProviderConfig:
        """Build a fresh :class:`ProviderConfig` with catalogue defaults applied."""

        provider_type = ProviderType.parse(provider) if provider else self.selected_provider
        settings = self.backend(provider_type)
        info = PROVIDER_INFO[provider_type]
        return ProviderConfig(
            type=provider_type,
            api_key=settings.api_key or None,
            model=settings.model or info.default_model,
            base_url=settings.base_url or info.default_base_url,
            embedding_model=settings.embedding_model or info.default_embedding_model,
        )
