"""Shared models and exceptions for the backend adapters."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, List, Optional, Union

from .project import ProjectStructure


class ProviderType(str, Enum):
    OPENAI = "openai"
    GEMINI = "gemini"
    GROQ = "groq"
    OLLAMA = "ollama"

    @classmethod
    def parse(cls, value: Union["ProviderType", str]) -> "ProviderType":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise UnknownProviderError(f"Unknown provider type: {value}") from None


class ErrorKind(str, Enum):
    """Programmatic classification of a failed call."""

    CONFIGURATION = "configuration"
    TRANSPORT = "transport"
    TIMEOUT = "timeout"
    NOT_RUNNING = "not_running"
    MODEL_NOT_FOUND = "model_not_found"
    EMPTY_RESPONSE = "empty_response"
    CANCELLED = "cancelled"
    MATERIALIZATION = "materialization"


class UnknownProviderError(ValueError):
    """Raised when a backend type tag does not name a supported adapter."""


class ModelClientError(RuntimeError):
    """Base exception raised for backend errors."""

    kind: ErrorKind = ErrorKind.TRANSPORT


class ModelConfigurationError(ModelClientError):
    """Raised when a backend is missing required settings."""

    kind = ErrorKind.CONFIGURATION


class ModelConnectionError(ModelClientError):
    """Raised when the backend cannot be reached."""


class ModelTimeoutError(ModelConnectionError):
    """Raised when the backend does not answer within the configured timeout."""

    kind = ErrorKind.TIMEOUT


class ModelNotFoundError(ModelClientError):
    """Raised when the requested model is unavailable."""

    kind = ErrorKind.MODEL_NOT_FOUND


class ModelResponseError(ModelClientError):
    """Raised when the backend answered but the answer is unusable."""

    kind = ErrorKind.EMPTY_RESPONSE


@dataclass
class ProviderConfig:
    """Settings for one backend, read fresh for every call."""

    type: ProviderType
    model: str
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    embedding_model: Optional[str] = None

    def with_overrides(self, **changes: object) -> "ProviderConfig":
        return replace(self, **{key: value for key, value in changes.items() if value is not None})


@dataclass
class ChatMessage:
    role: str
    content: str
    image: Optional[str] = None

    def __post_init__(self) -> None:
        if self.role not in ("system", "user", "assistant"):
            raise ValueError(f"Unsupported chat role: {self.role!r}")

    @classmethod
    def system(cls, content: str) -> "ChatMessage":
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str, *, image: Optional[str] = None) -> "ChatMessage":
        return cls(role="user", content=content, image=image)

    @classmethod
    def assistant(cls, content: str) -> "ChatMessage":
        return cls(role="assistant", content=content)


@dataclass
class ValidationResult:
    valid: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class StructuredReply:
    project: ProjectStructure


@dataclass(frozen=True)
class ConversationalReply:
    text: str


Reply = Union[StructuredReply, ConversationalReply]


@dataclass
class ProviderResult:
    """Outcome of a chat call: a reply on success, an error string otherwise."""

    success: bool
    reply: Optional[Reply] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    tokens_used: Optional[int] = None

    @classmethod
    def ok(cls, reply: Reply, *, tokens_used: Optional[int] = None) -> "ProviderResult":
        return cls(success=True, reply=reply, tokens_used=tokens_used)

    @classmethod
    def failure(cls, error: str, kind: ErrorKind = ErrorKind.TRANSPORT) -> "ProviderResult":
        return cls(success=False, error=error, error_kind=kind)

    @property
    def project_structure(self) -> Optional[ProjectStructure]:
        if isinstance(self.reply, StructuredReply):
            return self.reply.project
        return None

    @property
    def message(self) -> Optional[str]:
        if isinstance(self.reply, ConversationalReply):
            return self.reply.text
        return None


@dataclass(frozen=True)
class ProviderInfo:
    """Catalogue entry describing a backend to users and callers."""

    type: ProviderType
    name: str
    description: str
    requires_api_key: bool
    free_available: bool
    default_model: str
    default_base_url: str
    default_embedding_model: str
    models: List[str] = field(default_factory=list)
    supports_streaming: bool = True
    supports_vision: bool = True
    supports_embeddings: bool = True


PROVIDER_INFO: Dict[ProviderType, ProviderInfo] = {
    ProviderType.OPENAI: ProviderInfo(
        type=ProviderType.OPENAI,
        name="OpenAI",
        description="GPT-4o, GPT-4o-mini - Best quality code generation",
        requires_api_key=True,
        free_available=False,
        default_model="gpt-4o-mini",
        default_base_url="https://api.openai.com/v1",
        default_embedding_model="text-embedding-3-small",
        models=["gpt-4o", "gpt-4o-mini", "gpt-4-turbo", "gpt-3.5-turbo"],
    ),
    ProviderType.GEMINI: ProviderInfo(
        type=ProviderType.GEMINI,
        name="Google Gemini",
        description="Gemini 1.5/2.0 - Free tier available",
        requires_api_key=True,
        free_available=True,
        default_model="gemini-1.5-flash",
        default_base_url="https://generativelanguage.googleapis.com/v1beta",
        default_embedding_model="text-embedding-004",
        models=["gemini-2.0-flash-exp", "gemini-1.5-flash", "gemini-1.5-pro"],
    ),
    ProviderType.GROQ: ProviderInfo(
        type=ProviderType.GROQ,
        name="Groq",
        description="Llama 3.3, Mixtral - Fast & free tier",
        requires_api_key=True,
        free_available=True,
        default_model="llama-3.3-70b-versatile",
        default_base_url="https://api.groq.com/openai/v1",
        default_embedding_model="nomic-embed-text-v1_5",
        models=["llama-3.3-70b-versatile", "llama-3.1-8b-instant", "mixtral-8x7b-32768"],
    ),
    ProviderType.OLLAMA: ProviderInfo(
        type=ProviderType.OLLAMA,
        name="Ollama (Local)",
        description="Run models locally - Completely free",
        requires_api_key=False,
        free_available=True,
        default_model="codellama",
        default_base_url="http://localhost:11434",
        default_embedding_model="nomic-embed-text",
        models=["codellama", "deepseek-coder", "llama3", "mistral"],
    ),
}
