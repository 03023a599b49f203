"""Provider gateway for AI code generation and project materialization."""

from .base import SYSTEM_PROMPT, BackendAdapter, Completion, build_generation_messages
from .chat import ChatSession
from .config import (
    AppConfig,
    BackendConfig,
    GenerationConfig,
    IndexConfig,
    LLMConfig,
    MaterializerConfig,
    RateLimitConfig,
)
from .embedding import cosine_similarity, hashed_embedding
from .gateway import ProviderGateway, capabilities, providers, resolve
from .gemini import GeminiAdapter
from .groq import GroqAdapter
from .index import CodeChunk, CodeIndex, SearchHit, chunk_lines
from .llm import (
    PROVIDER_INFO,
    ChatMessage,
    ConversationalReply,
    ErrorKind,
    ModelClientError,
    ModelConfigurationError,
    ModelConnectionError,
    ModelNotFoundError,
    ModelResponseError,
    ModelTimeoutError,
    ProviderConfig,
    ProviderInfo,
    ProviderResult,
    ProviderType,
    StructuredReply,
    UnknownProviderError,
    ValidationResult,
)
from .materializer import (
    LocalWorkspace,
    MaterializationResult,
    PathEscapeError,
    ProgressUpdate,
    ProjectMaterializer,
    Workspace,
    apply_project_structure,
    primary_file,
)
from .ollama import (
    OllamaAdapter,
    OllamaClientError,
    OllamaConnectionError,
    OllamaModelNotFoundError,
    OllamaNotRunningError,
)
from .openai_client import OpenAIAdapter, OpenAICompatibleAdapter
from .parser import ParseResult, StructuredOutputParser, parse_project_structure
from .project import ProjectFile, ProjectStructure
from .ratelimit import TokenBucket
from .streaming import DeltaStream, StreamEvent

__all__ = [
    "SYSTEM_PROMPT",
    "BackendAdapter",
    "Completion",
    "build_generation_messages",
    "ChatSession",
    "AppConfig",
    "BackendConfig",
    "GenerationConfig",
    "IndexConfig",
    "LLMConfig",
    "MaterializerConfig",
    "RateLimitConfig",
    "cosine_similarity",
    "hashed_embedding",
    "ProviderGateway",
    "capabilities",
    "providers",
    "resolve",
    "GeminiAdapter",
    "GroqAdapter",
    "CodeChunk",
    "CodeIndex",
    "SearchHit",
    "chunk_lines",
    "PROVIDER_INFO",
    "ChatMessage",
    "ConversationalReply",
    "ErrorKind",
    "ModelClientError",
    "ModelConfigurationError",
    "ModelConnectionError",
    "ModelNotFoundError",
    "ModelResponseError",
    "ModelTimeoutError",
    "ProviderConfig",
    "ProviderInfo",
    "ProviderResult",
    "ProviderType",
    "StructuredReply",
    "UnknownProviderError",
    "ValidationResult",
    "LocalWorkspace",
    "MaterializationResult",
    "PathEscapeError",
    "ProgressUpdate",
    "ProjectMaterializer",
    "Workspace",
    "apply_project_structure",
    "primary_file",
    "OllamaAdapter",
    "OllamaClientError",
    "OllamaConnectionError",
    "OllamaModelNotFoundError",
    "OllamaNotRunningError",
    "OpenAIAdapter",
    "OpenAICompatibleAdapter",
    "ParseResult",
    "StructuredOutputParser",
    "parse_project_structure",
    "ProjectFile",
    "ProjectStructure",
    "TokenBucket",
    "DeltaStream",
    "StreamEvent",
]
