"""
vidgen - unified video generation client

Provides one request/response shape over several vendor APIs:
- Kling: implemented (JWT-signed REST API)
- Jimeng, Vidu: registered, integration pending

Tasks are submitted with Client.create_generation and polled with
Client.wait_for_completion. A phase-by-phase relay binding lives in
vidgen.relay.
"""

from .client import Client
from .core.config import ClientConfig, ProviderConfig
from .core.errors import (
    APIError,
    AuthenticationFailedError,
    InsufficientQuotaError,
    InvalidConfigurationError,
    InvalidRequestError,
    NetworkError,
    ProviderNotImplementedError,
    RateLimitExceededError,
    TaskAdaptorError,
    TaskNotFoundError,
    UnsupportedProviderError,
    ValidationError,
    VidgenError,
    is_retryable_error,
)
from .providers import Provider, create_provider
from .types import (
    GenerationRequest,
    GenerationResponse,
    KlingOptions,
    Metadata,
    ProviderType,
    QualityLevel,
    ResponseFormat,
    TaskError,
    TaskResult,
    TaskStatus,
)

__all__ = [
    "Client",
    "ClientConfig",
    "ProviderConfig",
    "Provider",
    "create_provider",
    "GenerationRequest",
    "GenerationResponse",
    "KlingOptions",
    "Metadata",
    "ProviderType",
    "QualityLevel",
    "ResponseFormat",
    "TaskError",
    "TaskResult",
    "TaskStatus",
    "VidgenError",
    "APIError",
    "ValidationError",
    "NetworkError",
    "RateLimitExceededError",
    "AuthenticationFailedError",
    "InsufficientQuotaError",
    "TaskNotFoundError",
    "InvalidConfigurationError",
    "InvalidRequestError",
    "UnsupportedProviderError",
    "ProviderNotImplementedError",
    "TaskAdaptorError",
    "is_retryable_error",
]
