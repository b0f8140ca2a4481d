"""
vidgen core components

Foundational pieces shared by every provider and the Client:
- Error taxonomy and the retryability predicate
- Provider and client configuration
"""

from .config import ClientConfig, ProviderConfig
from .errors import APIError, ValidationError, VidgenError, is_retryable_error

__all__ = [
    "ClientConfig",
    "ProviderConfig",
    "APIError",
    "ValidationError",
    "VidgenError",
    "is_retryable_error",
]
