"""
Configuration for video generation clients.

Two layers:
- ProviderConfig: vendor endpoint and credentials, handed to the adapter
- ClientConfig: timeout and retry policy applied by the Client

Both are supplied once at construction and treated as read-only after.
Environment loading is opt-in through from_env(); nothing here reads the
environment implicitly.
"""

import os
from dataclasses import dataclass, field
from typing import Optional

from .errors import InvalidConfigurationError


def _env(prefix: str, name: str, default: str = "") -> str:
    return os.getenv(f"{prefix}_{name}", default)


def _env_float(prefix: str, name: str, default: float) -> float:
    raw = _env(prefix, name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise InvalidConfigurationError(f"{prefix}_{name} must be a number, got {raw!r}")


@dataclass
class ProviderConfig:
    """Endpoint and credentials for a single vendor."""

    base_url: str = ""
    # Kling expects "access_key,secret_key"
    api_key: str = ""
    secret_key: Optional[str] = None
    timeout: float = 30.0  # seconds, per HTTP call
    retry_count: int = 0
    extra: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_env(cls, prefix: str = "VIDGEN") -> "ProviderConfig":
        """Load provider configuration from environment variables."""
        return cls(
            base_url=_env(prefix, "BASE_URL"),
            api_key=_env(prefix, "API_KEY"),
            secret_key=_env(prefix, "SECRET_KEY") or None,
            timeout=_env_float(prefix, "TIMEOUT", 30.0),
            retry_count=int(_env_float(prefix, "RETRY_COUNT", 0)),
        )

    def validate(self) -> list[str]:
        """Validate configuration and return list of issues."""
        issues = []

        if not self.api_key:
            issues.append("API key not configured")

        if self.timeout <= 0:
            issues.append("timeout must be positive")

        if self.retry_count < 0:
            issues.append("retry_count cannot be negative")

        return issues


@dataclass
class ClientConfig:
    """Timeout and retry policy applied around every adapter call."""

    timeout: float = 30.0  # seconds, covers one call including its retries
    max_retries: int = 3
    retry_delay: float = 1.0  # seconds between attempts
    debug: bool = False

    @classmethod
    def from_env(cls, prefix: str = "VIDGEN") -> "ClientConfig":
        """Load client policy from environment variables."""
        return cls(
            timeout=_env_float(prefix, "CLIENT_TIMEOUT", 30.0),
            max_retries=int(_env_float(prefix, "MAX_RETRIES", 3)),
            retry_delay=_env_float(prefix, "RETRY_DELAY", 1.0),
            debug=_env(prefix, "DEBUG", "false").lower() == "true",
        )


def default_client_config() -> ClientConfig:
    """Return a fresh ClientConfig with library defaults."""
    return ClientConfig()
