"""
Error taxonomy for video generation clients.

Categories:
- ValidationError: local, pre-flight, never sent over the wire
- APIError: the vendor rejected the call (code + message + provider tag)
  (auth/quota/not-found/invalid-request subclasses are final verdicts)
- NetworkError / RateLimitExceededError: transient, always retryable
- Everything else (decode failures, signing failures, bad config): local
"""

from typing import Optional


class VidgenError(Exception):
    """Base class for all errors raised by this library."""


class UnsupportedProviderError(VidgenError):
    """Raised when a provider type has no registered adapter."""

    def __init__(self, provider_type: object = None):
        self.provider_type = provider_type
        message = "unsupported provider"
        if provider_type is not None:
            message = f"unsupported provider: {provider_type}"
        super().__init__(message)


class InvalidConfigurationError(VidgenError):
    """Raised when provider or client configuration is unusable."""


class NetworkError(VidgenError):
    """Raised when the transport fails before a vendor response is read."""


class ProviderNotImplementedError(VidgenError):
    """Raised by placeholder providers that have no vendor integration yet."""


class ValidationError(VidgenError):
    """A request failed local validation."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"validation error for field '{field}': {message}")


class APIError(VidgenError):
    """The vendor API returned an error response."""

    def __init__(self, code: int, message: str, provider: Optional[str] = None):
        self.code = code
        self.message = message
        self.provider = provider or ""
        if self.provider:
            text = f"[{self.provider}] API error {code}: {message}"
        else:
            text = f"API error {code}: {message}"
        super().__init__(text)


class AuthenticationFailedError(APIError):
    """The vendor rejected the credentials or the signed token."""


class RateLimitExceededError(APIError):
    """The vendor throttled the request."""

    def __init__(
        self,
        code: int = 429,
        message: str = "rate limit exceeded",
        provider: Optional[str] = None,
    ):
        super().__init__(code, message, provider)


class InsufficientQuotaError(APIError):
    """The account has no remaining quota for this request."""


class TaskNotFoundError(APIError):
    """The vendor has no record of the requested task."""


class InvalidRequestError(APIError):
    """The vendor rejected the request parameters or its content policy refused it."""


# Vendor verdicts that reissuing the same call cannot change
NON_RETRYABLE_API_ERRORS = (
    AuthenticationFailedError,
    InsufficientQuotaError,
    TaskNotFoundError,
    InvalidRequestError,
)


class TaskAdaptorError(VidgenError):
    """
    Error raised by the relay binding.

    local_error is True when the failure happened on this side of the wire
    (parsing, building, signing), False when the vendor reported it.
    """

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        local_error: bool = True,
    ):
        self.status_code = status_code
        self.code = code
        self.message = message
        self.local_error = local_error
        super().__init__(message)


def is_retryable_error(err: BaseException) -> bool:
    """
    Decide whether re-issuing the same call may plausibly succeed.

    Network failures and rate limiting are always retryable. Classified
    vendor rejections (auth, quota, missing task, bad request) never are.
    Other API errors are retryable on 5xx and 429 only.
    """
    if isinstance(err, (NetworkError, RateLimitExceededError)):
        return True
    if isinstance(err, NON_RETRYABLE_API_ERRORS):
        return False
    if isinstance(err, APIError):
        return err.code >= 500 or err.code == 429
    return False
