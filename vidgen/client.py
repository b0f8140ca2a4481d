"""
Unified Video Generation Client

Single entry point over every registered vendor:
- Local request validation before any network call
- Timeout + bounded retry around each adapter call
- Polling until a task reaches a terminal state

Cancellation follows asyncio: cancelling the calling task interrupts the
HTTP call, the retry delay, or the poll sleep immediately. Deadlines are
the caller's to set, e.g. asyncio.wait_for(client.wait_for_completion(...), 600).
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar, Union

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_fixed,
)

from vidgen.core.config import ClientConfig, ProviderConfig, default_client_config
from vidgen.core.errors import ValidationError, is_retryable_error
from vidgen.providers.base import Provider
from vidgen.providers.factory import create_provider
from vidgen.types import (
    GenerationRequest,
    GenerationResponse,
    ProviderType,
    TaskResult,
    TaskStatus,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_POLL_INTERVAL = 5.0  # seconds


class Client:
    """
    Client for video generation.

    Usage:
        client = Client(ProviderType.KLING, ProviderConfig(api_key="ak,sk"))

        resp = await client.create_generation(
            GenerationRequest(prompt="Birds at sunrise", duration=5, width=1280, height=720)
        )
        result = await client.wait_for_completion(resp.task_id, poll_interval=10)

        await client.close()
    """

    def __init__(
        self,
        provider_type: Union[ProviderType, str],
        provider_config: ProviderConfig,
        client_config: Optional[ClientConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Create a client for one vendor.

        Args:
            provider_type: Which vendor adapter to build
            provider_config: Endpoint and credentials for that vendor
            client_config: Timeout/retry policy (library defaults if None)
            http_client: Optional shared httpx client for the adapter

        Raises:
            UnsupportedProviderError, InvalidConfigurationError
        """
        provider = create_provider(provider_type, provider_config, http_client=http_client)
        self._setup(provider, client_config)

    @classmethod
    def with_provider(
        cls,
        provider: Provider,
        client_config: Optional[ClientConfig] = None,
    ) -> "Client":
        """Wrap an already-built (or custom) provider."""
        client = cls.__new__(cls)
        client._setup(provider, client_config)
        return client

    def _setup(self, provider: Provider, client_config: Optional[ClientConfig]):
        self._provider = provider
        self.config = client_config or default_client_config()

    @property
    def provider(self) -> Provider:
        return self._provider

    async def close(self):
        """Release the provider's HTTP resources."""
        await self._provider.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    # -- Retry policy --------------------------------------------------

    def _log_retry(self, operation: str) -> Callable[[RetryCallState], None]:
        level = logging.WARNING if self.config.debug else logging.DEBUG

        def before_sleep(retry_state: RetryCallState):
            error = retry_state.outcome.exception() if retry_state.outcome else None
            logger.log(
                level,
                f"{operation} attempt {retry_state.attempt_number} failed: {error}, retrying...",
            )

        return before_sleep

    async def _call_with_retries(
        self,
        operation: str,
        func: Callable[..., Awaitable[T]],
        *args: Any,
    ) -> T:
        """
        Run func under the configured timeout with bounded retries.

        Non-retryable errors surface on first occurrence; after the last
        attempt the last error is re-raised unchanged.
        """

        async def attempts() -> T:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(max(self.config.max_retries, 0) + 1),
                wait=wait_fixed(max(self.config.retry_delay, 0)),
                retry=retry_if_exception(is_retryable_error),
                before_sleep=self._log_retry(operation),
                reraise=True,
            ):
                with attempt:
                    result = await func(*args)
            return result

        timeout = self.config.timeout if self.config.timeout and self.config.timeout > 0 else None
        return await asyncio.wait_for(attempts(), timeout=timeout)

    # -- Operations ----------------------------------------------------

    def validate_request(self, req: Optional[GenerationRequest]) -> None:
        """Check canonical invariants, then the provider's own rules."""
        if req is None:
            raise ValidationError("request", "request cannot be empty")

        if not req.prompt and not req.image:
            raise ValidationError("prompt/image", "at least one of prompt or image must be provided")

        if req.duration <= 0:
            raise ValidationError("duration", "duration must be positive")

        if req.width <= 0:
            raise ValidationError("width", "width must be positive")

        if req.height <= 0:
            raise ValidationError("height", "height must be positive")

        self._provider.validate_request(req)

    async def create_generation(self, req: GenerationRequest) -> GenerationResponse:
        """
        Submit a generation task.

        Raises:
            ValidationError: request rejected locally, nothing sent
            APIError / NetworkError: last vendor or transport failure
            asyncio.TimeoutError: client timeout elapsed
        """
        self.validate_request(req)
        return await self._call_with_retries(
            "create_generation", self._provider.create_generation, req
        )

    async def get_generation(self, task_id: str) -> TaskResult:
        """Fetch a task snapshot. Unknown vendor statuses pass through unchanged."""
        if not task_id:
            raise ValidationError("task_id", "task ID cannot be empty")

        return await self._call_with_retries(
            "get_generation", self._provider.get_generation, task_id
        )

    async def wait_for_completion(
        self,
        task_id: str,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> TaskResult:
        """
        Poll a task until it leaves queued/processing.

        Returns on succeeded or failed, and also on any status outside the
        known vocabulary so an unexpected vendor state cannot poll forever.
        Callers must inspect result.status.

        There is no built-in deadline: the client timeout bounds each poll,
        not the whole wait. Wrap in asyncio.wait_for() to cap total time.
        """
        if poll_interval is None or poll_interval <= 0:
            poll_interval = DEFAULT_POLL_INTERVAL

        polls = 0
        while True:
            await asyncio.sleep(poll_interval)

            result = await self.get_generation(task_id)
            polls += 1

            if result.status in (TaskStatus.QUEUED, TaskStatus.PROCESSING):
                logger.debug(f"Task {task_id} still {result.status} after {polls} polls")
                continue

            logger.info(f"Task {task_id} finished with status {result.status} after {polls} polls")
            return result

    def get_provider_name(self) -> str:
        return self._provider.name()

    def get_supported_models(self) -> list[str]:
        return self._provider.supported_models()
