from typing import Protocol, runtime_checkable

from vidgen.core.config import ProviderConfig
from vidgen.core.errors import InvalidConfigurationError, ProviderNotImplementedError
from vidgen.types import GenerationRequest, GenerationResponse, TaskResult


@runtime_checkable
class Provider(Protocol):
    """Capability set every video generation vendor adapter implements."""

    def name(self) -> str:
        """Constant identifier used for logging and error tagging."""
        ...

    async def create_generation(self, req: GenerationRequest) -> GenerationResponse:
        """Submit a generation task. Raise APIError / NetworkError on failure."""
        ...

    async def get_generation(self, task_id: str) -> TaskResult:
        """Fetch the current state of a task."""
        ...

    def supported_models(self) -> list[str]:
        ...

    def validate_request(self, req: GenerationRequest) -> None:
        """Raise ValidationError if the vendor cannot serve this request."""
        ...

    async def close(self) -> None:
        """Release HTTP resources held by the adapter."""
        ...


class PlaceholderProvider:
    """
    Provider registered ahead of its vendor integration.

    Reports its name and model list; every remote operation raises
    ProviderNotImplementedError.
    """

    provider_name = ""
    models: tuple = ()

    def __init__(self, config: ProviderConfig):
        if config is None:
            raise InvalidConfigurationError("invalid configuration")
        self.config = config

    def name(self) -> str:
        return self.provider_name

    def supported_models(self) -> list[str]:
        return list(self.models)

    def validate_request(self, req: GenerationRequest) -> None:
        return None

    async def create_generation(self, req: GenerationRequest) -> GenerationResponse:
        raise ProviderNotImplementedError(f"{self.provider_name} provider not yet implemented")

    async def get_generation(self, task_id: str) -> TaskResult:
        raise ProviderNotImplementedError(f"{self.provider_name} provider not yet implemented")

    async def close(self) -> None:
        return None
