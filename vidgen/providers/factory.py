"""Maps a provider identifier + configuration to a concrete adapter."""

import logging
from typing import Optional, Union

import httpx

from vidgen.core.config import ProviderConfig
from vidgen.core.errors import InvalidConfigurationError, UnsupportedProviderError
from vidgen.types import ProviderType

from .base import Provider
from .jimeng import JimengProvider
from .kling import KlingProvider
from .vidu import ViduProvider

logger = logging.getLogger(__name__)


def _copy_config(config: ProviderConfig) -> ProviderConfig:
    # Adapters get their own copy so later caller mutation cannot leak in
    return ProviderConfig(
        base_url=config.base_url,
        api_key=config.api_key,
        secret_key=config.secret_key,
        timeout=config.timeout,
        retry_count=config.retry_count,
        extra=dict(config.extra or {}),
    )


def create_provider(
    provider_type: Union[ProviderType, str],
    config: Optional[ProviderConfig],
    http_client: Optional[httpx.AsyncClient] = None,
) -> Provider:
    """
    Create the adapter for a provider type.

    Raises:
        UnsupportedProviderError: provider_type is not registered
        InvalidConfigurationError: config is missing or malformed
    """
    try:
        provider_type = ProviderType(provider_type)
    except ValueError:
        raise UnsupportedProviderError(provider_type) from None

    if config is None:
        raise InvalidConfigurationError("invalid configuration")

    adapter_config = _copy_config(config)
    logger.debug(f"Creating provider: {provider_type.value}")

    if provider_type == ProviderType.KLING:
        return KlingProvider(adapter_config, http_client=http_client)
    if provider_type == ProviderType.JIMENG:
        return JimengProvider(adapter_config)
    if provider_type == ProviderType.VIDU:
        return ViduProvider(adapter_config)

    raise UnsupportedProviderError(provider_type)
