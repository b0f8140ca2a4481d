"""
Vendor adapters

- Kling: fully implemented (JWT-signed REST API)
- Jimeng, Vidu: registered placeholders, not yet integrated
"""

from .base import PlaceholderProvider, Provider
from .factory import create_provider
from .jimeng import JimengProvider
from .kling import KlingProvider
from .vidu import ViduProvider

__all__ = [
    "Provider",
    "PlaceholderProvider",
    "create_provider",
    "KlingProvider",
    "JimengProvider",
    "ViduProvider",
]
