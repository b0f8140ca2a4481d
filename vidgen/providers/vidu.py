from .base import PlaceholderProvider


class ViduProvider(PlaceholderProvider):
    """Vidu video generation. Vendor API integration pending."""

    provider_name = "Vidu"
    models = ("vidu-v1", "vidu-v2")
