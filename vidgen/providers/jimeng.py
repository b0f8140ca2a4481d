from .base import PlaceholderProvider


class JimengProvider(PlaceholderProvider):
    """Jimeng video generation. Vendor API integration pending."""

    provider_name = "Jimeng"
    models = ("jimeng-v1", "jimeng-v2")
