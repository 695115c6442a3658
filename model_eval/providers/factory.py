from typing import Optional

from model_eval.config import provider_api_key

from .base import ProviderRegistry
from .mock import MockProviderAdapter

# Providers that run offline and never need a key
KEYLESS_PROVIDERS = ("mock", "test")


def build_provider_registry() -> ProviderRegistry:
    """Return a registry with the offline adapters installed.

    Network adapters are registered by the embedding application:
    ``registry.register(MyAdapter())``.
    """
    registry = ProviderRegistry()
    mock = MockProviderAdapter()
    registry.register(mock)
    registry.register(mock, name="test")
    return registry


def resolve_api_key(provider: str, header_key: Optional[str] = None) -> str:
    """API key precedence: explicit header value, then the provider's env var."""
    if (provider or "").lower() in KEYLESS_PROVIDERS:
        return ""
    return (header_key or "").strip() or provider_api_key(provider)


def requires_api_key(provider: str) -> bool:
    return (provider or "").lower() not in KEYLESS_PROVIDERS
