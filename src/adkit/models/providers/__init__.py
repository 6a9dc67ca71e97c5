"""Cache provider clients.

Supported providers:
- GeminiCacheClient: server-side context caches via google-genai
- AnthropicCacheClient: token counting only (no cache resources)
"""

from adkit.models.providers.anthropic import AnthropicCacheClient
from adkit.models.providers.base import CacheProviderClient
from adkit.models.providers.gemini import GOOGLE_MIN_TOKENS, GeminiCacheClient

__all__ = [
    "AnthropicCacheClient",
    "CacheProviderClient",
    "GOOGLE_MIN_TOKENS",
    "GeminiCacheClient",
    "get_cache_client",
]


def get_cache_client(provider: str, **kwargs) -> CacheProviderClient:
    """Factory function to get a cache provider client by name.

    Args:
        provider: Provider name (gemini, google, anthropic)
        **kwargs: Provider-specific configuration

    Raises:
        ValueError: If the provider is unknown
    """
    providers: dict[str, type[CacheProviderClient]] = {
        "gemini": GeminiCacheClient,
        "google": GeminiCacheClient,
        "anthropic": AnthropicCacheClient,
    }

    provider_lower = provider.lower()
    if provider_lower not in providers:
        available = ", ".join(sorted(providers))
        raise ValueError(f"Unknown provider: {provider}. Available: {available}")

    return providers[provider_lower](**kwargs)
