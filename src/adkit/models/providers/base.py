"""Provider boundary used by the context cache manager."""

from abc import ABC, abstractmethod
from typing import Any, Optional


class CacheProviderClient(ABC):
    """Token counting and cache lifecycle calls of an LLM provider.

    Providers without server-side context caches set ``supports_caching`` to
    False; the cache manager then never calls create/delete.
    """

    supports_caching: bool = True

    # Smallest prompt the provider accepts for a cache
    min_cacheable_tokens: int = 0

    @property
    @abstractmethod
    def provider(self) -> str:
        """Provider name, e.g. "gemini"."""
        pass

    @abstractmethod
    async def count_tokens(
        self,
        model: str,
        contents: list[Any],
        system_instruction: Optional[Any] = None,
        tools: Optional[list[dict[str, Any]]] = None,
    ) -> int:
        """Count the tokens of the given prompt prefix."""
        pass

    @abstractmethod
    async def create_cache(
        self,
        model: str,
        contents: list[Any],
        ttl: str,
        display_name: str,
        system_instruction: Optional[Any] = None,
        tools: Optional[list[dict[str, Any]]] = None,
        tool_config: Optional[dict[str, Any]] = None,
    ) -> str:
        """Create a cache and return its provider resource name."""
        pass

    @abstractmethod
    async def delete_cache(self, name: str) -> None:
        """Delete a cache by resource name."""
        pass


def content_to_dict(content: Any) -> Any:
    """Convert an SDK Content dataclass into the plain dict providers accept."""
    to_dict = getattr(content, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return content
