"""LLM request shape consumed by the context cache manager."""

from dataclasses import dataclass, field
from typing import Any, Optional

from adkit.models.cache_metadata import CacheMetadata
from adkit.models.context_cache_config import ContextCacheConfig


@dataclass
class LlmRequestConfig:
    """Generation config fields relevant to caching.

    Tools use the Gemini shape: a list of ``{"function_declarations": [...]}``
    dictionaries, each declaration carrying a ``name``.
    """

    system_instruction: Optional[Any] = None
    tools: Optional[list[dict[str, Any]]] = None
    tool_config: Optional[dict[str, Any]] = None
    cached_content: Optional[str] = None


@dataclass
class LlmRequest:
    """An outgoing LLM request.

    Attributes:
        model: Model name
        contents: Conversation contents, oldest first
        config: Generation config
        cache_config: Context cache settings; None disables caching
        cache_metadata: Metadata carried over from the previous call
        cacheable_contents_token_count: Known token count of the contents,
            used instead of a provider count call when set
    """

    model: str
    contents: list[Any] = field(default_factory=list)
    config: LlmRequestConfig = field(default_factory=LlmRequestConfig)
    cache_config: Optional[ContextCacheConfig] = None
    cache_metadata: Optional[CacheMetadata] = None
    cacheable_contents_token_count: Optional[int] = None
