"""LLM request models and context caching."""

from adkit.models.cache_metadata import CacheMetadata
from adkit.models.context_cache_config import ContextCacheConfig
from adkit.models.context_cache_manager import (
    CacheApplication,
    ContextCacheManager,
    apply_cache_to_request,
)
from adkit.models.fingerprint import generate_cache_fingerprint, stable_hash
from adkit.models.llm_request import LlmRequest, LlmRequestConfig

__all__ = [
    "CacheApplication",
    "CacheMetadata",
    "ContextCacheConfig",
    "ContextCacheManager",
    "LlmRequest",
    "LlmRequestConfig",
    "apply_cache_to_request",
    "generate_cache_fingerprint",
    "stable_hash",
]
