"""Context cache manager.

Decides per LLM call whether to reuse, invalidate or recreate a
provider-side context cache, and rewrites the request to reference the
cache instead of resending the cached prefix.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from adkit.errors import CacheProviderError
from adkit.models.cache_metadata import CacheMetadata
from adkit.models.context_cache_config import ContextCacheConfig
from adkit.models.fingerprint import generate_cache_fingerprint
from adkit.models.llm_request import LlmRequest
from adkit.models.providers.base import CacheProviderClient
from adkit.telemetry.logger import get_logger

logger = get_logger(__name__)

FINGERPRINT_ONLY_EXPIRE_TIME = 0
FINGERPRINT_ONLY_INVOCATIONS = 0
INITIAL_INVOCATIONS_USED = 1


@dataclass(frozen=True)
class CacheApplication:
    """Rewrite to apply to a request once a cache is active.

    Attributes:
        cached_content: Provider cache name to reference
        drop_leading: Number of leading contents held by the cache
    """

    cached_content: str
    drop_leading: int


def apply_cache_to_request(request: LlmRequest, application: CacheApplication) -> None:
    """Point the request at the cache and strip what the cache already holds."""
    request.config.system_instruction = None
    request.config.tools = None
    request.config.tool_config = None
    request.config.cached_content = application.cached_content
    request.contents = request.contents[application.drop_leading:]


class ContextCacheManager:
    """Manages provider context caches for LLM requests.

    Example:
        manager = ContextCacheManager(GeminiCacheClient())
        request.cache_config = ContextCacheConfig(ttl_seconds=600)
        request.cache_metadata = previous_metadata
        metadata = await manager.handle_context_caching(request)
    """

    def __init__(
        self,
        provider: CacheProviderClient,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.provider = provider
        self._clock = clock

    async def handle_context_caching(self, request: LlmRequest) -> Optional[CacheMetadata]:
        """Decide cache reuse for a request and rewrite it accordingly.

        Returns:
            Metadata to carry into the next call, or None when the request
            has no cache config (caching disabled)
        """
        metadata, application = await self.compute_cache_plan(request)
        if application is not None:
            apply_cache_to_request(request, application)
        return metadata

    async def compute_cache_plan(
        self, request: LlmRequest
    ) -> tuple[Optional[CacheMetadata], Optional[CacheApplication]]:
        """Compute the cache decision without modifying the request."""
        if request.cache_config is None:
            return None, None

        existing = request.cache_metadata
        if existing is None:
            logger.debug("No existing cache metadata, attempting to create new cache")
            return await self._create_or_fingerprint(request, len(request.contents))

        logger.debug("Found existing cache metadata", metadata=str(existing))

        if existing.cache_name and self.is_cache_valid(request):
            reused = existing.copy_with(invocations_used=(existing.invocations_used or 0) + 1)
            logger.info(
                "Cache HIT",
                cache_name=existing.cache_name,
                contents_count=existing.contents_count,
                invocations_used=reused.invocations_used,
            )
            return reused, CacheApplication(existing.cache_name, existing.contents_count)

        if existing.cache_name:
            logger.debug("Cache is invalid, cleaning up", cache_name=existing.cache_name)
            await self.cleanup_cache(existing.cache_name)

        cached_count = existing.contents_count
        current = generate_cache_fingerprint(request, cached_count)
        if current == existing.fingerprint:
            logger.debug("Fingerprints match after invalidation, creating new cache")
            created = await self.create_new_cache_with_contents(request, cached_count)
            if created is not None and created.cache_name:
                return created, CacheApplication(created.cache_name, cached_count)

        logger.debug("Falling back to fingerprint-only metadata")
        return self._fingerprint_only(request, len(request.contents)), None

    def is_cache_valid(self, request: LlmRequest) -> bool:
        """Check the carried metadata against expiry, usage and content.

        A cache stops being valid once ``invocations_used`` is strictly
        greater than ``cache_intervals``.
        """
        metadata = request.cache_metadata
        if metadata is None or not metadata.cache_name:
            return False

        now = self._clock()
        expire_time = metadata.expire_time or FINGERPRINT_ONLY_EXPIRE_TIME
        if now >= expire_time:
            logger.info("Cache expired", cache_name=metadata.cache_name)
            return False

        if request.cache_config is None:
            logger.warning("Missing cache config during validation")
            return False

        used = metadata.invocations_used or 0
        if used > request.cache_config.cache_intervals:
            logger.info(
                "Cache exceeded cache intervals",
                cache_name=metadata.cache_name,
                invocations_used=used,
                cache_intervals=request.cache_config.cache_intervals,
            )
            return False

        current = generate_cache_fingerprint(request, metadata.contents_count)
        if current != metadata.fingerprint:
            logger.debug(
                "Cache content fingerprint mismatch",
                current=current,
                cached=metadata.fingerprint,
            )
            return False

        return True

    async def create_new_cache_with_contents(
        self, request: LlmRequest, contents_count: int
    ) -> Optional[CacheMetadata]:
        """Create a cache over the first ``contents_count`` contents.

        Returns None (caching skipped) when the prefix is below the
        configured or the provider minimum, when the provider has no cache
        support, or when a provider call fails.
        """
        if request.cache_config is None:
            logger.warning("Missing cache config in create_new_cache_with_contents")
            return None

        if not self.provider.supports_caching:
            logger.debug("Provider does not support context caching", provider=self.provider.provider)
            return None

        try:
            token_count = await self._count_cache_tokens(request, contents_count)
            min_tokens = request.cache_config.min_tokens

            if token_count < min_tokens:
                logger.info(
                    "Cache SKIP: context too small",
                    token_count=token_count,
                    min_tokens=min_tokens,
                )
                return None

            if token_count < self.provider.min_cacheable_tokens:
                logger.info(
                    "Cache SKIP: below provider minimum",
                    token_count=token_count,
                    provider_min=self.provider.min_cacheable_tokens,
                )
                return None

            return await self._create_cache(request, request.cache_config, contents_count)
        except CacheProviderError as e:
            logger.warning("Failed to count tokens or create cache", error=str(e))
            return None

    async def cleanup_cache(self, cache_name: str) -> None:
        """Delete a provider cache. Failures are logged only."""
        logger.debug("Attempting to delete cache", cache_name=cache_name)
        try:
            await self.provider.delete_cache(cache_name)
            logger.info("Cache cleaned up", cache_name=cache_name)
        except CacheProviderError as e:
            logger.warning("Failed to cleanup cache", cache_name=cache_name, error=str(e))

    def populate_cache_metadata_in_response(
        self, response: dict[str, Any], metadata: CacheMetadata
    ) -> None:
        """Attach a copy of the metadata to an LLM response payload."""
        response["cache_metadata"] = metadata.copy_with()

    async def _create_or_fingerprint(
        self, request: LlmRequest, contents_count: int
    ) -> tuple[CacheMetadata, Optional[CacheApplication]]:
        created = await self.create_new_cache_with_contents(request, contents_count)
        if created is not None and created.cache_name:
            return created, CacheApplication(created.cache_name, contents_count)
        return self._fingerprint_only(request, contents_count), None

    def _fingerprint_only(self, request: LlmRequest, contents_count: int) -> CacheMetadata:
        return CacheMetadata(
            fingerprint=generate_cache_fingerprint(request, contents_count),
            contents_count=contents_count,
            expire_time=FINGERPRINT_ONLY_EXPIRE_TIME,
            invocations_used=FINGERPRINT_ONLY_INVOCATIONS,
        )

    async def _count_cache_tokens(self, request: LlmRequest, contents_count: int) -> int:
        if request.cacheable_contents_token_count is not None:
            return request.cacheable_contents_token_count

        logger.debug("Counting cache tokens", contents_count=contents_count)
        return await self.provider.count_tokens(
            model=request.model,
            contents=list(request.contents[:contents_count]),
            system_instruction=request.config.system_instruction,
            tools=request.config.tools,
        )

    async def _create_cache(
        self, request: LlmRequest, config: ContextCacheConfig, contents_count: int
    ) -> CacheMetadata:
        created_at = self._clock()
        cache_name = await self.provider.create_cache(
            model=request.model,
            contents=list(request.contents[:contents_count]),
            ttl=config.ttl_string,
            display_name=f"adk-cache-{int(created_at)}-{contents_count}contents",
            system_instruction=request.config.system_instruction,
            tools=request.config.tools,
            tool_config=request.config.tool_config,
        )

        logger.info("Cache CREATED", cache_name=cache_name, contents_count=contents_count)

        return CacheMetadata(
            cache_name=cache_name,
            expire_time=created_at + config.ttl_seconds,
            fingerprint=generate_cache_fingerprint(request, contents_count),
            invocations_used=INITIAL_INVOCATIONS_USED,
            contents_count=contents_count,
            created_at=created_at,
        )
