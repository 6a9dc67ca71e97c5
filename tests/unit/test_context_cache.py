"""Tests for the context cache manager."""

from typing import Optional

import pytest

from adkit.models.cache_metadata import CacheMetadata
from adkit.models.context_cache_config import ContextCacheConfig
from adkit.models.context_cache_manager import (
    CacheApplication,
    ContextCacheManager,
    apply_cache_to_request,
)
from adkit.models.fingerprint import generate_cache_fingerprint
from adkit.models.llm_request import LlmRequest, LlmRequestConfig
from adkit.sessions.schemas import Content

NOW = 1_700_000_000.0

TOOLS = [{"function_declarations": [{"name": "lookup", "description": "Look things up"}]}]


class FakeClock:
    """Settable clock."""

    def __init__(self, now: float = NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def make_request(
    texts: list[str],
    cache_config: Optional[ContextCacheConfig] = None,
    metadata: Optional[CacheMetadata] = None,
    system_instruction: str = "You are a helpful assistant.",
) -> LlmRequest:
    return LlmRequest(
        model="gemini-2.5-flash",
        contents=[Content.from_text(t) for t in texts],
        config=LlmRequestConfig(
            system_instruction=system_instruction,
            tools=TOOLS,
            tool_config={"function_calling_config": {"mode": "AUTO"}},
        ),
        cache_config=cache_config if cache_config is not None else ContextCacheConfig(),
        cache_metadata=metadata,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


class TestCacheMetadata:
    """Tests for CacheMetadata validation."""

    def test_fingerprint_required(self) -> None:
        """Should reject an empty fingerprint."""
        with pytest.raises(ValueError):
            CacheMetadata(fingerprint="", contents_count=0)

    def test_negative_counts_rejected(self) -> None:
        """Should reject negative counts."""
        with pytest.raises(ValueError):
            CacheMetadata(fingerprint="abc", contents_count=-1)
        with pytest.raises(ValueError):
            CacheMetadata(fingerprint="abc", contents_count=0, invocations_used=-1)

    def test_frozen(self) -> None:
        """Should not allow mutation."""
        metadata = CacheMetadata(fingerprint="abc", contents_count=1)
        with pytest.raises(ValueError):
            metadata.contents_count = 2  # type: ignore[misc]

    def test_copy_with(self) -> None:
        """Should return a modified copy."""
        metadata = CacheMetadata(cache_name="c/1", fingerprint="abc", contents_count=1, invocations_used=1)
        copy = metadata.copy_with(invocations_used=2)

        assert copy.invocations_used == 2
        assert metadata.invocations_used == 1
        assert copy.cache_name == "c/1"

    def test_fingerprint_only(self) -> None:
        """Metadata without a cache name should be fingerprint-only."""
        assert CacheMetadata(fingerprint="abc", contents_count=0).is_fingerprint_only
        assert "Fingerprint-only" in str(CacheMetadata(fingerprint="abcdef123", contents_count=3))


class TestCacheCreation:
    """Tests for requests without previous metadata."""

    @pytest.mark.asyncio
    async def test_no_cache_config_disables_caching(self, fake_provider, clock) -> None:
        """Should return None and leave the request untouched."""
        manager = ContextCacheManager(fake_provider, clock=clock)
        request = make_request(["hello"])
        request.cache_config = None

        assert await manager.handle_context_caching(request) is None
        assert request.config.system_instruction is not None
        assert fake_provider.count_calls == 0

    @pytest.mark.asyncio
    async def test_creates_cache_and_rewrites_request(self, fake_provider, clock) -> None:
        """Should create a cache over all contents and strip them from the request."""
        manager = ContextCacheManager(fake_provider, clock=clock)
        request = make_request(["first", "second"], ContextCacheConfig(ttl_seconds=600))

        metadata = await manager.handle_context_caching(request)

        assert metadata is not None
        assert metadata.cache_name == "cachedContents/cache-1"
        assert metadata.invocations_used == 1
        assert metadata.contents_count == 2
        assert metadata.expire_time == NOW + 600
        assert fake_provider.created[0]["ttl"] == "600s"
        assert fake_provider.created[0]["display_name"].endswith("-2contents")

        assert request.config.cached_content == "cachedContents/cache-1"
        assert request.config.system_instruction is None
        assert request.config.tools is None
        assert request.config.tool_config is None
        assert request.contents == []

    @pytest.mark.asyncio
    async def test_below_provider_minimum(self, make_provider, clock) -> None:
        """Should fall back to fingerprint-only metadata below the provider minimum."""
        provider = make_provider(token_count=500)
        manager = ContextCacheManager(provider, clock=clock)
        request = make_request(["short"])

        metadata = await manager.handle_context_caching(request)

        assert metadata is not None
        assert metadata.cache_name is None
        assert metadata.expire_time == 0
        assert metadata.invocations_used == 0
        assert metadata.contents_count == 1
        assert provider.created == []
        assert request.config.system_instruction is not None
        assert len(request.contents) == 1

    @pytest.mark.asyncio
    async def test_below_configured_minimum(self, fake_provider, clock) -> None:
        """Should skip caching below min_tokens."""
        manager = ContextCacheManager(fake_provider, clock=clock)
        request = make_request(["text"], ContextCacheConfig(min_tokens=10_000))

        metadata = await manager.handle_context_caching(request)

        assert metadata is not None and metadata.is_fingerprint_only
        assert fake_provider.created == []

    @pytest.mark.asyncio
    async def test_precomputed_token_count(self, fake_provider, clock) -> None:
        """Should use a precomputed token count instead of calling the provider."""
        manager = ContextCacheManager(fake_provider, clock=clock)
        request = make_request(["text"])
        request.cacheable_contents_token_count = 4096

        metadata = await manager.handle_context_caching(request)

        assert metadata is not None and metadata.cache_name
        assert fake_provider.count_calls == 0

    @pytest.mark.asyncio
    async def test_provider_failure_degrades(self, make_provider, clock) -> None:
        """Provider errors should result in no caching, not an exception."""
        provider = make_provider(fail="create")
        manager = ContextCacheManager(provider, clock=clock)
        request = make_request(["text"])

        metadata = await manager.handle_context_caching(request)

        assert metadata is not None and metadata.is_fingerprint_only
        assert request.config.cached_content is None

    @pytest.mark.asyncio
    async def test_unsupported_provider(self, fake_provider, clock) -> None:
        """Providers without cache support should only get fingerprints."""
        fake_provider.supports_caching = False
        manager = ContextCacheManager(fake_provider, clock=clock)

        metadata = await manager.handle_context_caching(make_request(["text"]))

        assert metadata is not None and metadata.is_fingerprint_only
        assert fake_provider.count_calls == 0


class TestCacheReuse:
    """Tests for requests carrying metadata from a previous call."""

    async def _first_call(self, manager: ContextCacheManager, config: ContextCacheConfig) -> CacheMetadata:
        metadata = await manager.handle_context_caching(make_request(["first", "second"], config))
        assert metadata is not None and metadata.cache_name
        return metadata

    @pytest.mark.asyncio
    async def test_reuse_increments_invocations(self, fake_provider, clock) -> None:
        """A valid cache should be reused with one more invocation."""
        manager = ContextCacheManager(fake_provider, clock=clock)
        config = ContextCacheConfig(cache_intervals=5)
        first = await self._first_call(manager, config)

        request = make_request(["first", "second", "third"], config, first)
        metadata = await manager.handle_context_caching(request)

        assert metadata is not None
        assert metadata.cache_name == first.cache_name
        assert metadata.invocations_used == first.invocations_used + 1
        assert first.invocations_used == 1
        assert [c.text for c in request.contents] == ["third"]
        assert request.config.cached_content == first.cache_name
        assert len(fake_provider.created) == 1

    @pytest.mark.asyncio
    async def test_reuse_at_interval_boundary(self, fake_provider, clock) -> None:
        """A cache used exactly cache_intervals times should still be valid."""
        manager = ContextCacheManager(fake_provider, clock=clock)
        config = ContextCacheConfig(cache_intervals=3)
        first = await self._first_call(manager, config)

        at_limit = first.copy_with(invocations_used=3)
        metadata = await manager.handle_context_caching(make_request(["first", "second"], config, at_limit))

        assert metadata is not None
        assert metadata.cache_name == first.cache_name
        assert metadata.invocations_used == 4

    @pytest.mark.asyncio
    async def test_exceeding_intervals_recreates(self, fake_provider, clock) -> None:
        """Past cache_intervals the old cache should be replaced."""
        manager = ContextCacheManager(fake_provider, clock=clock)
        config = ContextCacheConfig(cache_intervals=3)
        first = await self._first_call(manager, config)

        over_limit = first.copy_with(invocations_used=4)
        request = make_request(["first", "second", "third"], config, over_limit)
        metadata = await manager.handle_context_caching(request)

        assert fake_provider.deleted == [first.cache_name]
        assert metadata is not None
        assert metadata.cache_name != first.cache_name
        assert metadata.cache_name == "cachedContents/cache-2"
        assert metadata.contents_count == 2
        assert metadata.invocations_used == 1
        assert [c.text for c in request.contents] == ["third"]

    @pytest.mark.asyncio
    async def test_expired_cache_recreated(self, fake_provider, clock) -> None:
        """An expired cache should be deleted and recreated."""
        manager = ContextCacheManager(fake_provider, clock=clock)
        config = ContextCacheConfig(ttl_seconds=60)
        first = await self._first_call(manager, config)

        clock.now = NOW + 60
        metadata = await manager.handle_context_caching(make_request(["first", "second"], config, first))

        assert fake_provider.deleted == [first.cache_name]
        assert metadata is not None
        assert metadata.cache_name == "cachedContents/cache-2"
        assert metadata.expire_time == NOW + 120

    @pytest.mark.asyncio
    async def test_changed_prefix_falls_back(self, fake_provider, clock) -> None:
        """A changed cached prefix should give fingerprint-only metadata over all contents."""
        manager = ContextCacheManager(fake_provider, clock=clock)
        config = ContextCacheConfig()
        first = await self._first_call(manager, config)

        request = make_request(
            ["first", "second", "third"],
            config,
            first,
            system_instruction="Different instructions.",
        )
        metadata = await manager.handle_context_caching(request)

        assert fake_provider.deleted == [first.cache_name]
        assert metadata is not None
        assert metadata.is_fingerprint_only
        assert metadata.contents_count == 3
        assert metadata.fingerprint == generate_cache_fingerprint(request, 3)
        assert len(request.contents) == 3
        assert len(fake_provider.created) == 1

    @pytest.mark.asyncio
    async def test_fingerprint_only_metadata_creates_cache(self, fake_provider, clock) -> None:
        """Fingerprint-only metadata with a stable prefix should lead to a new cache."""
        manager = ContextCacheManager(fake_provider, clock=clock)
        config = ContextCacheConfig()
        previous = make_request(["first", "second"], config)
        fingerprint_only = CacheMetadata(
            fingerprint=generate_cache_fingerprint(previous, 2),
            contents_count=2,
            expire_time=0,
            invocations_used=0,
        )

        request = make_request(["first", "second", "third"], config, fingerprint_only)
        metadata = await manager.handle_context_caching(request)

        assert fake_provider.deleted == []
        assert metadata is not None and metadata.cache_name == "cachedContents/cache-1"
        assert metadata.contents_count == 2

    @pytest.mark.asyncio
    async def test_delete_failure_is_not_fatal(self, make_provider, clock) -> None:
        """A failed delete should be logged and ignored."""
        provider = make_provider(fail="delete")
        manager = ContextCacheManager(provider, clock=clock)
        config = ContextCacheConfig(cache_intervals=1)
        first = await self._first_call(manager, config)

        over_limit = first.copy_with(invocations_used=2)
        metadata = await manager.handle_context_caching(make_request(["first", "second"], config, over_limit))

        assert provider.deleted == [first.cache_name]
        assert metadata is not None and metadata.cache_name == "cachedContents/cache-2"

    @pytest.mark.asyncio
    async def test_unnamed_unexpired_metadata_not_reused(self, fake_provider, clock) -> None:
        """Metadata without a cache name should never be reported as a hit."""
        manager = ContextCacheManager(fake_provider, clock=clock)
        config = ContextCacheConfig()
        first = await self._first_call(manager, config)

        unnamed = first.copy_with(cache_name=None)
        request = make_request(["first", "second"], config, unnamed)
        metadata = await manager.handle_context_caching(request)

        assert fake_provider.deleted == []
        assert metadata is not None and metadata.cache_name == "cachedContents/cache-2"
        assert request.config.cached_content == "cachedContents/cache-2"


class TestCacheApplication:
    """Tests for the cache plan and its application."""

    @pytest.mark.asyncio
    async def test_plan_does_not_mutate(self, fake_provider, clock) -> None:
        """compute_cache_plan should leave the request as is."""
        manager = ContextCacheManager(fake_provider, clock=clock)
        request = make_request(["a", "b"])

        metadata, application = await manager.compute_cache_plan(request)

        assert metadata is not None
        assert application == CacheApplication(cached_content="cachedContents/cache-1", drop_leading=2)
        assert len(request.contents) == 2
        assert request.config.cached_content is None

    def test_apply_cache_to_request(self) -> None:
        """Should strip cached parts and reference the cache."""
        request = make_request(["a", "b", "c"])

        apply_cache_to_request(request, CacheApplication("cachedContents/x", 2))

        assert request.config.cached_content == "cachedContents/x"
        assert request.config.tools is None
        assert [c.text for c in request.contents] == ["c"]

    def test_populate_cache_metadata_in_response(self, fake_provider) -> None:
        """Should attach a copy of the metadata."""
        manager = ContextCacheManager(fake_provider)
        metadata = CacheMetadata(cache_name="c/1", fingerprint="abc", contents_count=1)
        response: dict = {}

        manager.populate_cache_metadata_in_response(response, metadata)

        assert response["cache_metadata"] == metadata
        assert response["cache_metadata"] is not metadata
