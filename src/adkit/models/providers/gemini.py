"""Gemini context cache client using the google-genai SDK."""

import os
from typing import Any, Optional

from google import genai
from google.genai import types

from adkit.errors import CacheProviderError
from adkit.models.providers.base import CacheProviderClient, content_to_dict
from adkit.telemetry.logger import get_logger

logger = get_logger(__name__)

# Gemini rejects caches smaller than this
GOOGLE_MIN_TOKENS = 1024


class GeminiCacheClient(CacheProviderClient):
    """Gemini implementation of the cache provider boundary.

    Example:
        client = GeminiCacheClient(api_key=os.environ["GOOGLE_API_KEY"])
        manager = ContextCacheManager(client)
    """

    supports_caching = True
    min_cacheable_tokens = GOOGLE_MIN_TOKENS

    def __init__(
        self,
        api_key: Optional[str] = None,
        client: Optional[genai.Client] = None,
    ) -> None:
        """Initialize the Gemini cache client.

        Args:
            api_key: Google API key. Uses GOOGLE_API_KEY env var if not provided.
            client: Pre-built genai client (tests, Vertex configuration)
        """
        if client is None:
            api_key = api_key or os.environ.get("GOOGLE_API_KEY") or os.environ.get(
                "GEMINI_API_KEY"
            )
            if not api_key:
                logger.warning("No Google API key provided")
            client = genai.Client(api_key=api_key)
        self._client = client

    @property
    def provider(self) -> str:
        return "gemini"

    async def count_tokens(
        self,
        model: str,
        contents: list[Any],
        system_instruction: Optional[Any] = None,
        tools: Optional[list[dict[str, Any]]] = None,
    ) -> int:
        to_count = [content_to_dict(c) for c in contents]
        if system_instruction:
            text = system_instruction if isinstance(system_instruction, str) else str(
                system_instruction
            )
            to_count.insert(0, {"role": "user", "parts": [{"text": text}]})

        config = types.CountTokensConfig(tools=tools) if tools else None
        try:
            result = await self._client.aio.models.count_tokens(
                model=model,
                contents=to_count,
                config=config,
            )
        except Exception as e:
            raise CacheProviderError(f"Gemini count_tokens failed: {e}") from e

        total = result.total_tokens or 0
        logger.debug("countTokens returned", model=model, total_tokens=total)
        return total

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
        config = types.CreateCachedContentConfig(
            contents=[content_to_dict(c) for c in contents],
            ttl=ttl,
            display_name=display_name,
            system_instruction=system_instruction,
            tools=tools,
            tool_config=tool_config,
        )
        try:
            cached = await self._client.aio.caches.create(model=model, config=config)
        except Exception as e:
            raise CacheProviderError(f"Gemini cache creation failed: {e}") from e

        if not cached.name:
            raise CacheProviderError("Gemini returned a cache without a name")
        return cached.name

    async def delete_cache(self, name: str) -> None:
        try:
            await self._client.aio.caches.delete(name=name)
        except Exception as e:
            raise CacheProviderError(f"Gemini cache deletion failed: {e}") from e
