"""Anthropic token counting for the cache manager.

Anthropic prompt caching is marker based (``cache_control`` blocks on the
request) rather than a server-side cache resource, so this client reports
``supports_caching = False`` and only provides token counts.
"""

import os
from typing import Any, Optional

import anthropic

from adkit.errors import CacheProviderError
from adkit.models.providers.base import CacheProviderClient, content_to_dict
from adkit.telemetry.logger import get_logger

logger = get_logger(__name__)


class AnthropicCacheClient(CacheProviderClient):
    """Anthropic implementation of the cache provider boundary."""

    supports_caching = False

    def __init__(
        self,
        api_key: Optional[str] = None,
        client: Optional[anthropic.AsyncAnthropic] = None,
    ) -> None:
        if client is None:
            api_key = api_key or os.environ.get("ANTHROPIC_API_KEY", "")
            if not api_key:
                logger.warning("No Anthropic API key provided")
            client = anthropic.AsyncAnthropic(api_key=api_key)
        self._client = client

    @property
    def provider(self) -> str:
        return "anthropic"

    async def count_tokens(
        self,
        model: str,
        contents: list[Any],
        system_instruction: Optional[Any] = None,
        tools: Optional[list[dict[str, Any]]] = None,
    ) -> int:
        messages = [self._to_message(content_to_dict(c)) for c in contents]
        kwargs: dict[str, Any] = {"model": model, "messages": messages}
        if system_instruction:
            kwargs["system"] = str(system_instruction)
        if tools:
            kwargs["tools"] = [
                {
                    "name": d["name"],
                    "description": d.get("description", ""),
                    "input_schema": d.get("parameters") or {"type": "object"},
                }
                for tool in tools
                for d in tool.get("function_declarations", [])
            ]
        try:
            result = await self._client.messages.count_tokens(**kwargs)
        except anthropic.APIError as e:
            raise CacheProviderError(f"Anthropic count_tokens failed: {e}") from e
        return result.input_tokens

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
        raise CacheProviderError("Anthropic does not support server-side context caches")

    async def delete_cache(self, name: str) -> None:
        raise CacheProviderError("Anthropic does not support server-side context caches")

    @staticmethod
    def _to_message(content: Any) -> dict[str, Any]:
        """Convert a Gemini-shaped content dict to an Anthropic message."""
        if not isinstance(content, dict):
            return {"role": "user", "content": str(content)}
        role = "assistant" if content.get("role") == "model" else "user"
        text = "".join(p.get("text", "") for p in content.get("parts", []) if isinstance(p, dict))
        return {"role": role, "content": text}
