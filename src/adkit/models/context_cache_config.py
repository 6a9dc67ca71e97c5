"""Per-app context cache configuration."""

from pydantic import BaseModel, ConfigDict, Field

from adkit.config.schemas import ContextCacheSettings


class ContextCacheConfig(BaseModel):
    """Controls context caching for every LLM call of an app.

    When a request carries no ContextCacheConfig, caching is disabled.
    """

    model_config = ConfigDict(frozen=True)

    cache_intervals: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Maximum invocations to reuse the same cache before refreshing it",
    )
    ttl_seconds: int = Field(
        default=1800,
        gt=0,
        description="Time-to-live for the provider cache in seconds",
    )
    min_tokens: int = Field(
        default=0,
        ge=0,
        description="Minimum request tokens required to enable caching",
    )

    @property
    def ttl_string(self) -> str:
        """TTL in the provider's duration format, e.g. "1800s"."""
        return f"{self.ttl_seconds}s"

    @classmethod
    def from_settings(cls, settings: ContextCacheSettings) -> "ContextCacheConfig":
        """Build from the application configuration section."""
        return cls(
            cache_intervals=settings.cache_intervals,
            ttl_seconds=settings.ttl_seconds,
            min_tokens=settings.min_tokens,
        )

    def __str__(self) -> str:
        return (
            f"ContextCacheConfig(cache_intervals={self.cache_intervals}, "
            f"ttl={self.ttl_seconds}s, min_tokens={self.min_tokens})"
        )
