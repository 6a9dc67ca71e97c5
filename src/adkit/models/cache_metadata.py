"""Immutable metadata describing a provider-side context cache."""

import time
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Seconds before expiry at which a cache counts as "expiring soon"
EXPIRE_SOON_BUFFER_SECONDS = 120


class CacheMetadata(BaseModel):
    """Cache state carried from one LLM call to the next.

    A metadata object without ``cache_name`` is "fingerprint-only": it records
    what the request looked like, but no provider cache is active.

    Attributes:
        cache_name: Provider resource name of the cache
        expire_time: Expiry as seconds since the epoch
        fingerprint: Hash of the cached request prefix
        invocations_used: Number of calls served by this cache
        contents_count: Number of leading contents covered by the cache
        created_at: Creation time as seconds since the epoch
    """

    model_config = ConfigDict(frozen=True)

    cache_name: Optional[str] = None
    expire_time: Optional[float] = None
    fingerprint: str
    invocations_used: Optional[int] = Field(default=None, ge=0)
    contents_count: int = Field(ge=0)
    created_at: Optional[float] = None

    @field_validator("fingerprint")
    @classmethod
    def validate_fingerprint(cls, v: str) -> str:
        if not v:
            raise ValueError("fingerprint is required")
        return v

    @property
    def is_fingerprint_only(self) -> bool:
        """True when no provider cache backs this metadata."""
        return not self.cache_name

    @property
    def expire_soon(self) -> bool:
        """True when the cache expires within the buffer window."""
        if self.expire_time is None:
            return False
        return time.time() > self.expire_time - EXPIRE_SOON_BUFFER_SECONDS

    def copy_with(self, **updates: Any) -> "CacheMetadata":
        """Return a validated copy with the given fields replaced."""
        data = self.model_dump()
        data.update(updates)
        return CacheMetadata(**data)

    def __str__(self) -> str:
        if not self.cache_name:
            return (
                f"Fingerprint-only: {self.contents_count} contents, "
                f"fingerprint={self.fingerprint[:8]}..."
            )

        cache_id = self.cache_name.split("/")[-1]
        if self.expire_time is not None:
            minutes = (self.expire_time - time.time()) / 60
            expiry = f"expires in {minutes:.1f}min"
        else:
            expiry = "no expiry"
        return (
            f"Cache {cache_id}: used {self.invocations_used} invocations, "
            f"cached {self.contents_count} contents, {expiry}"
        )
