"""Data models for the cache module."""

from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class CacheEntry:
    """A stored value with its time-to-live.

    ``created_at`` is read from the owning store's clock, so expiry can be
    tested with an injected clock instead of sleeping.
    """

    key: str
    value: str
    ttl_seconds: float
    created_at: float

    @property
    def expires_at(self) -> float:
        return self.created_at + self.ttl_seconds

    def is_expired(self, now: float) -> bool:
        """Check if this entry has outlived its TTL at ``now``."""
        return now >= self.expires_at

    def remaining_ttl(self, now: float) -> float:
        return max(0.0, self.expires_at - now)


@dataclass
class CacheLookup:
    """Result of a cache read.

    Attributes:
        key: The key that was looked up.
        hit: Whether a live value was found.
        value: Deserialized value on a hit, ``None`` otherwise.
        reason: Why a miss happened (``absent``, ``disabled``,
            ``store_error``, ``corrupt``); ``None`` on a hit.
    """

    key: str
    hit: bool
    value: Any = None
    reason: Optional[str] = None

    @classmethod
    def miss(cls, key: str, reason: str = "absent") -> "CacheLookup":
        return cls(key=key, hit=False, value=None, reason=reason)
