"""Key-value backends for the response cache.

Both stores speak plain strings with a TTL in seconds. Any backend failure is
raised as :class:`CacheStoreUnavailableError`; degrading to pass-through is
the :class:`~.response_cache.ResponseCache`'s job, not the store's.
"""

import fnmatch
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from .models import CacheEntry
from ...constants import DEFAULT_CACHE_STORE_TIMEOUT_SECONDS
from ...domain.exceptions import CacheStoreUnavailableError


class CacheStore(ABC):
    """Interface every response-cache backend implements."""

    name: str = "abstract"

    async def open(self) -> None:
        """Acquire backend resources. Default is a no-op."""

    async def close(self) -> None:
        """Release backend resources. Default is a no-op."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the live value for ``key`` or ``None``."""

    @abstractmethod
    async def set(self, key: str, value: str, ttl_seconds: float) -> None:
        """Store ``value`` under ``key`` for ``ttl_seconds``."""

    @abstractmethod
    async def delete(self, key: str) -> int:
        """Delete ``key``; return the number of keys removed."""

    @abstractmethod
    async def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching the glob ``pattern``."""

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Whether ``key`` holds a live value."""

    @abstractmethod
    async def ping(self) -> bool:
        """Check backend reachability."""

    async def purge_expired(self) -> int:
        """Physically remove expired entries. Backends with native expiry skip this."""
        return 0


class MemoryCacheStore(CacheStore):
    """In-process store with lazy expiry on read.

    Expired entries are invisible to every read as soon as their TTL lapses;
    :meth:`purge_expired` reclaims their memory. There is no capacity bound.
    """

    name = "memory"

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def _live_entry(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            self._entries.pop(key, None)
            return None
        return entry

    async def get(self, key: str) -> Optional[str]:
        entry = self._live_entry(key)
        return entry.value if entry else None

    async def set(self, key: str, value: str, ttl_seconds: float) -> None:
        self._entries[key] = CacheEntry(
            key=key, value=value, ttl_seconds=ttl_seconds, created_at=self._clock()
        )

    async def delete(self, key: str) -> int:
        return 1 if self._entries.pop(key, None) is not None else 0

    async def delete_pattern(self, pattern: str) -> int:
        matched = [k for k in self._entries if fnmatch.fnmatchcase(k, pattern)]
        for key in matched:
            del self._entries[key]
        return len(matched)

    async def exists(self, key: str) -> bool:
        return self._live_entry(key) is not None

    async def ping(self) -> bool:
        return True

    async def purge_expired(self) -> int:
        now = self._clock()
        expired = [k for k, e in self._entries.items() if e.is_expired(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)


class RedisCacheStore(CacheStore):
    """Redis-backed store using native key expiry.

    Socket timeouts bound every call, so an unresponsive server surfaces as
    :class:`CacheStoreUnavailableError` instead of a hung request.
    """

    name = "redis"

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        timeout_seconds: float = DEFAULT_CACHE_STORE_TIMEOUT_SECONDS,
        client: Optional[Any] = None,
        scan_count: int = 500,
    ):
        self._url = url
        self._timeout = timeout_seconds
        self._client = client
        self._owns_client = client is None
        self._scan_count = scan_count

    async def open(self) -> None:
        if self._client is None:
            self._client = aioredis.Redis.from_url(
                self._url,
                decode_responses=True,
                socket_timeout=self._timeout,
                socket_connect_timeout=self._timeout,
            )

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> Any:
        if self._client is None:
            raise CacheStoreUnavailableError(
                "Redis store is not open", backend=self.name
            )
        return self._client

    def _unavailable(self, operation: str, exc: BaseException) -> CacheStoreUnavailableError:
        return CacheStoreUnavailableError(
            f"Redis {operation} failed: {exc}",
            backend=self.name,
            operation=operation,
        )

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self.client.get(key)
        except (RedisError, OSError) as e:
            raise self._unavailable("get", e) from e

    async def set(self, key: str, value: str, ttl_seconds: float) -> None:
        try:
            await self.client.set(key, value, px=max(1, int(ttl_seconds * 1000)))
        except (RedisError, OSError) as e:
            raise self._unavailable("set", e) from e

    async def delete(self, key: str) -> int:
        try:
            return int(await self.client.delete(key))
        except (RedisError, OSError) as e:
            raise self._unavailable("delete", e) from e

    async def delete_pattern(self, pattern: str) -> int:
        removed = 0
        batch: list[str] = []
        try:
            async for key in self.client.scan_iter(match=pattern, count=self._scan_count):
                batch.append(key)
                if len(batch) >= self._scan_count:
                    removed += int(await self.client.delete(*batch))
                    batch = []
            if batch:
                removed += int(await self.client.delete(*batch))
        except (RedisError, OSError) as e:
            raise self._unavailable("delete_pattern", e) from e
        return removed

    async def exists(self, key: str) -> bool:
        try:
            return int(await self.client.exists(key)) > 0
        except (RedisError, OSError) as e:
            raise self._unavailable("exists", e) from e

    async def ping(self) -> bool:
        try:
            return bool(await self.client.ping())
        except (RedisError, OSError) as e:
            raise self._unavailable("ping", e) from e
