"""Read-through response cache with TTL expiry and explicit invalidation."""

import json
import time
from typing import Any, Callable, Dict, Optional

import anyio

from .circuit_breaker import CacheCircuitBreaker
from .keys import QueryInput, build_cache_key
from .models import CacheLookup
from .statistics import CacheStatistics
from .stores import CacheStore
from ..events import EventHub
from ...constants import (
    DEFAULT_CACHE_FAILURE_RESET_SECONDS,
    DEFAULT_CACHE_FAILURE_THRESHOLD,
    DEFAULT_CACHE_NAMESPACE,
    DEFAULT_CACHE_TTL_SECONDS,
)
from ...domain.exceptions import CacheStoreUnavailableError
from ...domain.models import CacheHealth
from ...logging import debug, info, warning, LogRecord, LogEvent


def _short(key: str) -> str:
    return key if len(key) <= 96 else key[:93] + "..."


class ResponseCache:
    """
    Best-effort cache in front of idempotent GET endpoints.

    Delegates storage to a :class:`CacheStore` and wraps it so that caching
    can never fail a request:

    - store errors on read become misses, on write become ``False``;
    - a :class:`CacheCircuitBreaker` bypasses a store that keeps failing;
    - :class:`CacheStatistics` counts hits and misses deterministically.

    Values are JSON-serialized before they reach the store.
    """

    def __init__(
        self,
        store: CacheStore,
        namespace: str = DEFAULT_CACHE_NAMESPACE,
        default_ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
        enabled: bool = True,
        failure_threshold: int = DEFAULT_CACHE_FAILURE_THRESHOLD,
        failure_reset_seconds: float = DEFAULT_CACHE_FAILURE_RESET_SECONDS,
        events: Optional[EventHub] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._store = store
        self._namespace = namespace
        self._default_ttl = default_ttl_seconds
        self._enabled = enabled
        self._statistics = CacheStatistics()
        self._circuit_breaker = CacheCircuitBreaker(
            failure_threshold=failure_threshold,
            reset_time=failure_reset_seconds,
            clock=clock,
        )
        self.events = events or EventHub()
        self._opened = False

    @property
    def store(self) -> CacheStore:
        return self._store

    @property
    def namespace(self) -> str:
        return self._namespace

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def default_ttl_seconds(self) -> float:
        return self._default_ttl

    async def open(self) -> None:
        """Open the underlying store. Connection failures only disable caching."""
        if self._opened:
            return
        try:
            await self._store.open()
        except (CacheStoreUnavailableError, OSError) as e:
            self._record_store_error("open", e)
        self._opened = True
        info(
            LogRecord(
                event=LogEvent.CACHE_EVENT.value,
                message="Response cache opened",
                data={"backend": self._store.name, "enabled": self._enabled},
            )
        )

    async def close(self) -> None:
        if not self._opened:
            return
        try:
            await self._store.close()
        finally:
            self._opened = False

    async def __aenter__(self) -> "ResponseCache":
        await self.open()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def make_key(self, method: str, path: str, query: QueryInput = None) -> str:
        """Build this cache's key for a request."""
        return build_cache_key(method, path, query, namespace=self._namespace)

    def _record_store_error(
        self, operation: str, exc: BaseException, request_id: Optional[str] = None
    ) -> None:
        self._statistics.record_store_error()
        self._circuit_breaker.record_failure()
        warning(
            LogRecord(
                event=LogEvent.CACHE_STORE_ERROR.value,
                message=f"Cache store {operation} failed, passing through",
                request_id=request_id,
                data={"backend": self._store.name, "operation": operation},
            ),
            exc=exc,
        )

    async def get(self, key: str, request_id: Optional[str] = None) -> CacheLookup:
        """
        Look up ``key``.

        Returns:
            A hit with the deserialized value, or a miss. Never raises for
            store failures.
        """
        if not self._enabled:
            return CacheLookup.miss(key, "disabled")

        if self._circuit_breaker.is_open():
            self._statistics.record_bypass()
            self._statistics.record_miss()
            return CacheLookup.miss(key, "store_error")

        try:
            raw = await self._store.get(key)
        except CacheStoreUnavailableError as e:
            self._record_store_error("get", e, request_id)
            self._statistics.record_miss()
            await self.events.publish("cache_miss", {"key": key, "reason": "store_error"})
            return CacheLookup.miss(key, "store_error")

        self._circuit_breaker.record_success()

        if raw is None:
            self._statistics.record_miss()
            debug(
                LogRecord(
                    event=LogEvent.CACHE_MISS.value,
                    message="Cache miss",
                    request_id=request_id,
                    data={"cache_key": _short(key)},
                )
            )
            await self.events.publish("cache_miss", {"key": key, "reason": "absent"})
            return CacheLookup.miss(key)

        try:
            value = json.loads(raw)
        except (TypeError, ValueError) as e:
            self._statistics.record_miss()
            warning(
                LogRecord(
                    event=LogEvent.CACHE_MISS.value,
                    message="Discarding undecodable cache entry",
                    request_id=request_id,
                    data={"cache_key": _short(key)},
                ),
                exc=e,
            )
            return CacheLookup.miss(key, "corrupt")

        self._statistics.record_hit()
        debug(
            LogRecord(
                event=LogEvent.CACHE_HIT.value,
                message="Cache hit",
                request_id=request_id,
                data={"cache_key": _short(key)},
            )
        )
        await self.events.publish("cache_hit", {"key": key})
        return CacheLookup(key=key, hit=True, value=value)

    async def set(
        self,
        key: str,
        value: Any,
        ttl_seconds: Optional[float] = None,
        request_id: Optional[str] = None,
    ) -> bool:
        """
        Store ``value`` under ``key``, overwriting and restarting its TTL.

        Returns:
            True if stored, False if caching is off or the store failed
        """
        if not self._enabled or self._circuit_breaker.is_open():
            return False

        ttl = self._default_ttl if ttl_seconds is None else ttl_seconds
        if ttl <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl}")

        try:
            payload = json.dumps(value, ensure_ascii=False, separators=(",", ":"))
        except (TypeError, ValueError) as e:
            self._statistics.record_set_failure()
            warning(
                LogRecord(
                    event=LogEvent.CACHE_SET.value,
                    message="Value is not JSON serializable, not caching",
                    request_id=request_id,
                    data={"cache_key": _short(key)},
                ),
                exc=e,
            )
            return False

        try:
            await self._store.set(key, payload, ttl)
        except CacheStoreUnavailableError as e:
            self._statistics.record_set_failure()
            self._record_store_error("set", e, request_id)
            return False

        self._circuit_breaker.record_success()
        self._statistics.record_set()
        debug(
            LogRecord(
                event=LogEvent.CACHE_SET.value,
                message="Response cached",
                request_id=request_id,
                data={"cache_key": _short(key), "ttl_seconds": ttl},
            )
        )
        await self.events.publish("cache_set", {"key": key, "ttl_seconds": ttl})
        return True

    async def _invalidate(self, operation: str, target: str) -> int:
        # Invalidation ignores the breaker: skipping it could resurrect stale data.
        try:
            if operation == "delete":
                removed = await self._store.delete(target)
            else:
                removed = await self._store.delete_pattern(target)
        except CacheStoreUnavailableError as e:
            self._record_store_error(operation, e)
            return 0

        self._statistics.record_invalidation(removed)
        info(
            LogRecord(
                event=LogEvent.CACHE_INVALIDATE.value,
                message="Cache invalidated",
                data={"operation": operation, "target": _short(target), "removed": removed},
            )
        )
        await self.events.publish(
            "cache_invalidate",
            {"operation": operation, "target": target, "removed": removed},
        )
        return removed

    async def delete(self, key: str) -> int:
        """Invalidate a single key; returns the number of keys removed."""
        return await self._invalidate("delete", key)

    async def delete_pattern(self, pattern: str) -> int:
        """Invalidate every key matching the glob ``pattern``."""
        return await self._invalidate("delete_pattern", pattern)

    async def clear(self) -> int:
        """Invalidate every key in this cache's namespace and reset counters."""
        removed = await self.delete_pattern(f"{self._namespace}:*")
        self._statistics.reset()
        self._circuit_breaker.reset()
        return removed

    async def exists(self, key: str) -> bool:
        if not self._enabled or self._circuit_breaker.is_open():
            return False
        try:
            return await self._store.exists(key)
        except CacheStoreUnavailableError as e:
            self._record_store_error("exists", e)
            return False

    async def purge_expired(self) -> int:
        try:
            purged = await self._store.purge_expired()
        except CacheStoreUnavailableError as e:
            self._record_store_error("purge_expired", e)
            return 0
        if purged:
            self._statistics.record_purge(purged)
        return purged

    async def cleanup_loop(self, interval_seconds: float) -> None:
        """Periodically reclaim expired entries until cancelled."""
        while True:
            await anyio.sleep(interval_seconds)
            await self.purge_expired()

    async def health_check(self) -> CacheHealth:
        reachable = False
        try:
            reachable = await self._store.ping()
        except CacheStoreUnavailableError as e:
            self._record_store_error("ping", e)
        return CacheHealth(
            backend=self._store.name,
            reachable=reachable,
            enabled=self._enabled,
            circuit_breaker=self._circuit_breaker.get_status(),
            stats=self._statistics.get_stats(),
        )

    def get_stats(self) -> Dict[str, Any]:
        stats = self._statistics.get_stats()
        stats["backend"] = self._store.name
        stats["enabled"] = self._enabled
        stats["circuit_breaker"] = self._circuit_breaker.get_status()
        return stats
