"""Construct a response cache from settings."""

from typing import Optional

from .response_cache import ResponseCache
from .stores import CacheStore, MemoryCacheStore, RedisCacheStore
from ..events import EventHub
from ...config import Settings


def create_store(settings: Settings) -> CacheStore:
    """Pick the store backend named by ``CACHE_BACKEND``."""
    if settings.cache_backend == "redis":
        return RedisCacheStore(
            url=settings.redis_url,
            timeout_seconds=settings.cache_store_timeout_seconds,
        )
    return MemoryCacheStore()


def create_response_cache(
    settings: Settings,
    store: Optional[CacheStore] = None,
    events: Optional[EventHub] = None,
) -> ResponseCache:
    return ResponseCache(
        store=store or create_store(settings),
        namespace=settings.cache_namespace,
        default_ttl_seconds=settings.cache_default_ttl_seconds,
        enabled=settings.cache_enabled,
        failure_threshold=settings.cache_failure_threshold,
        failure_reset_seconds=settings.cache_failure_reset_seconds,
        events=events,
    )
