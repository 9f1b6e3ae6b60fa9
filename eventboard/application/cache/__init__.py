"""Response cache with TTL expiry, pattern invalidation and store fail-over."""

from .response_cache import ResponseCache
from .models import CacheEntry, CacheLookup
from .statistics import CacheStatistics
from .stores import CacheStore, MemoryCacheStore, RedisCacheStore
from .keys import build_cache_key, path_pattern

__all__ = [
    "ResponseCache",
    "CacheEntry",
    "CacheLookup",
    "CacheStatistics",
    "CacheStore",
    "MemoryCacheStore",
    "RedisCacheStore",
    "build_cache_key",
    "path_pattern",
]
