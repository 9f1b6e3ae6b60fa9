"""Cache statistics tracking and reporting."""

from typing import Dict, Any
import time


class CacheStatistics:
    """Tracks response cache hit/miss and failure counters."""

    def __init__(self):
        """Initialize cache statistics."""
        self.reset()

    def record_hit(self):
        self.cache_hits += 1

    def record_miss(self):
        self.cache_misses += 1

    def record_set(self):
        self.sets += 1

    def record_set_failure(self):
        self.set_failures += 1

    def record_store_error(self):
        self.store_errors += 1

    def record_bypass(self):
        """Record a lookup skipped because the store circuit was open."""
        self.bypasses += 1

    def record_invalidation(self, count: int = 1):
        self.invalidations += count

    def record_purge(self, count: int):
        self.purged += count

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        total = self.cache_hits + self.cache_misses
        if total == 0:
            return 0.0
        return self.cache_hits / total

    @property
    def uptime_seconds(self) -> float:
        return time.time() - self.start_time

    def get_stats(self) -> Dict[str, Any]:
        """Get all statistics as a dictionary."""
        return {
            "cache_hits": self.cache_hits,
            "cache_misses": self.cache_misses,
            "hit_rate": round(self.hit_rate, 3),
            "sets": self.sets,
            "set_failures": self.set_failures,
            "store_errors": self.store_errors,
            "bypasses": self.bypasses,
            "invalidations": self.invalidations,
            "purged": self.purged,
            "uptime_seconds": round(self.uptime_seconds, 1),
        }

    def reset(self):
        """Reset all statistics."""
        self.cache_hits = 0
        self.cache_misses = 0
        self.sets = 0
        self.set_failures = 0
        self.store_errors = 0
        self.bypasses = 0
        self.invalidations = 0
        self.purged = 0
        self.start_time = time.time()
