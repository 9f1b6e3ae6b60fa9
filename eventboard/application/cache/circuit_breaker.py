"""Circuit breaker for cache store failures."""

import time
from typing import Any, Callable

from ...constants import (
    DEFAULT_CACHE_FAILURE_THRESHOLD,
    DEFAULT_CACHE_FAILURE_RESET_SECONDS,
    MAX_BREAKER_BACKOFF_MULTIPLIER,
)
from ...logging import warning, LogRecord, LogEvent


class CacheCircuitBreaker:
    """
    Circuit breaker pattern for an unreachable cache store.

    After ``failure_threshold`` consecutive store errors the cache is bypassed
    for ``reset_time`` seconds (scaled by a capped backoff multiplier). Once
    that window passes a single trial call is allowed through; success closes
    the circuit, failure reopens it.
    """

    def __init__(
        self,
        failure_threshold: int = DEFAULT_CACHE_FAILURE_THRESHOLD,
        reset_time: float = DEFAULT_CACHE_FAILURE_RESET_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        if failure_threshold < 1:
            raise ValueError(
                f"failure_threshold must be at least 1, got {failure_threshold}"
            )
        self.failure_threshold = failure_threshold
        self.reset_time = reset_time
        self.consecutive_failures = 0
        self.disabled_until = 0.0
        self.half_open = False
        self.times_opened = 0
        self.max_consecutive_failures = failure_threshold * MAX_BREAKER_BACKOFF_MULTIPLIER
        self._clock = clock

    def is_open(self) -> bool:
        """Check if the circuit is open (cache bypassed)."""
        now = self._clock()

        if now < self.disabled_until:
            return True

        if self.disabled_until and not self.half_open:
            # Disabled window elapsed: let one trial through.
            self.half_open = True
            return False

        return False

    def _open(self) -> None:
        backoff_multiplier = min(
            self.consecutive_failures / self.failure_threshold,
            MAX_BREAKER_BACKOFF_MULTIPLIER,
        )
        disabled_duration = self.reset_time * backoff_multiplier
        self.disabled_until = self._clock() + disabled_duration
        self.half_open = False
        self.times_opened += 1

        warning(
            LogRecord(
                event=LogEvent.CACHE_BREAKER_OPEN.value,
                message=f"Cache store circuit opened after {self.consecutive_failures} failures",
                request_id=None,
                data={
                    "consecutive_failures": self.consecutive_failures,
                    "disabled_duration": disabled_duration,
                },
            )
        )

    def record_success(self) -> None:
        """Record a successful store call."""
        self.consecutive_failures = 0
        self.disabled_until = 0.0
        self.half_open = False

    def record_failure(self) -> None:
        """Record a failed store call."""
        self.consecutive_failures = min(
            self.consecutive_failures + 1, self.max_consecutive_failures
        )
        if self.half_open or self.consecutive_failures >= self.failure_threshold:
            self._open()

    def reset(self) -> None:
        """Reset the circuit breaker."""
        self.consecutive_failures = 0
        self.disabled_until = 0.0
        self.half_open = False

    def get_status(self) -> dict[str, Any]:
        """Get circuit breaker status."""
        now = self._clock()
        is_open = now < self.disabled_until

        return {
            "is_open": is_open,
            "half_open": self.half_open,
            "consecutive_failures": self.consecutive_failures,
            "failure_threshold": self.failure_threshold,
            "times_opened": self.times_opened,
            "time_until_reset": max(0.0, self.disabled_until - now) if is_open else 0,
        }
