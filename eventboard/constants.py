"""Constants for the EventBoard caching subsystem.

Defaults for the response cache, the offline controller's bucket naming and
the push-notification fallbacks.
"""

from typing import FrozenSet

# Response cache
DEFAULT_CACHE_TTL_SECONDS = 300
DEFAULT_CACHE_NAMESPACE = "api"
DEFAULT_CACHE_FAILURE_THRESHOLD = 5
DEFAULT_CACHE_FAILURE_RESET_SECONDS = 30
DEFAULT_CACHE_STORE_TIMEOUT_SECONDS = 0.5
# Backoff multiplier cap for the store circuit breaker
MAX_BREAKER_BACKOFF_MULTIPLIER = 10

CACHEABLE_METHOD = "GET"
CACHE_STATUS_HEADER = "X-Cache"
CACHE_HIT = "HIT"
CACHE_MISS = "MISS"
CACHE_BYPASS = "BYPASS"
CACHE_ADMIN_TOKEN_HEADER = "X-Cache-Admin-Token"

# Offline cache controller
PRECACHE_BUCKET_PREFIX = "community-events"
RUNTIME_BUCKET_PREFIX = "runtime-cache"
DEFAULT_API_PREFIX = "/api/"
DEFAULT_OFFLINE_DOCUMENT = "/offline.html"
DEFAULT_SYNC_TAG = "sync-registrations"
NAVIGATE_MODE = "navigate"
FETCH_MODE_HEADER = "sec-fetch-mode"

SAFE_METHODS: FrozenSet[str] = frozenset({"GET", "HEAD", "OPTIONS"})
MUTATING_METHODS: FrozenSet[str] = frozenset({"POST", "PUT", "PATCH", "DELETE"})

SERVICE_UNAVAILABLE_BODY = "Network error"

# Push notifications
DEFAULT_NOTIFICATION_TITLE = "Community Event Board"
DEFAULT_NOTIFICATION_BODY = "You have a new notification"
DEFAULT_NOTIFICATION_URL = "/"
NOTIFICATION_ICON = "/icon-192.png"
NOTIFICATION_ACTION_OPEN = "open"
NOTIFICATION_ACTION_CLOSE = "close"
