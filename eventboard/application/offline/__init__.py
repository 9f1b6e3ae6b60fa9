"""Client-side offline cache controller, durable buckets and background sync."""

from .buckets import CacheBucket, CacheStorage, StoredResponse
from .controller import FetchResult, OfflineCacheController
from .database import OfflineDatabase
from .push import build_notification, parse_push_payload, resolve_notification_click
from .queue import PendingActionQueue
from .sync import BackgroundSync, ReplayReport

__all__ = [
    "CacheBucket",
    "CacheStorage",
    "StoredResponse",
    "FetchResult",
    "OfflineCacheController",
    "OfflineDatabase",
    "build_notification",
    "parse_push_payload",
    "resolve_notification_click",
    "PendingActionQueue",
    "BackgroundSync",
    "ReplayReport",
]
