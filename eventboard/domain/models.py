from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field

from ..constants import (
    DEFAULT_NOTIFICATION_BODY,
    DEFAULT_NOTIFICATION_TITLE,
    DEFAULT_NOTIFICATION_URL,
    NOTIFICATION_ACTION_CLOSE,
    NOTIFICATION_ACTION_OPEN,
    NOTIFICATION_ICON,
)


class FetchOutcome(StrEnum):
    """Terminal state of a request handled by the offline cache controller."""

    FULFILLED = "fulfilled"
    SERVED_FROM_CACHE = "served_from_cache"
    SERVED_OFFLINE = "served_offline"
    ERROR_RETURNED = "error_returned"
    QUEUED = "queued"


class RouteClass(StrEnum):
    """Caching policy class a request falls into."""

    API = "api"
    ASSET = "asset"
    CROSS_ORIGIN = "cross_origin"


class PendingAction(BaseModel):
    """A side-effecting request captured while the network was unavailable.

    Attributes:
        id: Auto-assigned, strictly increasing identifier.
        method: HTTP method to replay.
        url: Origin-relative target URL.
        body: Raw request body, if any; replayed byte for byte.
        created_at: Enqueue time (UTC).
    """

    id: int
    method: str
    url: str
    body: Optional[bytes] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class PushPayload(BaseModel):
    """Push message data; every field is optional."""

    title: Optional[str] = None
    body: Optional[str] = None
    url: Optional[str] = None


class NotificationAction(BaseModel):
    action: str
    title: str


class NotificationRequest(BaseModel):
    """Notification to display for a push message."""

    title: str = DEFAULT_NOTIFICATION_TITLE
    body: str = DEFAULT_NOTIFICATION_BODY
    icon: str = NOTIFICATION_ICON
    badge: str = NOTIFICATION_ICON
    data: str = DEFAULT_NOTIFICATION_URL
    actions: List[NotificationAction] = Field(
        default_factory=lambda: [
            NotificationAction(action=NOTIFICATION_ACTION_OPEN, title="View"),
            NotificationAction(action=NOTIFICATION_ACTION_CLOSE, title="Dismiss"),
        ]
    )


class ClickOutcome(BaseModel):
    """What a notification click resolved to."""

    kind: Literal["focus", "open", "dismiss"]
    url: Optional[str] = None


class CacheHealth(BaseModel):
    """Health snapshot of the response cache."""

    backend: str
    reachable: bool
    enabled: bool
    circuit_breaker: Dict[str, Any]
    stats: Dict[str, Any]
    timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )


class ErrorResponse(BaseModel):
    success: Literal[False] = False
    error: str
    request_id: Optional[str] = None
