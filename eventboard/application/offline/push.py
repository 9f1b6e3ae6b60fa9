"""Push-notification payload handling and notification-click routing."""

import json
from typing import Any, Iterable, Optional, Union
from urllib.parse import urljoin

from pydantic import ValidationError

from ...constants import NOTIFICATION_ACTION_OPEN, DEFAULT_NOTIFICATION_URL
from ...domain.models import ClickOutcome, NotificationRequest, PushPayload
from ...logging import warning, LogRecord, LogEvent

PushData = Union[None, bytes, str, dict]


def parse_push_payload(data: PushData) -> PushPayload:
    """Decode push data; anything missing or malformed becomes an empty payload."""
    if data is None or data == b"" or data == "":
        return PushPayload()
    raw: Any = data
    try:
        if isinstance(data, (bytes, str)):
            raw = json.loads(data)
        if not isinstance(raw, dict):
            raise ValueError("push payload must be a JSON object")
        return PushPayload.model_validate(raw)
    except (ValueError, ValidationError) as e:
        warning(
            LogRecord(
                event=LogEvent.PUSH_NOTIFICATION.value,
                message="Ignoring malformed push payload",
            ),
            exc=e,
        )
        return PushPayload()


def build_notification(data: PushData) -> NotificationRequest:
    payload = parse_push_payload(data)
    notification = NotificationRequest()
    if payload.title:
        notification.title = payload.title
    if payload.body:
        notification.body = payload.body
    if payload.url:
        notification.data = payload.url
    return notification


def resolve_notification_click(
    action: Optional[str],
    url: Optional[str],
    open_windows: Iterable[str] = (),
    origin: Optional[str] = None,
) -> ClickOutcome:
    """Decide what a notification click does.

    ``open`` (or a click on the body, ``action`` empty) focuses a window
    already showing the target URL, otherwise opens a new one. Any other
    action just dismisses the notification.
    """
    if action and action != NOTIFICATION_ACTION_OPEN:
        return ClickOutcome(kind="dismiss")

    target = url or DEFAULT_NOTIFICATION_URL

    def absolute(u: str) -> str:
        return urljoin(origin, u) if origin else u

    wanted = absolute(target)
    for window_url in open_windows:
        if absolute(window_url) == wanted:
            return ClickOutcome(kind="focus", url=window_url)
    return ClickOutcome(kind="open", url=target)
