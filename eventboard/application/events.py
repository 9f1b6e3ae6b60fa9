"""Observer hub for cache and offline-controller events.

Components own an :class:`EventHub` and publish named events on it; consumers
subscribe explicitly and receive an unsubscribe callable back.
"""

import inspect
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional

from ..logging import warning, LogRecord, LogEvent

Listener = Callable[[str, Dict[str, Any]], Any]

ALL_EVENTS = "*"


class EventHub:
    """Synchronous-or-async publish/subscribe registry.

    Listener failures are logged and never propagate to the publisher.
    """

    def __init__(self) -> None:
        self._listeners: Dict[str, List[Listener]] = defaultdict(list)

    def subscribe(self, event: str, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for ``event`` (or ``"*"`` for everything)."""
        self._listeners[event].append(listener)

        def unsubscribe() -> None:
            listeners = self._listeners.get(event)
            if listeners and listener in listeners:
                listeners.remove(listener)

        return unsubscribe

    def listener_count(self, event: Optional[str] = None) -> int:
        if event is None:
            return sum(len(v) for v in self._listeners.values())
        return len(self._listeners.get(event, ()))

    async def publish(self, event: str, data: Optional[Dict[str, Any]] = None) -> None:
        payload = data or {}
        for listener in [*self._listeners.get(event, ()), *self._listeners.get(ALL_EVENTS, ())]:
            try:
                result = listener(event, payload)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                warning(
                    LogRecord(
                        event=LogEvent.CACHE_EVENT.value,
                        message=f"Event listener failed for '{event}'",
                        data={"event": event},
                    ),
                    exc=e,
                )

    def clear(self) -> None:
        self._listeners.clear()
