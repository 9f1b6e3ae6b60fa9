"""Background sync: replay queued actions once connectivity returns."""

from dataclasses import dataclass, field
from typing import List, Optional

import anyio
import httpx

from .queue import PendingActionQueue
from ..events import EventHub
from ...domain.exceptions import ReplayError
from ...domain.models import PendingAction
from ...logging import info, warning, LogRecord, LogEvent


@dataclass
class ReplayReport:
    """Outcome of one replay pass.

    Attributes:
        succeeded: Ids replayed and removed, in submission order.
        failure: The action that stopped the pass, if any.
        remaining: Actions still queued after the pass.
    """

    succeeded: List[int] = field(default_factory=list)
    failure: Optional[ReplayError] = None
    remaining: int = 0

    @property
    def attempted(self) -> List[int]:
        ids = list(self.succeeded)
        if self.failure is not None and self.failure.action_id is not None:
            ids.append(self.failure.action_id)
        return ids

    @property
    def complete(self) -> bool:
        return self.failure is None and self.remaining == 0


class BackgroundSync:
    """
    Sequential, FIFO replay of a :class:`PendingActionQueue`.

    Each action is sent verbatim against ``origin``. A 2xx response deletes it;
    anything else (transport error or non-2xx status) stops the pass and
    leaves that action and every later one queued, so dependent actions never
    overtake each other. Delivery is at-least-once.
    """

    def __init__(
        self,
        queue: PendingActionQueue,
        network: httpx.AsyncClient,
        origin: str,
        events: Optional[EventHub] = None,
    ):
        self._queue = queue
        self._network = network
        self._origin = origin.rstrip("/")
        self._events = events or EventHub()
        self._lock = anyio.Lock()

    def build_request(self, action: PendingAction) -> httpx.Request:
        headers = {"Content-Type": "application/json"} if action.body is not None else {}
        return httpx.Request(
            action.method,
            self._origin + action.url,
            headers=headers,
            content=action.body,
        )

    async def _replay_one(self, action: PendingAction) -> Optional[ReplayError]:
        try:
            response = await self._network.send(self.build_request(action))
        except httpx.TransportError as e:
            return ReplayError(
                f"Network unavailable replaying action {action.id}: {e}",
                action_id=action.id,
            )
        if not response.is_success:
            return ReplayError(
                f"Replay of action {action.id} returned {response.status_code}",
                action_id=action.id,
                status_code=response.status_code,
            )
        return None

    async def replay_all(self) -> ReplayReport:
        """Replay queued actions oldest first, stopping at the first failure."""
        async with self._lock:
            report = ReplayReport()
            for action in await self._queue.list():
                failure = await self._replay_one(action)
                if failure is not None:
                    report.failure = failure
                    warning(
                        LogRecord(
                            event=LogEvent.BACKGROUND_SYNC.value,
                            message="Replay failed, action left queued",
                            data={
                                "id": action.id,
                                "url": action.url,
                                "status_code": failure.status_code,
                            },
                        ),
                        exc=failure,
                    )
                    break

                await self._queue.delete(action.id)
                report.succeeded.append(action.id)
                info(
                    LogRecord(
                        event=LogEvent.BACKGROUND_SYNC.value,
                        message="Replayed queued action",
                        data={"id": action.id, "method": action.method, "url": action.url},
                    )
                )

            report.remaining = await self._queue.count()

        await self._events.publish(
            "sync",
            {
                "succeeded": report.succeeded,
                "failed": report.failure.action_id if report.failure else None,
                "remaining": report.remaining,
            },
        )
        return report
