"""Durable FIFO queue of side-effecting requests captured while offline."""

import sqlite3
from datetime import datetime, timezone
from typing import List, Optional, Union

from .database import OfflineDatabase
from ...domain.models import PendingAction
from ...logging import info, LogRecord, LogEvent


def _row_to_action(row: sqlite3.Row) -> PendingAction:
    return PendingAction(
        id=row["id"],
        method=row["method"],
        url=row["url"],
        body=row["body"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )


class PendingActionQueue:
    """
    Pending actions persisted in SQLite.

    Identifiers come from ``AUTOINCREMENT``, so they strictly increase and are
    never reused even after deletes; ordering by id is enqueue order.
    """

    def __init__(self, db: OfflineDatabase):
        self._db = db

    async def enqueue(
        self, method: str, url: str, body: Optional[Union[str, bytes]] = None
    ) -> PendingAction:
        """Append an action and return it with its assigned id."""
        if isinstance(body, str):
            body = body.encode("utf-8")
        created_at = datetime.now(timezone.utc)

        def op(conn: sqlite3.Connection) -> int:
            cur = conn.execute(
                "INSERT INTO pending_actions (method, url, body, created_at) "
                "VALUES (?, ?, ?, ?)",
                (method.upper(), url, body, created_at.isoformat()),
            )
            return int(cur.lastrowid)

        action_id = await self._db.run(op)
        action = PendingAction(
            id=action_id, method=method.upper(), url=url, body=body, created_at=created_at
        )
        info(
            LogRecord(
                event=LogEvent.OFFLINE_QUEUE.value,
                message="Queued action for background sync",
                data={"id": action.id, "method": action.method, "url": action.url},
            )
        )
        return action

    async def list(self) -> List[PendingAction]:
        """All queued actions in FIFO order."""

        def op(conn: sqlite3.Connection) -> List[PendingAction]:
            rows = conn.execute("SELECT * FROM pending_actions ORDER BY id").fetchall()
            return [_row_to_action(row) for row in rows]

        return await self._db.run(op)

    async def get(self, action_id: int) -> Optional[PendingAction]:
        def op(conn: sqlite3.Connection) -> Optional[PendingAction]:
            row = conn.execute(
                "SELECT * FROM pending_actions WHERE id = ?", (action_id,)
            ).fetchone()
            return _row_to_action(row) if row else None

        return await self._db.run(op)

    async def delete(self, action_id: int) -> bool:
        """Remove an action; deleting an absent id is a no-op returning False."""

        def op(conn: sqlite3.Connection) -> bool:
            cur = conn.execute("DELETE FROM pending_actions WHERE id = ?", (action_id,))
            return cur.rowcount > 0

        return await self._db.run(op)

    async def count(self) -> int:
        def op(conn: sqlite3.Connection) -> int:
            return int(conn.execute("SELECT COUNT(*) FROM pending_actions").fetchone()[0])

        return await self._db.run(op)

    async def clear(self) -> int:
        def op(conn: sqlite3.Connection) -> int:
            return conn.execute("DELETE FROM pending_actions").rowcount

        return await self._db.run(op)
