"""Durable SQLite storage shared by the cache buckets and the pending queue.

SQLite calls run on worker threads via :mod:`anyio.to_thread`; an
:class:`anyio.Lock` serializes them so each call sees a consistent connection
and every write is its own transaction.
"""

import sqlite3
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

import anyio

from ...logging import info, LogRecord, LogEvent

T = TypeVar("T")

SCHEMA = """
CREATE TABLE IF NOT EXISTS cache_buckets (
    name TEXT PRIMARY KEY,
    created_at REAL NOT NULL
);
CREATE TABLE IF NOT EXISTS cached_responses (
    bucket TEXT NOT NULL REFERENCES cache_buckets(name) ON DELETE CASCADE,
    url TEXT NOT NULL,
    status INTEGER NOT NULL,
    reason TEXT NOT NULL DEFAULT '',
    headers TEXT NOT NULL,
    body BLOB NOT NULL,
    stored_at REAL NOT NULL,
    PRIMARY KEY (bucket, url)
);
CREATE TABLE IF NOT EXISTS pending_actions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    method TEXT NOT NULL,
    url TEXT NOT NULL,
    body BLOB,
    created_at TEXT NOT NULL
);
"""


class OfflineDatabase:
    """Owns the SQLite connection backing the client-side offline state.

    Example:
        >>> db = OfflineDatabase("community-events.db")
        >>> await db.open()
        >>> await db.run(lambda conn: conn.execute("SELECT 1").fetchone())
        >>> await db.close()
    """

    def __init__(self, path: str = ":memory:"):
        self.path = path
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = anyio.Lock()

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def _connect(self) -> sqlite3.Connection:
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        if self.path != ":memory:":
            conn.execute("PRAGMA journal_mode = WAL")
        conn.executescript(SCHEMA)
        conn.commit()
        return conn

    async def open(self) -> None:
        async with self._lock:
            if self._conn is None:
                self._conn = await anyio.to_thread.run_sync(self._connect)
                info(
                    LogRecord(
                        event=LogEvent.OFFLINE_QUEUE.value,
                        message="Offline store opened",
                        data={"path": self.path},
                    )
                )

    async def close(self) -> None:
        async with self._lock:
            if self._conn is not None:
                conn, self._conn = self._conn, None
                await anyio.to_thread.run_sync(conn.close)

    async def run(self, fn: Callable[[sqlite3.Connection], T]) -> T:
        """Run ``fn(conn)`` on a worker thread inside one transaction."""
        async with self._lock:
            if self._conn is None:
                raise RuntimeError("OfflineDatabase is not open")
            conn = self._conn

            def transaction() -> T:
                with conn:
                    return fn(conn)

            return await anyio.to_thread.run_sync(transaction)

    async def __aenter__(self) -> "OfflineDatabase":
        await self.open()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
