"""Named, versioned response buckets persisted in the offline database."""

import json
import sqlite3
import time
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple

import httpx

from .database import OfflineDatabase

# Headers that describe the wire encoding rather than the stored body.
_TRANSPORT_HEADERS = frozenset(
    {"content-encoding", "content-length", "transfer-encoding", "connection", "keep-alive"}
)


def request_cache_url(request: httpx.Request) -> str:
    """Origin-relative URL (path and query) used as a bucket key."""
    return request.url.raw_path.decode("ascii")


@dataclass
class StoredResponse:
    """A response as persisted in a bucket."""

    url: str
    status: int
    body: bytes
    headers: List[Tuple[str, str]] = field(default_factory=list)
    reason: str = ""
    stored_at: float = field(default_factory=time.time)

    @classmethod
    def from_response(cls, url: str, response: httpx.Response) -> "StoredResponse":
        """Snapshot a fully read response."""
        return cls(
            url=url,
            status=response.status_code,
            body=response.content,
            headers=[
                (k, v)
                for k, v in response.headers.multi_items()
                if k.lower() not in _TRANSPORT_HEADERS
            ],
            reason=response.reason_phrase,
        )

    def to_response(self, request: Optional[httpx.Request] = None) -> httpx.Response:
        return httpx.Response(
            self.status,
            headers=self.headers,
            content=self.body,
            request=request,
            extensions={"reason_phrase": self.reason.encode("ascii", "replace")},
        )


def rebuild_response(response: httpx.Response, request: httpx.Request) -> httpx.Response:
    """Copy a read network response so it can be handed to another client."""
    return StoredResponse.from_response(request_cache_url(request), response).to_response(
        request
    )


def _row_to_stored(row: sqlite3.Row) -> StoredResponse:
    return StoredResponse(
        url=row["url"],
        status=row["status"],
        body=bytes(row["body"]),
        headers=[tuple(h) for h in json.loads(row["headers"])],
        reason=row["reason"],
        stored_at=row["stored_at"],
    )


def _ensure_bucket(conn: sqlite3.Connection, name: str) -> None:
    conn.execute(
        "INSERT OR IGNORE INTO cache_buckets (name, created_at) VALUES (?, ?)",
        (name, time.time()),
    )


def _put(conn: sqlite3.Connection, bucket: str, stored: StoredResponse) -> None:
    conn.execute(
        "INSERT OR REPLACE INTO cached_responses "
        "(bucket, url, status, reason, headers, body, stored_at) "
        "VALUES (?, ?, ?, ?, ?, ?, ?)",
        (
            bucket,
            stored.url,
            stored.status,
            stored.reason,
            json.dumps(stored.headers),
            stored.body,
            stored.stored_at,
        ),
    )


class CacheBucket:
    """Handle on one named bucket."""

    def __init__(self, db: OfflineDatabase, name: str):
        self._db = db
        self.name = name

    async def put(self, stored: StoredResponse) -> None:
        def op(conn: sqlite3.Connection) -> None:
            _ensure_bucket(conn, self.name)
            _put(conn, self.name, stored)

        await self._db.run(op)

    async def put_all(self, responses: Mapping[str, StoredResponse]) -> None:
        """Store every response in one transaction, or none of them."""

        def op(conn: sqlite3.Connection) -> None:
            _ensure_bucket(conn, self.name)
            for stored in responses.values():
                _put(conn, self.name, stored)

        await self._db.run(op)

    async def match(self, url: str) -> Optional[StoredResponse]:
        def op(conn: sqlite3.Connection) -> Optional[StoredResponse]:
            row = conn.execute(
                "SELECT * FROM cached_responses WHERE bucket = ? AND url = ?",
                (self.name, url),
            ).fetchone()
            return _row_to_stored(row) if row else None

        return await self._db.run(op)

    async def delete(self, url: str) -> bool:
        def op(conn: sqlite3.Connection) -> bool:
            cur = conn.execute(
                "DELETE FROM cached_responses WHERE bucket = ? AND url = ?",
                (self.name, url),
            )
            return cur.rowcount > 0

        return await self._db.run(op)

    async def keys(self) -> List[str]:
        def op(conn: sqlite3.Connection) -> List[str]:
            rows = conn.execute(
                "SELECT url FROM cached_responses WHERE bucket = ? ORDER BY url",
                (self.name,),
            ).fetchall()
            return [row["url"] for row in rows]

        return await self._db.run(op)


class CacheStorage:
    """The set of buckets owned by one offline controller."""

    def __init__(self, db: OfflineDatabase):
        self._db = db

    def bucket(self, name: str) -> CacheBucket:
        return CacheBucket(self._db, name)

    async def open(self, name: str) -> CacheBucket:
        """Return the bucket ``name``, creating it if needed."""
        await self._db.run(lambda conn: _ensure_bucket(conn, name))
        return self.bucket(name)

    async def has(self, name: str) -> bool:
        def op(conn: sqlite3.Connection) -> bool:
            row = conn.execute(
                "SELECT 1 FROM cache_buckets WHERE name = ?", (name,)
            ).fetchone()
            return row is not None

        return await self._db.run(op)

    async def keys(self) -> List[str]:
        """Bucket names in creation order."""

        def op(conn: sqlite3.Connection) -> List[str]:
            rows = conn.execute(
                "SELECT name FROM cache_buckets ORDER BY created_at, rowid"
            ).fetchall()
            return [row["name"] for row in rows]

        return await self._db.run(op)

    async def delete(self, name: str) -> bool:
        """Drop a bucket and everything in it."""

        def op(conn: sqlite3.Connection) -> bool:
            conn.execute("DELETE FROM cached_responses WHERE bucket = ?", (name,))
            cur = conn.execute("DELETE FROM cache_buckets WHERE name = ?", (name,))
            return cur.rowcount > 0

        return await self._db.run(op)

    async def match(self, url: str) -> Optional[StoredResponse]:
        """First stored response for ``url`` across buckets, oldest bucket first."""

        def op(conn: sqlite3.Connection) -> Optional[StoredResponse]:
            row = conn.execute(
                "SELECT r.* FROM cached_responses r "
                "JOIN cache_buckets b ON b.name = r.bucket "
                "WHERE r.url = ? ORDER BY b.created_at, b.rowid LIMIT 1",
                (url,),
            ).fetchone()
            return _row_to_stored(row) if row else None

        return await self._db.run(op)

    async def entries(self) -> Dict[str, List[str]]:
        """Map of bucket name to stored URLs."""
        names = await self.keys()
        return {name: await self.bucket(name).keys() for name in names}
