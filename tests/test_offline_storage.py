"""Tests for the SQLite-backed buckets and pending-action queue."""

import httpx
import pytest

from eventboard.application.offline import (
    CacheStorage,
    OfflineDatabase,
    PendingActionQueue,
    StoredResponse,
)


@pytest.fixture
async def db():
    async with OfflineDatabase() as db:
        yield db


@pytest.fixture
def storage(db) -> CacheStorage:
    return CacheStorage(db)


@pytest.fixture
def queue(db) -> PendingActionQueue:
    return PendingActionQueue(db)


def stored(url: str, body: bytes = b"ok", status: int = 200) -> StoredResponse:
    return StoredResponse(
        url=url, status=status, body=body, headers=[("content-type", "text/plain")], reason="OK"
    )


class TestStoredResponse:
    def test_from_response_drops_transport_headers(self):
        response = httpx.Response(
            200,
            headers={"Content-Type": "application/json", "Connection": "keep-alive"},
            content=b"{}",
        )
        snapshot = StoredResponse.from_response("/api/events", response)
        names = [name.lower() for name, _ in snapshot.headers]
        assert "content-type" in names
        assert "connection" not in names
        assert "content-length" not in names

    def test_to_response_round_trips_status_and_body(self):
        response = stored("/a", b"hello", 200).to_response()
        assert response.status_code == 200
        assert response.content == b"hello"
        assert response.headers["content-type"] == "text/plain"


class TestCacheStorage:
    @pytest.mark.anyio
    async def test_put_and_match(self, storage):
        await storage.bucket("runtime-cache-v1").put(stored("/api/events", b"[1]"))

        match = await storage.match("/api/events")

        assert match is not None
        assert match.body == b"[1]"
        assert await storage.match("/api/other") is None

    @pytest.mark.anyio
    async def test_put_replaces_existing_url(self, storage):
        bucket = storage.bucket("runtime-cache-v1")
        await bucket.put(stored("/a", b"old"))
        await bucket.put(stored("/a", b"new"))

        assert (await bucket.match("/a")).body == b"new"
        assert await bucket.keys() == ["/a"]

    @pytest.mark.anyio
    async def test_keys_in_creation_order(self, storage):
        await storage.open("community-events-v1")
        await storage.open("runtime-cache-v1")
        await storage.open("community-events-v1")

        assert await storage.keys() == ["community-events-v1", "runtime-cache-v1"]
        assert await storage.has("runtime-cache-v1")
        assert not await storage.has("runtime-cache-v2")

    @pytest.mark.anyio
    async def test_delete_bucket_removes_entries(self, storage):
        await storage.bucket("runtime-cache-v1").put(stored("/a"))

        assert await storage.delete("runtime-cache-v1")
        assert await storage.match("/a") is None
        assert await storage.keys() == []
        assert not await storage.delete("runtime-cache-v1")

    @pytest.mark.anyio
    async def test_put_all_and_entries(self, storage):
        await storage.bucket("community-events-v1").put_all(
            {"/": stored("/"), "/offline.html": stored("/offline.html")}
        )

        assert await storage.entries() == {"community-events-v1": ["/", "/offline.html"]}

    @pytest.mark.anyio
    async def test_bucket_delete_entry(self, storage):
        bucket = storage.bucket("runtime-cache-v1")
        await bucket.put(stored("/a"))
        assert await bucket.delete("/a")
        assert not await bucket.delete("/a")

    @pytest.mark.anyio
    async def test_durable_across_reopen(self, tmp_path):
        path = str(tmp_path / "offline" / "store.db")
        async with OfflineDatabase(path) as db:
            await CacheStorage(db).bucket("runtime-cache-v1").put(stored("/a", b"kept"))
            await PendingActionQueue(db).enqueue("POST", "/api/registrations", "{}")

        async with OfflineDatabase(path) as db:
            assert (await CacheStorage(db).match("/a")).body == b"kept"
            assert await PendingActionQueue(db).count() == 1

    @pytest.mark.anyio
    async def test_closed_database_refuses_work(self):
        db = OfflineDatabase()
        with pytest.raises(RuntimeError):
            await CacheStorage(db).keys()


class TestPendingActionQueue:
    @pytest.mark.anyio
    async def test_ids_strictly_increase_and_list_is_fifo(self, queue):
        a = await queue.enqueue("post", "/api/registrations", '{"event_id": 1}')
        b = await queue.enqueue("POST", "/api/registrations", b'{"event_id": 2}')

        assert a.method == "POST"
        assert b.id > a.id
        assert [action.id for action in await queue.list()] == [a.id, b.id]
        assert (await queue.get(b.id)).body == b'{"event_id": 2}'
        assert a.body == b'{"event_id": 1}'

    @pytest.mark.anyio
    async def test_ids_are_never_reused(self, queue):
        a = await queue.enqueue("POST", "/api/registrations")
        await queue.delete(a.id)
        b = await queue.enqueue("POST", "/api/registrations")
        assert b.id > a.id

    @pytest.mark.anyio
    async def test_delete_absent_is_noop(self, queue):
        assert await queue.delete(999) is False

    @pytest.mark.anyio
    async def test_count_and_clear(self, queue):
        await queue.enqueue("POST", "/api/registrations")
        await queue.enqueue("DELETE", "/api/registrations/3")
        assert await queue.count() == 2

        assert await queue.clear() == 2
        assert await queue.count() == 0
        assert await queue.get(1) is None
