"""Tests for the Redis-backed cache store against a mocked client."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError, TimeoutError

from eventboard.application.cache.stores import RedisCacheStore
from eventboard.domain.exceptions import CacheStoreUnavailableError


def async_iter(items):
    async def gen(*args, **kwargs):
        for item in items:
            yield item

    return gen


@pytest.fixture
def client() -> MagicMock:
    client = MagicMock()
    for method in ("get", "set", "delete", "exists", "ping", "aclose"):
        setattr(client, method, AsyncMock())
    return client


@pytest.fixture
def store(client) -> RedisCacheStore:
    return RedisCacheStore(client=client, scan_count=2)


class TestRedisCacheStore:
    @pytest.mark.anyio
    async def test_set_uses_millisecond_expiry(self, store, client):
        await store.set("api:GET:/a", "{}", 1.5)
        client.set.assert_awaited_once_with("api:GET:/a", "{}", px=1500)

    @pytest.mark.anyio
    async def test_get_returns_value(self, store, client):
        client.get.return_value = "\"x\""
        assert await store.get("api:GET:/a") == "\"x\""

    @pytest.mark.anyio
    async def test_delete_pattern_scans_and_deletes_in_batches(self, store, client):
        client.scan_iter = MagicMock(side_effect=async_iter(["k1", "k2", "k3"]))
        client.delete.side_effect = lambda *keys: len(keys)

        removed = await store.delete_pattern("api:GET:/api/events*")

        assert removed == 3
        client.scan_iter.assert_called_once_with(match="api:GET:/api/events*", count=2)
        assert client.delete.await_count == 2

    @pytest.mark.anyio
    async def test_exists(self, store, client):
        client.exists.return_value = 1
        assert await store.exists("k")
        client.exists.return_value = 0
        assert not await store.exists("k")

    @pytest.mark.anyio
    @pytest.mark.parametrize(
        "exc", [RedisConnectionError("refused"), TimeoutError("slow"), OSError("reset")]
    )
    async def test_backend_errors_are_wrapped(self, store, client, exc):
        client.get.side_effect = exc
        with pytest.raises(CacheStoreUnavailableError) as info:
            await store.get("k")
        assert info.value.backend == "redis"
        assert info.value.operation == "get"

    @pytest.mark.anyio
    async def test_unopened_store_is_unavailable(self):
        store = RedisCacheStore()
        with pytest.raises(CacheStoreUnavailableError):
            await store.get("k")

    @pytest.mark.anyio
    async def test_injected_client_is_not_closed(self, store, client):
        await store.close()
        client.aclose.assert_not_awaited()

    @pytest.mark.anyio
    async def test_open_creates_client_with_timeouts(self):
        with patch("eventboard.application.cache.stores.aioredis.Redis.from_url") as from_url:
            from_url.return_value = MagicMock(aclose=AsyncMock())
            store = RedisCacheStore(url="redis://cache:6379/1", timeout_seconds=0.25)
            await store.open()
            await store.close()

        from_url.assert_called_once_with(
            "redis://cache:6379/1",
            decode_responses=True,
            socket_timeout=0.25,
            socket_connect_timeout=0.25,
        )
        from_url.return_value.aclose.assert_awaited_once()
