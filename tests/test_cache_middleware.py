"""Tests for the read-through response cache middleware."""

import pytest
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from fastapi.testclient import TestClient

from eventboard.application.cache import MemoryCacheStore, ResponseCache
from eventboard.interfaces.http.app import create_app
from eventboard.interfaces.http.cache_middleware import is_cacheable_route, route_ttl
from eventboard.domain.exceptions import CacheStoreUnavailableError


class EventsBackend:
    """Counts handler invocations so tests can tell hits from misses."""

    def __init__(self):
        self.calls = 0
        self.status = 200


@pytest.fixture
def backend() -> EventsBackend:
    return EventsBackend()


@pytest.fixture
def store(clock) -> MemoryCacheStore:
    return MemoryCacheStore(clock=clock)


def build_app(settings, backend, store, clock, enabled=True):
    cache = ResponseCache(
        store=store,
        enabled=enabled,
        namespace=settings.cache_namespace,
        default_ttl_seconds=settings.cache_default_ttl_seconds,
        clock=clock,
    )
    app = create_app(settings, cache=cache)

    @app.get("/api/events")
    async def list_events(page: int = 1):
        backend.calls += 1
        if backend.status != 200:
            return Response(status_code=backend.status, content=b"{}")
        return {"page": page, "events": [{"id": backend.calls}]}

    @app.get("/api/events/by-name/{name}")
    async def event_by_name(name: str):
        backend.calls += 1
        return {"name": name}

    @app.get("/api/events/with-cookies")
    async def with_cookies():
        response = JSONResponse({"ok": True})
        response.set_cookie("session", "abc")
        response.set_cookie("theme", "dark")
        return response

    @app.get("/api/categories")
    async def list_categories():
        backend.calls += 1
        return PlainTextResponse("music,sports")

    @app.post("/api/events")
    async def create_event():
        backend.calls += 1
        return {"created": True}

    @app.get("/api/users/me")
    async def me():
        backend.calls += 1
        return {"id": 1}

    return app


@pytest.fixture
def test_client(test_settings, backend, store, clock):
    with TestClient(build_app(test_settings, backend, store, clock)) as client:
        yield client


class TestReadThrough:
    def test_miss_then_hit(self, test_client, backend):
        first = test_client.get("/api/events")
        second = test_client.get("/api/events")

        assert first.headers["X-Cache"] == "MISS"
        assert second.headers["X-Cache"] == "HIT"
        assert second.json() == first.json()
        assert second.headers["content-type"] == first.headers["content-type"]
        assert backend.calls == 1

    def test_query_order_shares_entry(self, test_client, backend):
        test_client.get("/api/events?page=2&sort=date")
        response = test_client.get("/api/events?sort=date&page=2")

        assert response.headers["X-Cache"] == "HIT"
        assert backend.calls == 1

    def test_distinct_queries_do_not_share(self, test_client, backend):
        test_client.get("/api/events?page=1")
        response = test_client.get("/api/events?page=2")

        assert response.headers["X-Cache"] == "MISS"
        assert response.json()["page"] == 2
        assert backend.calls == 2

    def test_non_200_is_not_cached(self, test_client, backend):
        backend.status = 404
        test_client.get("/api/events")
        response = test_client.get("/api/events")

        assert response.status_code == 404
        assert response.headers["X-Cache"] == "MISS"
        assert backend.calls == 2

    def test_text_body_is_replayed(self, test_client, backend):
        test_client.get("/api/categories")
        response = test_client.get("/api/categories")

        assert response.headers["X-Cache"] == "HIT"
        assert response.text == "music,sports"
        assert response.headers["content-type"].startswith("text/plain")

    def test_post_is_never_cached(self, test_client, backend):
        first = test_client.post("/api/events")
        test_client.post("/api/events")

        assert "X-Cache" not in first.headers
        assert backend.calls == 2

    def test_unconfigured_prefix_is_not_cached(self, test_client, backend):
        response = test_client.get("/api/users/me")
        test_client.get("/api/users/me")

        assert "X-Cache" not in response.headers
        assert backend.calls == 2

    def test_percent_encoded_paths_do_not_share(self, test_client, backend):
        first = test_client.get("/api/events/by-name/%25")
        second = test_client.get("/api/events/by-name/%2525")

        assert first.json() == {"name": "%"}
        assert second.headers["X-Cache"] == "MISS"
        assert second.json() == {"name": "%25"}
        assert backend.calls == 2

    def test_repeated_headers_survive(self, test_client):
        response = test_client.get("/api/events/with-cookies")

        assert response.headers["X-Cache"] == "MISS"
        cookies = response.headers.get_list("set-cookie")
        assert len(cookies) == 2
        assert any(c.startswith("session=abc") for c in cookies)
        assert any(c.startswith("theme=dark") for c in cookies)

    def test_entry_expires_after_route_ttl(self, test_client, backend, clock):
        test_client.get("/api/categories")

        clock.advance(3599)
        assert test_client.get("/api/categories").headers["X-Cache"] == "HIT"

        clock.advance(2)
        assert test_client.get("/api/categories").headers["X-Cache"] == "MISS"
        assert backend.calls == 2

    def test_invalidation_forces_refetch(self, test_client, backend):
        test_client.get("/api/events")
        test_client.delete("/api/cache/keys", params={"pattern": "/api/events"})
        response = test_client.get("/api/events")

        assert response.headers["X-Cache"] == "MISS"
        assert backend.calls == 2


class TestDegradedStore:
    def test_store_failure_never_fails_request(self, test_settings, backend, store, clock):
        async def broken(*args, **kwargs):
            raise CacheStoreUnavailableError("down", backend="memory")

        store.get = broken
        store.set = broken
        with TestClient(build_app(test_settings, backend, store, clock)) as client:
            first = client.get("/api/events")
            second = client.get("/api/events")

        assert first.status_code == 200
        assert second.status_code == 200
        assert second.headers["X-Cache"] == "MISS"
        assert backend.calls == 2

    def test_disabled_cache_bypasses(self, test_settings, backend, store, clock):
        app = build_app(test_settings, backend, store, clock, enabled=False)
        with TestClient(app) as client:
            client.get("/api/events")
            response = client.get("/api/events")

        assert response.headers["X-Cache"] == "BYPASS"
        assert backend.calls == 2


class TestRouteHelpers:
    def test_prefix_matching_respects_segments(self):
        prefixes = ["/api/events"]
        assert is_cacheable_route("/api/events", prefixes)
        assert is_cacheable_route("/api/events/42", prefixes)
        assert not is_cacheable_route("/api/eventsfeed", prefixes)

    def test_longest_prefix_ttl_wins(self):
        ttls = {"/api/events": 60, "/api/events/search": 10}
        assert route_ttl("/api/events/search", ttls, 300) == 10
        assert route_ttl("/api/events/42", ttls, 300) == 60
        assert route_ttl("/api/venues", ttls, 300) == 300
