"""Tests for request id and timing middleware."""

import pytest
from fastapi.testclient import TestClient

from eventboard.interfaces.http.app import create_app


@pytest.fixture
def test_client(test_settings):
    with TestClient(create_app(test_settings)) as client:
        yield client


def test_request_id_and_timing_headers(test_client):
    response = test_client.get("/")

    assert response.status_code == 200
    assert len(response.headers["X-Request-ID"]) == 36
    assert float(response.headers["X-Response-Time-ms"]) >= 0


def test_client_request_id_is_echoed(test_client):
    response = test_client.get("/", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


def test_request_ids_are_unique(test_client):
    first = test_client.get("/").headers["X-Request-ID"]
    second = test_client.get("/").headers["X-Request-ID"]
    assert first != second


def test_cache_hits_carry_request_id(test_client):
    app = test_client.app

    @app.get("/api/categories")
    async def categories():
        return ["music"]

    test_client.get("/api/categories")
    hit = test_client.get("/api/categories")

    assert hit.headers["X-Cache"] == "HIT"
    assert "X-Request-ID" in hit.headers
