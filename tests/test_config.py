"""Tests for settings parsing and validation."""

import pytest

from eventboard.config import Settings
from eventboard.domain.exceptions import ConfigurationError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for name in (
        "CACHE_BACKEND",
        "CACHE_ROUTE_PREFIXES",
        "CACHE_ROUTE_TTLS",
        "OFFLINE_ORIGIN",
        "OFFLINE_PRECACHE_MANIFEST",
        "CACHE_NAMESPACE",
    ):
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = Settings()
    assert settings.port == 3001
    assert settings.cache_backend == "memory"
    assert settings.cache_default_ttl_seconds == 300
    assert settings.offline_cache_version == "v1"
    assert "/offline.html" in settings.offline_precache_manifest
    assert settings.offline_sync_tag == "sync-registrations"


def test_comma_separated_lists(monkeypatch):
    monkeypatch.setenv("CACHE_ROUTE_PREFIXES", "/api/events, /api/venues")
    monkeypatch.setenv("OFFLINE_PRECACHE_MANIFEST", "/,/offline.html")
    settings = Settings()
    assert settings.cache_route_prefixes == ["/api/events", "/api/venues"]
    assert settings.offline_precache_manifest == ["/", "/offline.html"]


def test_route_ttls_from_env(monkeypatch):
    monkeypatch.setenv("CACHE_ROUTE_TTLS", "/api/events=60, /api/categories=3600")
    settings = Settings()
    assert settings.cache_route_ttls == {"/api/events": 60, "/api/categories": 3600}


def test_field_names_are_accepted():
    settings = Settings(port=8080, cache_namespace="events")
    assert settings.port == 8080
    assert settings.cache_namespace == "events"


@pytest.mark.parametrize(
    "overrides",
    [
        {"cache_backend": "memcached"},
        {"cache_default_ttl_seconds": 0},
        {"cache_route_ttls": {"/api/events": -1}},
        {"cache_namespace": "api:v2"},
        {"cache_namespace": "api*"},
        {"cache_namespace": "api?"},
        {"cache_namespace": "[ab]pi"},
        {"cache_backend": "redis", "redis_url": "http://localhost:6379"},
    ],
)
def test_invalid_cache_settings(overrides):
    with pytest.raises(ConfigurationError) as info:
        Settings(**overrides)
    assert info.value.config_key == "cache"


@pytest.mark.parametrize(
    "overrides",
    [
        {"offline_origin": "localhost:3000"},
        {"offline_api_prefix": "api/"},
        {"offline_precache_manifest": ["/", "offline.html"]},
        {"offline_cache_version": " "},
    ],
)
def test_invalid_offline_settings(overrides):
    with pytest.raises(ConfigurationError) as info:
        Settings(**overrides)
    assert info.value.config_key == "offline"
