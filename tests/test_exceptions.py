"""Tests for the exception hierarchy."""

import pytest

from eventboard.domain.exceptions import (
    CacheError,
    CacheStoreUnavailableError,
    ConfigurationError,
    EventBoardException,
    NetworkUnavailableError,
    OfflineError,
    PrecacheError,
    ReplayError,
)


class TestExceptionHierarchy:
    @pytest.mark.parametrize(
        "exc_class,parent",
        [
            (ConfigurationError, EventBoardException),
            (CacheError, EventBoardException),
            (CacheStoreUnavailableError, CacheError),
            (OfflineError, EventBoardException),
            (NetworkUnavailableError, OfflineError),
            (PrecacheError, OfflineError),
            (ReplayError, OfflineError),
        ],
    )
    def test_inheritance(self, exc_class, parent):
        assert issubclass(exc_class, parent)

    def test_base_defaults(self):
        exc = EventBoardException("boom")
        assert str(exc) == "boom"
        assert exc.message == "boom"
        assert exc.request_id is None
        assert exc.details == {}


class TestExceptionAttributes:
    def test_store_unavailable(self):
        exc = CacheStoreUnavailableError("down", backend="redis", operation="get")
        assert exc.backend == "redis"
        assert exc.operation == "get"

    def test_precache_error(self):
        exc = PrecacheError("failed", failed_paths=["/app.js"], version="v2")
        assert exc.failed_paths == ["/app.js"]
        assert exc.version == "v2"
        assert PrecacheError("failed").failed_paths == []

    def test_replay_error(self):
        exc = ReplayError("rejected", action_id=3, status_code=409, request_id="r1")
        assert (exc.action_id, exc.status_code, exc.request_id) == (3, 409, "r1")

    def test_configuration_error_key(self):
        with pytest.raises(EventBoardException) as info:
            raise ConfigurationError("bad ttl", config_key="cache")
        assert info.value.config_key == "cache"
