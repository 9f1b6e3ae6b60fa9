from typing import Iterator

from unittest.mock import MagicMock, patch
import pytest


# Configure anyio to only use asyncio backend
@pytest.fixture
def anyio_backend() -> str:
    """Force tests to use asyncio backend only."""
    return "asyncio"


@pytest.fixture(autouse=True, scope="session")
def mock_logger() -> Iterator[MagicMock]:
    with patch("eventboard.logging._logger", MagicMock()) as mock_logger:
        mock_logger.log.return_value = None
        yield mock_logger


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def test_settings(tmp_path, monkeypatch):
    """Settings with logs under a temp dir and caching in memory."""
    monkeypatch.setenv("LOG_FILE_PATH", str(tmp_path / "test.jsonl"))
    monkeypatch.setenv("ERROR_LOG_FILE_PATH", str(tmp_path / "error.jsonl"))
    monkeypatch.setenv("CACHE_BACKEND", "memory")
    monkeypatch.delenv("CACHE_ADMIN_TOKEN", raising=False)

    from eventboard.config import Settings

    return Settings()
