"""Exception hierarchy for the EventBoard caching subsystem.

Server-side cache failures and client-side offline failures each get their
own branch so callers can decide which ones degrade and which ones surface.
"""

from typing import Optional, Dict, Any


class EventBoardException(Exception):
    """Base exception for all EventBoard-specific exceptions."""

    def __init__(
        self,
        message: str,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.request_id = request_id
        self.details = details or {}


class ConfigurationError(EventBoardException):
    """Raised when configuration is invalid or missing."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, request_id, details)
        self.config_key = config_key


class CacheError(EventBoardException):
    """Base exception for cache-related errors."""

    pass


class CacheStoreUnavailableError(CacheError):
    """Raised by a cache store when its backend cannot be reached."""

    def __init__(
        self,
        message: str,
        backend: Optional[str] = None,
        operation: Optional[str] = None,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, request_id, details)
        self.backend = backend
        self.operation = operation


class OfflineError(EventBoardException):
    """Base exception for the client-side offline cache controller."""

    pass


class NetworkUnavailableError(OfflineError):
    """Raised when a network attempt fails and no fallback applies."""

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, request_id, details)
        self.url = url


class PrecacheError(OfflineError):
    """Raised when the precache manifest cannot be stored as a unit."""

    def __init__(
        self,
        message: str,
        failed_paths: Optional[list] = None,
        version: Optional[str] = None,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, request_id, details)
        self.failed_paths = failed_paths or []
        self.version = version


class ReplayError(OfflineError):
    """Describes a pending action that could not be replayed."""

    def __init__(
        self,
        message: str,
        action_id: Optional[int] = None,
        status_code: Optional[int] = None,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, request_id, details)
        self.action_id = action_id
        self.status_code = status_code
