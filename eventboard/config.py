from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, AliasChoices, field_validator
from typing import Optional, List, Union, Any, Dict

from urllib.parse import urlparse

from eventboard.domain.exceptions import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        env_prefix="",
        case_sensitive=False,
        populate_by_name=True,
    )

    app_name: str = Field(
        default="EventBoard", validation_alias=AliasChoices("APP_NAME")
    )
    app_version: str = "1.0.0"
    log_level: str = Field(default="INFO", validation_alias=AliasChoices("LOG_LEVEL"))
    log_file_path: Optional[str] = Field(
        default="log.jsonl", validation_alias=AliasChoices("LOG_FILE_PATH")
    )
    error_log_file_path: Optional[str] = Field(
        default="error.jsonl", validation_alias=AliasChoices("ERROR_LOG_FILE_PATH")
    )
    log_pretty_console: bool = Field(
        default=False, validation_alias=AliasChoices("LOG_PRETTY_CONSOLE")
    )
    host: str = Field(default="127.0.0.1", validation_alias=AliasChoices("HOST"))
    port: int = Field(default=3001, validation_alias=AliasChoices("PORT"))
    reload: bool = False

    redact_log_fields: Union[List[str], str] = Field(
        default_factory=lambda: ["authorization", "password", "x-cache-admin-token"],
        validation_alias=AliasChoices("REDACT_LOG_FIELDS"),
    )

    # Server-side response cache
    cache_enabled: bool = Field(
        default=True, validation_alias=AliasChoices("CACHE_ENABLED")
    )
    cache_backend: str = Field(
        default="memory", validation_alias=AliasChoices("CACHE_BACKEND")
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0", validation_alias=AliasChoices("REDIS_URL")
    )
    cache_namespace: str = Field(
        default="api", validation_alias=AliasChoices("CACHE_NAMESPACE")
    )
    cache_default_ttl_seconds: int = Field(
        default=300, validation_alias=AliasChoices("CACHE_DEFAULT_TTL_SECONDS")
    )
    cache_route_prefixes: Union[List[str], str] = Field(
        default_factory=lambda: ["/api/events", "/api/categories"],
        validation_alias=AliasChoices("CACHE_ROUTE_PREFIXES"),
    )
    cache_route_ttls: Union[Dict[str, int], str] = Field(
        default_factory=lambda: {"/api/events/search": 300, "/api/categories": 3600},
        validation_alias=AliasChoices("CACHE_ROUTE_TTLS"),
    )
    cache_store_timeout_seconds: float = Field(
        default=0.5, validation_alias=AliasChoices("CACHE_STORE_TIMEOUT_SECONDS")
    )
    cache_failure_threshold: int = Field(
        default=5, validation_alias=AliasChoices("CACHE_FAILURE_THRESHOLD")
    )
    cache_failure_reset_seconds: int = Field(
        default=30, validation_alias=AliasChoices("CACHE_FAILURE_RESET_SECONDS")
    )
    cache_cleanup_interval_seconds: float = Field(
        default=60.0, validation_alias=AliasChoices("CACHE_CLEANUP_INTERVAL_SECONDS")
    )
    cache_admin_token: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("CACHE_ADMIN_TOKEN")
    )

    # Client-side offline cache controller
    offline_origin: str = Field(
        default="http://localhost:3000", validation_alias=AliasChoices("OFFLINE_ORIGIN")
    )
    offline_api_prefix: str = Field(
        default="/api/", validation_alias=AliasChoices("OFFLINE_API_PREFIX")
    )
    offline_cache_version: str = Field(
        default="v1", validation_alias=AliasChoices("OFFLINE_CACHE_VERSION")
    )
    offline_precache_manifest: Union[List[str], str] = Field(
        default_factory=lambda: [
            "/",
            "/index.html",
            "/offline.html",
            "/manifest.json",
            "/icon-192.png",
            "/icon-512.png",
        ],
        validation_alias=AliasChoices("OFFLINE_PRECACHE_MANIFEST"),
    )
    offline_document_path: str = Field(
        default="/offline.html", validation_alias=AliasChoices("OFFLINE_DOCUMENT_PATH")
    )
    offline_store_path: str = Field(
        default="community-events.db", validation_alias=AliasChoices("OFFLINE_STORE_PATH")
    )
    offline_sync_routes: Union[List[str], str] = Field(
        default_factory=lambda: ["/api/registrations"],
        validation_alias=AliasChoices("OFFLINE_SYNC_ROUTES"),
    )
    offline_sync_tag: str = Field(
        default="sync-registrations", validation_alias=AliasChoices("OFFLINE_SYNC_TAG")
    )

    @field_validator(
        "redact_log_fields",
        "cache_route_prefixes",
        "offline_precache_manifest",
        "offline_sync_routes",
    )
    @classmethod
    def parse_comma_separated(cls, v: Union[List[str], str]) -> List[str]:
        """Parse comma-separated string values into lists for configuration fields.

        Handles both string inputs (splitting by commas) and already-list inputs.
        Empty strings are converted to empty lists.
        """
        if isinstance(v, str):
            if v.strip() == "":
                return []
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @field_validator("cache_route_ttls")
    @classmethod
    def parse_route_ttls(cls, v: Union[Dict[str, int], str]) -> Dict[str, int]:
        """Parse ``prefix=seconds`` pairs separated by commas."""
        if not isinstance(v, str):
            return v
        ttls: Dict[str, int] = {}
        for item in v.split(","):
            item = item.strip()
            if not item:
                continue
            prefix, sep, seconds = item.rpartition("=")
            if not sep or not prefix.strip():
                raise ValueError(f"Invalid CACHE_ROUTE_TTLS entry: {item!r}")
            ttls[prefix.strip()] = int(seconds)
        return ttls

    def __init__(self, **kwargs: Any) -> None:
        """Initialize settings object and validate cross-field constraints.

        Raises:
            ConfigurationError: If a setting is out of range or malformed
        """
        super().__init__(**kwargs)
        self._validate_cache()
        self._validate_offline()

    def _validate_cache(self) -> None:
        """Validate response cache settings."""
        errors = []

        if self.cache_backend not in ("memory", "redis"):
            errors.append("CACHE_BACKEND must be 'memory' or 'redis'.")
        if self.cache_backend == "redis":
            scheme = urlparse(self.redis_url).scheme.lower()
            if scheme not in ("redis", "rediss", "unix"):
                errors.append("REDIS_URL must use redis://, rediss:// or unix://.")
        if self.cache_default_ttl_seconds <= 0:
            errors.append("CACHE_DEFAULT_TTL_SECONDS must be positive.")
        if any(ttl <= 0 for ttl in self.cache_route_ttls.values()):
            errors.append("CACHE_ROUTE_TTLS values must be positive.")
        if self.cache_cleanup_interval_seconds <= 0:
            errors.append("CACHE_CLEANUP_INTERVAL_SECONDS must be positive.")
        if not self.cache_namespace or any(c in self.cache_namespace for c in ":*?[]\\"):
            errors.append(
                "CACHE_NAMESPACE must be non-empty and contain none of : * ? [ ] \\."
            )

        if errors:
            raise ConfigurationError("\n".join(errors), config_key="cache")

    def _validate_offline(self) -> None:
        """Validate offline controller settings."""
        errors = []

        parsed = urlparse(self.offline_origin)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            errors.append("OFFLINE_ORIGIN must be an absolute http(s) origin.")
        if not self.offline_api_prefix.startswith("/"):
            errors.append("OFFLINE_API_PREFIX must start with '/'.")
        for path in self.offline_precache_manifest:
            if not path.startswith("/"):
                errors.append(f"Precache path {path!r} must be absolute.")
        if not self.offline_cache_version.strip():
            errors.append("OFFLINE_CACHE_VERSION must not be empty.")

        if errors:
            raise ConfigurationError("\n".join(errors), config_key="offline")
