"""Read-through response caching for idempotent GET routes."""

from typing import Awaitable, Callable, Dict, Iterable, Optional
from urllib.parse import quote

from fastapi import Request
from fastapi.responses import Response

from ...application.cache import ResponseCache
from ...constants import (
    CACHEABLE_METHOD,
    CACHE_BYPASS,
    CACHE_HIT,
    CACHE_MISS,
    CACHE_STATUS_HEADER,
)
from ...logging import warning, LogRecord, LogEvent


def _prefix_matches(path: str, prefix: str) -> bool:
    prefix = prefix.rstrip("/")
    return path == prefix or path.startswith(prefix + "/")


def is_cacheable_route(path: str, prefixes: Iterable[str]) -> bool:
    return any(_prefix_matches(path, prefix) for prefix in prefixes)


def route_ttl(path: str, route_ttls: Dict[str, int], default: float) -> float:
    """TTL of the longest configured prefix matching ``path``."""
    best: Optional[str] = None
    for prefix in route_ttls:
        if _prefix_matches(path, prefix) and (best is None or len(prefix) > len(best)):
            best = prefix
    return route_ttls[best] if best is not None else default


def request_key_path(request: Request) -> str:
    """Path as sent on the wire, still percent-encoded."""
    raw_path = request.scope.get("raw_path")
    if raw_path:
        return raw_path.decode("latin-1").split("?", 1)[0]
    return quote(request.url.path)


def _cached_response(value: dict) -> Response:
    response = Response(
        content=value["body"],
        status_code=value.get("status", 200),
        media_type=value.get("media_type"),
    )
    response.headers[CACHE_STATUS_HEADER] = CACHE_HIT
    return response


async def response_cache_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    """Serve cached bodies for configured GET routes and cache fresh 200s.

    Uses ``app.state.response_cache`` and the route prefixes and TTLs from
    ``app.state.settings``. Lookups and stores go through
    :class:`ResponseCache`, which never raises for store failures, so caching
    cannot fail the request.
    """
    cache: ResponseCache = request.app.state.response_cache
    settings = request.app.state.settings

    if request.method != CACHEABLE_METHOD or not is_cacheable_route(
        request.url.path, settings.cache_route_prefixes
    ):
        return await call_next(request)

    request_id = getattr(request.state, "request_id", None)
    key = cache.make_key(request.method, request_key_path(request), request.query_params)
    lookup = await cache.get(key, request_id=request_id)
    if lookup.hit and isinstance(lookup.value, dict) and "body" in lookup.value:
        return _cached_response(lookup.value)

    response = await call_next(request)
    body = b"".join([chunk async for chunk in response.body_iterator])
    fresh = Response(content=body, status_code=response.status_code)
    # raw list keeps repeated headers such as Set-Cookie
    fresh.raw_headers = list(response.raw_headers)

    if lookup.reason == "disabled":
        fresh.headers[CACHE_STATUS_HEADER] = CACHE_BYPASS
        return fresh

    fresh.headers[CACHE_STATUS_HEADER] = CACHE_MISS
    if response.status_code != 200:
        return fresh

    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError as e:
        warning(
            LogRecord(
                event=LogEvent.CACHE_SET.value,
                message="Response body is not text, not caching",
                request_id=request_id,
                data={"path": request.url.path},
            ),
            exc=e,
        )
        return fresh

    await cache.set(
        key,
        {
            "status": response.status_code,
            "body": text,
            "media_type": response.headers.get("content-type"),
        },
        ttl_seconds=route_ttl(
            request.url.path,
            settings.cache_route_ttls,
            settings.cache_default_ttl_seconds,
        ),
        request_id=request_id,
    )
    return fresh
