"""Cache administration endpoints."""

import hmac
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import ORJSONResponse

from ....application.cache import ResponseCache, path_pattern
from ....constants import CACHE_ADMIN_TOKEN_HEADER
from ....logging import info, LogRecord, LogEvent


async def require_admin_token(request: Request) -> None:
    """Reject the request unless it carries the configured admin token.

    With no ``CACHE_ADMIN_TOKEN`` configured the routes are open.
    """
    expected = request.app.state.settings.cache_admin_token
    if not expected:
        return
    supplied = request.headers.get(CACHE_ADMIN_TOKEN_HEADER, "")
    if not hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8")):
        raise HTTPException(status_code=403, detail="Admin access required")


router = APIRouter(prefix="/api/cache", dependencies=[Depends(require_admin_token)])


def _cache(request: Request) -> ResponseCache:
    return request.app.state.response_cache


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/health")
async def cache_health(request: Request) -> ORJSONResponse:
    health = await _cache(request).health_check()
    info(
        LogRecord(
            event=LogEvent.HEALTH_CHECK.value,
            message="Cache health checked",
            request_id=getattr(request.state, "request_id", None),
            data={"backend": health.backend, "reachable": health.reachable},
        )
    )
    return ORJSONResponse(
        {"success": True, "data": {"cache": health.model_dump(), "timestamp": _now()}}
    )


@router.get("/stats")
async def cache_stats(request: Request) -> ORJSONResponse:
    """Get detailed cache statistics."""
    return ORJSONResponse(
        {"success": True, "data": {"stats": _cache(request).get_stats(), "timestamp": _now()}}
    )


@router.delete("/clear")
async def clear_cache(request: Request) -> ORJSONResponse:
    """Invalidate every entry in the cache namespace."""
    removed = await _cache(request).clear()
    return ORJSONResponse(
        {
            "success": True,
            "message": "Cache cleared successfully",
            "removed": removed,
            "timestamp": _now(),
        }
    )


@router.delete("/keys")
async def invalidate_keys(
    request: Request,
    pattern: str = Query(..., min_length=1),
) -> ORJSONResponse:
    """Invalidate keys matching a glob, or every GET key under a path.

    A ``pattern`` starting with ``/`` is taken as a path prefix and
    expanded to this cache's key pattern; anything else is a raw glob.
    """
    cache = _cache(request)
    glob = path_pattern(pattern, cache.namespace) if pattern.startswith("/") else pattern
    removed = await cache.delete_pattern(glob)
    return ORJSONResponse(
        {"success": True, "pattern": glob, "removed": removed, "timestamp": _now()}
    )
