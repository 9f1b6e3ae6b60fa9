from datetime import datetime, timezone

from fastapi import APIRouter, Request
from fastapi.responses import ORJSONResponse

router = APIRouter()


@router.get("/", include_in_schema=False)
async def root_health_check() -> ORJSONResponse:
    """Check basic API health and availability.

    Returns:
        ORJSONResponse: A response with status 'ok' and current UTC timestamp.
    """
    return ORJSONResponse(
        {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    )


@router.get("/health")
async def health_check(request: Request) -> ORJSONResponse:
    """Service health including whether the response cache store is reachable.

    The service stays healthy when the cache store is down; it only reports
    ``degraded`` so operators can see caching is being bypassed.
    """
    health = await request.app.state.response_cache.health_check()
    degraded = health.enabled and not health.reachable
    return ORJSONResponse(
        {
            "status": "degraded" if degraded else "ok",
            "cache": {
                "backend": health.backend,
                "reachable": health.reachable,
                "enabled": health.enabled,
            },
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    )
