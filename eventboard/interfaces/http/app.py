from contextlib import asynccontextmanager
from typing import Optional

import anyio
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ...config import Settings
from ...logging import init_logging, info, LogRecord, LogEvent
from ...application.cache import ResponseCache
from ...application.cache.factory import create_response_cache
from ...domain.exceptions import CacheError
from .cache_middleware import response_cache_middleware
from .middleware import logging_middleware
from .errors import log_and_return_error_response
from .routes.health import router as health_router
from .routes.cache import router as cache_router


def create_app(settings: Settings, cache: Optional[ResponseCache] = None) -> FastAPI:
    """Creates and configures the FastAPI application instance.

    Initializes logging, wires the response cache into ``app.state``,
    installs the read-through cache middleware and registers the health and
    cache admin routes.

    Args:
        settings: Configuration settings object
        cache: Response cache to use; built from ``settings`` when omitted

    Returns:
        Fully configured FastAPI application instance
    """
    init_logging(settings)
    response_cache = cache or create_response_cache(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await app.state.response_cache.open()
        async with anyio.create_task_group() as tg:
            tg.start_soon(
                app.state.response_cache.cleanup_loop,
                settings.cache_cleanup_interval_seconds,
            )
            info(
                LogRecord(
                    event=LogEvent.CACHE_EVENT.value,
                    message="Response cache cleanup started",
                    data={"interval_seconds": settings.cache_cleanup_interval_seconds},
                )
            )
            try:
                yield
            finally:
                info(
                    LogRecord(
                        event=LogEvent.CACHE_EVENT.value,
                        message="Initiating application shutdown",
                    )
                )
                tg.cancel_scope.cancel()
                await app.state.response_cache.close()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        docs_url=None,
        redoc_url=None,
        description="Community Event Board API with read-through response caching.",
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
    )
    app.state.settings = settings
    app.state.response_cache = response_cache

    # Registered innermost first: logging wraps the cache so hits carry a request id.
    app.middleware("http")(response_cache_middleware)
    app.middleware("http")(logging_middleware)

    app.include_router(health_router, tags=["Health"])
    app.include_router(cache_router, tags=["Cache"])

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return await log_and_return_error_response(
            request, exc.status_code, str(exc.detail), caught_exception=exc
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return await log_and_return_error_response(
            request,
            422,
            f"Validation error: {exc.errors()}",
            caught_exception=exc,
        )

    @app.exception_handler(CacheError)
    async def cache_error_handler(request: Request, exc: CacheError):
        return await log_and_return_error_response(
            request, 503, "Cache store unavailable.", caught_exception=exc
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        return await log_and_return_error_response(
            request,
            500,
            "An unexpected internal server error occurred.",
            caught_exception=exc,
        )

    return app
