"""
ASGI entry point for Uvicorn and Gunicorn.
This module provides the application factory for production deployment.
"""

import sys
from fastapi import FastAPI
from dotenv import load_dotenv
from eventboard.config import Settings
from eventboard.domain.exceptions import ConfigurationError
from eventboard.interfaces.http.app import create_app

load_dotenv()


def create_application() -> FastAPI:
    """Application factory for Uvicorn."""
    try:
        settings = Settings()
    except ConfigurationError as e:
        print(f"\nConfiguration Error:\n{e}", file=sys.stderr)
        raise SystemExit(1)
    return create_app(settings)


app = create_application()

if __name__ == "__main__":
    import uvicorn

    settings = Settings()
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_config=None,
        access_log=False,
    )
