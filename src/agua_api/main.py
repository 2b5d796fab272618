"""FastAPI application factory.

Creates the FastAPI app with lifespan management, exception handlers,
and OpenAPI metadata.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger

from agua_api import __version__
from agua_api.core.config import get_settings
from agua_api.core.database import dispose_engine, init_engine
from agua_api.core.exceptions import AccessControlError
from agua_api.core.logging import setup_logging

_INTERNAL_ERROR_MESSAGE = "Internal server error"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage application lifecycle: init engine on startup, dispose on shutdown."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_dir)
    init_engine(settings.database_url, echo=False, schema=settings.database_schema)
    logger.info("Agua API started (environment={})", settings.environment)

    yield

    await dispose_engine()


async def access_control_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render an access-control outcome as its status and fixed public message."""
    assert isinstance(exc, AccessControlError)
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.public_message},
        headers=headers,
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log the failure and answer with an opaque 500."""
    logger.opt(exception=exc).error("Unhandled error on {} {}", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": _INTERNAL_ERROR_MESSAGE})


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="Agua API",
        description="Authentication and access control for the water-meter client and reading service",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_exception_handler(AccessControlError, access_control_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    from agua_api.api.router import create_router, setup_middleware

    setup_middleware(app, settings)
    app.include_router(create_router(settings))

    return app
