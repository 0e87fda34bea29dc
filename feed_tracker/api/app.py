"""
FastAPI application factory.
"""

import time
import uuid
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from feed_tracker import __version__
from feed_tracker.api.dependencies import cleanup_dependencies
from feed_tracker.api.routes import health, snapshots, sources
from feed_tracker.observability.logging import bind_context, clear_context

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Feed API starting up")
    yield
    logger.info("Feed API shutting down")
    await cleanup_dependencies()


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application
    """
    openapi_tags = [
        {"name": "health", "description": "Service health checks"},
        {"name": "sources", "description": "Configured source feeds"},
        {"name": "snapshots", "description": "Stored feed snapshot history"},
    ]

    app = FastAPI(
        title="Feed Tracker API",
        description="""
Read access to polled RSS feeds and their snapshot history.

## Authentication

Requires `X-API-KEY` header for all requests except `/health` when
`API_KEYS` is configured.
        """,
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
        openapi_tags=openapi_tags,
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        bind_context(request_id=request_id)
        start_time = time.perf_counter()
        try:
            response = await call_next(request)
            duration = time.perf_counter() - start_time
            response.headers["X-Request-ID"] = request_id
            logger.info(
                "HTTP request",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round(duration * 1000, 2),
            )
            return response
        finally:
            clear_context()

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error", "error_type": "internal"},
        )

    app.include_router(health.router, tags=["health"])
    app.include_router(sources.router, tags=["sources"])
    app.include_router(snapshots.router, tags=["snapshots"])

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "service": "Feed Tracker API",
            "version": __version__,
            "docs": "/docs",
        }

    return app
