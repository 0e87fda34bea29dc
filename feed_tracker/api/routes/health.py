"""
Health check endpoint.
"""

import time

import structlog
from fastapi import APIRouter, Depends

from feed_tracker import __version__
from feed_tracker.api.dependencies import get_database
from feed_tracker.api.models import ComponentHealth, HealthResponse
from feed_tracker.storage.database import Database

router = APIRouter()
logger = structlog.get_logger(__name__)


async def _check_database(db: Database) -> ComponentHealth:
    """Check database connectivity and measure latency."""
    start = time.perf_counter()
    healthy = await db.health_check()
    latency_ms = (time.perf_counter() - start) * 1000
    return ComponentHealth(
        status="healthy" if healthy else "unhealthy",
        latency_ms=round(latency_ms, 2),
    )


@router.get("/health", response_model=HealthResponse, summary="Service health")
async def health_check(db: Database = Depends(get_database)) -> HealthResponse:
    database = await _check_database(db)
    if database.status != "healthy":
        logger.warning("Database health check failed")
    return HealthResponse(
        status=database.status,
        version=__version__,
        components={"database": database},
    )
