"""
FastAPI dependency providers.

The database pool is created lazily on first request and shared for the
lifetime of the process.
"""

import structlog
from fastapi import HTTPException, status

from feed_tracker.errors import StorageError
from feed_tracker.storage.database import Database
from feed_tracker.storage.gateway import FeedStorage
from feed_tracker.storage.repository import FeedRepository

logger = structlog.get_logger(__name__)

_database: Database | None = None
_storage: FeedStorage | None = None


async def get_database() -> Database:
    """Get the shared, connected Database."""
    global _database
    if _database is None:
        _database = Database()
        await _database.connect()
    return _database


async def get_feed_storage() -> FeedStorage:
    """Get the storage backend serving API queries."""
    global _storage
    if _storage is None:
        _storage = FeedRepository(await get_database())
    return _storage


async def cleanup_dependencies() -> None:
    """Clean up global dependencies on shutdown."""
    global _database, _storage
    _storage = None
    if _database is not None:
        await _database.close()
        _database = None


def storage_unavailable(operation: str, e: StorageError) -> HTTPException:
    """Log a storage failure and build the 503 returned to the client."""
    logger.error("storage_error", operation=operation, error=str(e))
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Feed storage unavailable",
    )
