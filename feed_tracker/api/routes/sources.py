"""Source feed endpoints."""

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status

from feed_tracker.api.auth import verify_api_key
from feed_tracker.api.dependencies import get_feed_storage, storage_unavailable
from feed_tracker.api.models import (
    CreateSourceRequest,
    ErrorResponse,
    SourceFeedItem,
    SourcesListResponse,
)
from feed_tracker.errors import DuplicateSourceFeedError, StorageError
from feed_tracker.sources.service import SourceFeedService
from feed_tracker.storage.gateway import FeedStorage

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get(
    "/sources",
    response_model=SourcesListResponse,
    responses={401: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    summary="List source feeds",
)
async def list_sources(
    api_key: str = Depends(verify_api_key),
    storage: FeedStorage = Depends(get_feed_storage),
) -> SourcesListResponse:
    try:
        sources = await SourceFeedService(storage).list_sources()
    except StorageError as e:
        raise storage_unavailable("list_sources", e)
    items = [SourceFeedItem.from_source(s) for s in sources]
    return SourcesListResponse(sources=items, total=len(items))


@router.get(
    "/sources/lookup",
    response_model=SourceFeedItem,
    responses={404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    summary="Get a source feed by URL",
)
async def get_source(
    url: str = Query(..., min_length=1, description="Source feed URL"),
    api_key: str = Depends(verify_api_key),
    storage: FeedStorage = Depends(get_feed_storage),
) -> SourceFeedItem:
    try:
        source = await SourceFeedService(storage).get_source(url)
    except StorageError as e:
        raise storage_unavailable("get_source", e)
    if source is None:
        raise HTTPException(status_code=404, detail=f"Source feed not found: {url}")
    return SourceFeedItem.from_source(source)


@router.post(
    "/sources",
    response_model=SourceFeedItem,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    summary="Add a source feed",
)
async def create_source(
    body: CreateSourceRequest,
    api_key: str = Depends(verify_api_key),
    storage: FeedStorage = Depends(get_feed_storage),
) -> SourceFeedItem:
    try:
        source = await SourceFeedService(storage).add_source(body.url, body.title)
    except DuplicateSourceFeedError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except StorageError as e:
        raise storage_unavailable("create_source", e)
    logger.info("source_created", url=source.url)
    return SourceFeedItem.from_source(source)
