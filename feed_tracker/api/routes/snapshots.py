"""Snapshot history endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query

from feed_tracker.api.auth import verify_api_key
from feed_tracker.api.dependencies import get_feed_storage, storage_unavailable
from feed_tracker.api.models import (
    ErrorResponse,
    LatestSnapshotsResponse,
    SnapshotHistoryResponse,
    SnapshotItem,
)
from feed_tracker.errors import StorageError
from feed_tracker.storage.gateway import FeedStorage

router = APIRouter()

_STORAGE_RESPONSES = {401: {"model": ErrorResponse}, 503: {"model": ErrorResponse}}


@router.get(
    "/snapshots",
    response_model=SnapshotHistoryResponse,
    responses=_STORAGE_RESPONSES,
    summary="Snapshot history grouped by source",
)
async def list_snapshots(
    source_url: str | None = Query(default=None, description="Only this source"),
    api_key: str = Depends(verify_api_key),
    storage: FeedStorage = Depends(get_feed_storage),
) -> SnapshotHistoryResponse:
    try:
        if source_url is not None:
            records = await storage.list_snapshots_by_url(source_url)
            grouped = {source_url: records} if records else {}
        else:
            grouped = await storage.list_snapshots()
    except StorageError as e:
        raise storage_unavailable("list_snapshots", e)

    sources = {
        url: [SnapshotItem.from_record(r) for r in records]
        for url, records in grouped.items()
    }
    return SnapshotHistoryResponse(
        sources=sources,
        total=sum(len(items) for items in sources.values()),
    )


@router.get(
    "/snapshots/latest",
    response_model=LatestSnapshotsResponse,
    responses=_STORAGE_RESPONSES,
    summary="Latest snapshot of every source",
)
async def latest_snapshots(
    api_key: str = Depends(verify_api_key),
    storage: FeedStorage = Depends(get_feed_storage),
) -> LatestSnapshotsResponse:
    try:
        latest = await storage.latest_snapshots()
    except StorageError as e:
        raise storage_unavailable("latest_snapshots", e)
    return LatestSnapshotsResponse(
        sources={url: SnapshotItem.from_record(r) for url, r in latest.items()}
    )


@router.get(
    "/snapshots/{snapshot_id}",
    response_model=SnapshotItem,
    responses={404: {"model": ErrorResponse}, **_STORAGE_RESPONSES},
    summary="Get one snapshot",
)
async def get_snapshot(
    snapshot_id: int,
    api_key: str = Depends(verify_api_key),
    storage: FeedStorage = Depends(get_feed_storage),
) -> SnapshotItem:
    try:
        record = await storage.get_snapshot(snapshot_id)
    except StorageError as e:
        raise storage_unavailable("get_snapshot", e)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Snapshot not found: {snapshot_id}")
    return SnapshotItem.from_record(record)
