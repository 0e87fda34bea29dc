"""
Pydantic request/response models for the query API.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from feed_tracker.feeds.schemas import FeedSnapshot, SourceFeed
from feed_tracker.storage.gateway import SnapshotRecord


class ErrorResponse(BaseModel):
    """Response model for errors."""

    detail: str = Field(..., description="Error message")
    error_type: str = Field(default="error", description="Error type")


class ComponentHealth(BaseModel):
    status: str = Field(..., description="healthy or unhealthy")
    latency_ms: float | None = None


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str = Field(..., description="Overall status: healthy or unhealthy")
    version: str
    components: dict[str, ComponentHealth] = Field(default_factory=dict)


class CreateSourceRequest(BaseModel):
    url: str = Field(..., min_length=1, description="Feed URL (natural key)")
    title: str = Field(default="", description="Display title")


class SourceFeedItem(BaseModel):
    url: str
    title: str
    content_hash: str = Field(..., description="16 hex digit content hash")
    created_at: datetime

    @classmethod
    def from_source(cls, source: SourceFeed) -> "SourceFeedItem":
        return cls(
            url=source.url,
            title=source.title,
            content_hash=source.hash_hex,
            created_at=source.created_at,
        )


class SourcesListResponse(BaseModel):
    sources: list[SourceFeedItem]
    total: int


class SnapshotItem(BaseModel):
    """One stored snapshot with its storage identity."""

    snapshot_id: int
    source_url: str
    stored_at: datetime
    content_hash: str
    item_count: int
    snapshot: FeedSnapshot

    @classmethod
    def from_record(cls, record: SnapshotRecord) -> "SnapshotItem":
        return cls(
            snapshot_id=record.snapshot_id,
            source_url=record.source_url,
            stored_at=record.stored_at,
            content_hash=record.snapshot.hash_hex,
            item_count=len(record.snapshot.items),
            snapshot=record.snapshot,
        )


class SnapshotHistoryResponse(BaseModel):
    """Snapshots grouped by source URL, newest first within each group."""

    sources: dict[str, list[SnapshotItem]]
    total: int


class LatestSnapshotsResponse(BaseModel):
    sources: dict[str, SnapshotItem]
