"""
Redis Streams handoff of new items.

Each new item becomes one stream entry holding a NewItemMessage as JSON.
A separate consumer (e.g. a downloader process) reads the stream at its
own pace. Entries carry a dedup key so consumers can discard the repeats
that at-least-once delivery produces.
"""

import logging
from datetime import datetime, timezone

import redis.asyncio as redis
from pydantic import BaseModel, Field

from feed_tracker.config.settings import get_settings
from feed_tracker.delivery.sinks import ItemSink
from feed_tracker.errors import DeliveryError
from feed_tracker.feeds.diff import item_key
from feed_tracker.feeds.schemas import FeedItem

logger = logging.getLogger(__name__)


class NewItemMessage(BaseModel):
    """Stream payload for one newly discovered item."""

    source_url: str
    dedup_key: str = Field(..., description="Stable item identifier within the source")
    item: FeedItem
    discovered_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def for_item(cls, source_url: str, item: FeedItem) -> "NewItemMessage":
        return cls(source_url=source_url, dedup_key=item_key(item), item=item)


class RedisItemQueue(ItemSink):
    """
    Publishes new items to a Redis stream.

    Usage:
        async with RedisItemQueue() as queue:
            await queue.deliver(source_url, item)
    """

    def __init__(
        self,
        redis_url: str | None = None,
        stream_name: str | None = None,
        max_stream_length: int | None = None,
    ):
        settings = get_settings()

        self._redis_url = redis_url or str(settings.redis_url)
        self._stream_name = stream_name or settings.items_stream_name
        self._max_stream_length = max_stream_length or settings.items_max_stream_length

        self._redis: redis.Redis | None = None

    async def start(self) -> None:
        self._redis = redis.from_url(
            self._redis_url,
            encoding="utf-8",
            decode_responses=True,
        )
        logger.info(f"Connected to Redis, stream={self._stream_name}")

    async def close(self) -> None:
        if self._redis:
            await self._redis.aclose()
            self._redis = None
            logger.info("Redis connection closed")

    @property
    def redis(self) -> redis.Redis:
        """Get Redis client, raising if not connected."""
        if self._redis is None:
            raise RuntimeError("Not connected to Redis. Call start() first.")
        return self._redis

    async def deliver(self, source_url: str, item: FeedItem) -> None:
        message = NewItemMessage.for_item(source_url, item)
        try:
            message_id = await self.redis.xadd(
                name=self._stream_name,
                fields={"data": message.model_dump_json()},
                maxlen=self._max_stream_length,
                approximate=True,
            )
        except redis.RedisError as e:
            raise DeliveryError(f"Failed to publish item from {source_url}: {e}") from e

        logger.debug(f"Published item {message.dedup_key} from {source_url}, message_id={message_id}")
