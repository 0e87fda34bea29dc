"""Tests for the Redis stream item queue."""

from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from feed_tracker.delivery.queue import NewItemMessage, RedisItemQueue
from feed_tracker.errors import DeliveryError
from feed_tracker.feeds.schemas import FeedItem

SOURCE = "https://example.test/podcast.rss"


@pytest.fixture
def queue() -> RedisItemQueue:
    q = RedisItemQueue(
        redis_url="redis://localhost:6379/1",
        stream_name="test_items",
        max_stream_length=50,
    )
    q._redis = AsyncMock()
    q._redis.xadd = AsyncMock(return_value="1700000000000-0")
    return q


class TestNewItemMessage:
    def test_dedup_key_is_guid(self):
        item = FeedItem.create(title="t", guid="g1")
        assert NewItemMessage.for_item(SOURCE, item).dedup_key == "g1"

    def test_dedup_key_falls_back_to_hash(self):
        item = FeedItem.create(title="t")
        assert NewItemMessage.for_item(SOURCE, item).dedup_key == f"hash:{item.hash_hex}"


class TestRedisItemQueue:
    @pytest.mark.asyncio
    async def test_deliver_publishes_to_stream(self, queue):
        item = FeedItem.create(title="Episode", guid="g1")

        await queue.deliver(SOURCE, item)

        kwargs = queue._redis.xadd.call_args.kwargs
        assert kwargs["name"] == "test_items"
        assert kwargs["maxlen"] == 50
        assert kwargs["approximate"] is True
        message = NewItemMessage.model_validate_json(kwargs["fields"]["data"])
        assert message.source_url == SOURCE
        assert message.item == item

    @pytest.mark.asyncio
    async def test_redis_failure_raises_delivery_error(self, queue):
        queue._redis.xadd.side_effect = RedisConnectionError("down")

        with pytest.raises(DeliveryError):
            await queue.deliver(SOURCE, FeedItem.create(guid="g1"))

    @pytest.mark.asyncio
    async def test_requires_start(self):
        q = RedisItemQueue(redis_url="redis://localhost:6379/1")
        with pytest.raises(RuntimeError):
            await q.deliver(SOURCE, FeedItem.create(guid="g1"))
