"""Tests for canonical serialization and content hashing."""

import math

import pytest

from feed_tracker.errors import ContentHashError
from feed_tracker.feeds.hashing import (
    HASH_BITS,
    canonical_bytes,
    compute_hash,
    format_hash,
    hash_payload,
    parse_hash,
)
from feed_tracker.feeds.schemas import (
    FeedCategory,
    FeedEnclosure,
    FeedItem,
    FeedSnapshot,
    SourceFeed,
)


class TestCanonicalBytes:
    def test_sorted_keys_and_compact_separators(self):
        assert canonical_bytes({"b": 1, "a": [1, 2]}) == b'{"a":[1,2],"b":1}'

    def test_utf8_not_ascii_escaped(self):
        assert canonical_bytes({"t": "café"}) == '{"t":"café"}'.encode("utf-8")

    def test_key_order_does_not_matter(self):
        assert canonical_bytes({"x": 1, "y": 2}) == canonical_bytes({"y": 2, "x": 1})

    def test_unserializable_raises(self):
        with pytest.raises(ContentHashError):
            canonical_bytes({"tags": {"a", "b"}})

    def test_nan_rejected(self):
        with pytest.raises(ContentHashError):
            canonical_bytes({"value": math.nan})


class TestComputeHash:
    def test_deterministic(self):
        assert compute_hash(b"hello") == compute_hash(b"hello")

    def test_fits_in_64_bits(self):
        value = compute_hash(b"anything")
        assert 0 <= value < 2**HASH_BITS

    def test_different_input_different_hash(self):
        assert hash_payload({"guid": "g1"}) != hash_payload({"guid": "g2"})

    def test_format_roundtrip(self):
        value = hash_payload({"k": "v"})
        text = format_hash(value)
        assert len(text) == 16
        assert parse_hash(text) == value

    def test_format_pads_small_values(self):
        assert format_hash(255) == "00000000000000ff"


class TestPinnedHashes:
    """Hashes are persisted, so their values must never drift between releases."""

    @staticmethod
    def _item() -> FeedItem:
        return FeedItem.create(
            title="Episode 1",
            link="https://example.test/1",
            guid="g1",
            enclosure=FeedEnclosure(
                url="https://cdn.example.test/1.mp3",
                mime_type="audio/mpeg",
                length="1024",
            ),
            categories=[FeedCategory.create("Technology")],
        )

    def test_category(self):
        assert FeedCategory.create("Technology").hash_hex == "1bfc541e96ecd0dc"

    def test_source_feed(self):
        source = SourceFeed.create("https://example.test/feed.xml", "Example")
        assert source.hash_hex == "9bb0945f02158af8"

    def test_item_canonical_bytes(self):
        assert canonical_bytes(self._item().canonical_payload()) == (
            b'{"author":null,"categories":[{"domain":null,"name":"Technology"}],'
            b'"comments":null,"description":null,"enclosure":{"length":"1024",'
            b'"mime_type":"audio/mpeg","url":"https://cdn.example.test/1.mp3"},'
            b'"guid":"g1","link":"https://example.test/1","pub_date":null,'
            b'"title":"Episode 1"}'
        )
        assert self._item().hash_hex == "e586882a3eda4a5e"

    def test_snapshot(self):
        snapshot = FeedSnapshot.create(
            source_url="https://example.test/feed.xml",
            title="Example",
            items=[self._item()],
            categories=[FeedCategory.create("Technology")],
        )
        assert snapshot.hash_hex == "7b5b54d13f9f8349"
