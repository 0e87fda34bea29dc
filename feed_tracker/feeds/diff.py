"""
Item-level change detection between two snapshots of the same feed.

Items are compared by a stable identifier (the guid), not by bytes: an
item is new when its identifier is absent from the previous snapshot.
"""

from enum import Enum

from feed_tracker.errors import MissingGuidError
from feed_tracker.feeds.hashing import format_hash
from feed_tracker.feeds.schemas import FeedItem, FeedSnapshot


class DiffPolicy(str, Enum):
    """How to key items that carry no guid."""

    SYNTHETIC = "synthetic"  # key by item content hash
    STRICT = "strict"  # refuse to diff


def item_key(item: FeedItem, policy: DiffPolicy = DiffPolicy.SYNTHETIC) -> str:
    """
    Return the identifier used to match an item across snapshots.

    Raises:
        MissingGuidError: If the item has no guid under the STRICT policy
    """
    if item.guid:
        return item.guid
    if policy == DiffPolicy.STRICT:
        raise MissingGuidError(f"Item has no guid: {item.title or item.link or item.hash_hex}")
    return f"hash:{format_hash(item.content_hash)}"


def find_new_items(
    old: FeedSnapshot | None,
    new: FeedSnapshot,
    policy: DiffPolicy = DiffPolicy.SYNTHETIC,
) -> list[FeedItem]:
    """
    Items of `new` whose identifier does not appear in `old`, in document order.

    With no previous snapshot every item is new.
    """
    if old is None:
        return list(new.items)

    seen = {item_key(item, policy) for item in old.items}
    return [item for item in new.items if item_key(item, policy) not in seen]
