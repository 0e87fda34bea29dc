"""
Content hashing for change detection.

Entities are fingerprinted by hashing a canonical JSON encoding of their
content: sorted keys, compact separators, UTF-8. The digest is SHA-256
truncated to 64 bits. Unlike Python's built-in hash(), this is deterministic
across process restarts and interpreter versions, which is what lets a
restarted scheduler compare a fresh fetch against a snapshot stored days ago.
"""

import hashlib
import json
from typing import Any

from feed_tracker.errors import ContentHashError

HASH_BITS = 64
_HASH_BYTES = HASH_BITS // 8


def canonical_bytes(payload: Any) -> bytes:
    """
    Serialize a JSON-compatible payload to its canonical byte form.

    Raises:
        ContentHashError: If the payload cannot be encoded (non-JSON types,
            NaN/Infinity, unencodable surrogates).
    """
    try:
        text = json.dumps(
            payload,
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
            allow_nan=False,
        )
        return text.encode("utf-8")
    except (TypeError, ValueError) as e:
        raise ContentHashError(f"Canonical serialization failed: {e}") from e


def compute_hash(data: bytes) -> int:
    """Hash canonical bytes to an unsigned 64-bit integer."""
    return int.from_bytes(hashlib.sha256(data).digest()[:_HASH_BYTES], "big")


def hash_payload(payload: Any) -> int:
    """Canonicalize and hash in one step."""
    return compute_hash(canonical_bytes(payload))


def format_hash(value: int) -> str:
    """Render a content hash as 16 lowercase hex digits."""
    return f"{value:016x}"


def parse_hash(value: str) -> int:
    """Inverse of format_hash()."""
    return int(value, 16)
