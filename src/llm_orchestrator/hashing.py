"""
Hashing utilities for cache keys and content addressing.
"""

from __future__ import annotations

from typing import Any

from blake3 import blake3

from .serialization import stable_json_dumps


def compute_hash(data: str | bytes, truncate: int | None = None) -> str:
    """
    Compute a blake3 hex digest.

    Args:
        data: Input data to hash (string or bytes)
        truncate: Truncate output to N characters (for shorter keys)
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    result = blake3(data).hexdigest()
    return result[:truncate] if truncate else result


def content_hash(obj: Any) -> str:
    """
    Generate a deterministic content hash for any JSON-serializable object.

    Uses blake3 combined with stable JSON serialization, so the digest does
    not depend on dict key order.

    Returns:
        64-character hexadecimal hash
    """
    return compute_hash(stable_json_dumps(obj))


def cache_key(namespace: str, params: dict[str, Any]) -> str:
    """
    Generate a cache key from a namespace and request parameters.

    Args:
        namespace: Key namespace, e.g. the model identifier
        params: Request parameters dictionary
    """
    return content_hash({"ns": namespace, "params": params})


__all__ = ["compute_hash", "content_hash", "cache_key"]
