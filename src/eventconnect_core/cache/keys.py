"""
Cache key builders.

Filter mappings and contexts are reduced to short stable hashes so that
equal inputs always land on the same key regardless of dict ordering.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any

_HASH_LENGTH = 12


def hash_object(value: Any) -> str:
    """
    Stable short hash of a JSON-compatible value.

    Mappings are serialized with sorted keys; non-JSON values fall back
    to str().
    """
    if value is None or value == {}:
        return "default"
    payload = json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:_HASH_LENGTH]


def normalize_query(query: str) -> str:
    """Lowercase and collapse whitespace."""
    return " ".join(query.lower().split())


def search_key(query: str, filters: dict[str, Any] | None = None) -> str:
    return f"{normalize_query(query)}:{hash_object(filters)}"


def recommendation_key(
    user_id: str,
    filters: dict[str, Any] | None = None,
    context: dict[str, Any] | None = None,
) -> str:
    """Key of a memoized ranking: user_id:filters_hash:context_hash."""
    return f"{user_id}:{hash_object(filters)}:{hash_object(context)}"


def event_tag(event_id: str) -> str:
    return f"event:{event_id}"
