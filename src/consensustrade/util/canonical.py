# src/consensustrade/util/canonical.py
from __future__ import annotations

"""Canonical JSON and content-derived identifiers.

Market ids must be the same on every replica, so they are computed from a
canonical serialization (sorted keys, no whitespace, UTF-8) of the content
that defines the market.
"""

import base64
import hashlib
import json
from typing import Any, Dict

Json = Dict[str, Any]


def canonical_json_bytes(obj: Any) -> bytes:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def canonical_json_str(obj: Any) -> str:
    return canonical_json_bytes(obj).decode("utf-8")


def content_id(obj: Any) -> str:
    """Unpadded base64url SHA-256 of the canonical JSON of `obj` (43 chars)."""
    digest = hashlib.sha256(canonical_json_bytes(obj)).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def market_id(
    *,
    tweet: str,
    tweet_username: str,
    tweet_photo: str,
    tweet_created: int | float,
    tweet_link: str,
) -> str:
    return content_id(
        {
            "tweet": tweet,
            "tweetUsername": tweet_username,
            "tweetPhoto": tweet_photo,
            "tweetCreated": tweet_created,
            "tweetLink": tweet_link,
        }
    )


__all__ = ["canonical_json_bytes", "canonical_json_str", "content_id", "market_id", "Json"]
