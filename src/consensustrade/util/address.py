# src/consensustrade/util/address.py
from __future__ import annotations

import re
from typing import Any

# 32-byte digests rendered as unpadded base64url.
ADDRESS_LEN: int = 43

_ADDRESS_RE = re.compile(r"^[A-Za-z0-9_-]{43}$")


def is_address(value: Any) -> bool:
    """True when `value` has the shape of an account address."""
    return isinstance(value, str) and bool(_ADDRESS_RE.match(value))


__all__ = ["ADDRESS_LEN", "is_address"]
