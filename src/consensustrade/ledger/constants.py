# src/consensustrade/ledger/constants.py
from __future__ import annotations

"""Protocol constants and genesis settings.

Token amounts are integer units. Mint paths keep total supply within the
53-bit safe-integer range so every replica (whatever its number type) agrees
on the result.
"""

MAX_SAFE_INTEGER: int = 2**53 - 1

# Governance: ~15 days of 10-minute blocks.
DEFAULT_VOTE_LENGTH: int = 2_160

# Vault lock bounds (blocks)
DEFAULT_LOCK_MIN_LENGTH: int = 5
DEFAULT_LOCK_MAX_LENGTH: int = 720_000

# Market settlement window (blocks) and tip in basis points of the pool
DEFAULT_MARKET_LENGTH: int = 2_160
DEFAULT_MARKET_TIP_BPS: int = 100
BPS_DENOMINATOR: int = 10_000

DEFAULT_SETTINGS = {
    "quorum": 0.5,
    "support": 0.5,
    "voteLength": DEFAULT_VOTE_LENGTH,
    "lockMinLength": DEFAULT_LOCK_MIN_LENGTH,
    "lockMaxLength": DEFAULT_LOCK_MAX_LENGTH,
    "marketLength": DEFAULT_MARKET_LENGTH,
    "marketTipBps": DEFAULT_MARKET_TIP_BPS,
}

# Top-level containers of the state document. Governance may never overwrite them.
PROTECTED_KEYS = frozenset({"balances", "vault", "votes", "roles", "markets", "settings"})

CAST_YAY: str = "yay"
CAST_NAY: str = "nay"
CASTS = (CAST_YAY, CAST_NAY)

MARKET_ACTIVE: str = "active"
MARKET_PASSED: str = "passed"

VOTE_PASSED: str = "passed"
VOTE_FAILED: str = "failed"
VOTE_QUORUM_FAILED: str = "quorumFailed"
