# src/consensustrade/runtime/apply/__init__.py
"""Domain-specific apply modules.

Each module claims a set of action functions and implements their
deterministic state transitions. domain_dispatch routes to them.

NOTE: Keep this package import-safe (no imports of domain_dispatch here).
"""

from __future__ import annotations

__all__ = [
    "ledger",
    "vault",
    "governance",
    "market",
]
