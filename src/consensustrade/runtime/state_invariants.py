from __future__ import annotations

"""State invariants / normalization helpers.

The state document is a nested JSON-like dict mutated only by the apply_*
modules. This module is the one place that:

  - validates the state is dict-like
  - ensures the core containers exist with the right container types
  - resolves protocol settings against their defaults

Appliers call `ensure_state` on the working copy, so the containers it adds
never leak into a caller's state when an action is rejected.
"""

from collections.abc import MutableMapping
from fractions import Fraction
from typing import Any, Dict

from consensustrade.ledger.constants import DEFAULT_SETTINGS
from consensustrade.runtime.errors import ContractError

Json = Dict[str, Any]

_CONTAINERS = (
    ("balances", dict),
    ("vault", dict),
    ("votes", list),
    ("roles", dict),
    ("markets", dict),
    ("settings", dict),
)


def ensure_state(st: Any) -> Json:
    """Ensure `st` is a dict carrying every core container.

    Raises:
        TypeError: if st is not a MutableMapping
        ContractError: if a container exists with the wrong type
    """
    if not isinstance(st, MutableMapping):
        raise TypeError(f"state must be MutableMapping, got {type(st)}")

    for key, kind in _CONTAINERS:
        cur = st.get(key)
        if cur is None:
            st[key] = kind()
        elif not isinstance(cur, kind):
            # Fail closed: do not attempt to coerce arbitrary types.
            raise ContractError("invalid_state", "bad_container_type", {"key": key, "type": type(cur).__name__})

    return st  # type: ignore[return-value]


def setting(state: Json, key: str) -> Any:
    settings = state.get("settings")
    if isinstance(settings, dict) and key in settings:
        return settings[key]
    return DEFAULT_SETTINGS[key]


def int_setting(state: Json, key: str) -> int:
    v = setting(state, key)
    if isinstance(v, bool) or not isinstance(v, int):
        raise ContractError("invalid_state", "bad_setting", {"key": key, "value": v})
    return v


def as_ratio(v: Any) -> Fraction:
    """Exact rational for a ratio value; floats are read by their decimal text."""
    if isinstance(v, bool) or not isinstance(v, (int, float, str)):
        raise ValueError(f"ratio must be a number, got {type(v).__name__}")
    return Fraction(str(v))


def ratio_setting(state: Json, key: str) -> Fraction:
    v = setting(state, key)
    try:
        return as_ratio(v)
    except (ValueError, ZeroDivisionError):
        raise ContractError("invalid_state", "bad_setting", {"key": key, "value": v})


__all__ = ["ensure_state", "setting", "int_setting", "as_ratio", "ratio_setting"]
