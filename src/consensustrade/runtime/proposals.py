# src/consensustrade/runtime/proposals.py
from __future__ import annotations

"""Typed governance proposals.

A proposal is parsed from `propose` input into exactly one variant below and
stored as a flat record on the vote. Finalize rebuilds the variant from the
record, so the effect applied is always the one that was validated.

`set` proposals split three ways: a first-class protocol parameter, a role
assignment, or a custom application field. Protected containers of the state
document fall in none of them and are rejected by the parser.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

from consensustrade.ledger.constants import BPS_DENOMINATOR, MAX_SAFE_INTEGER, PROTECTED_KEYS
from consensustrade.runtime.action_schema import ProposeInput
from consensustrade.runtime.errors import ContractError
from consensustrade.runtime.state_invariants import as_ratio, int_setting
from consensustrade.util.address import is_address

Json = Dict[str, Any]

ROLE_KEY = "role"


class ProtocolParam(str, Enum):
    QUORUM = "quorum"
    SUPPORT = "support"
    VOTE_LENGTH = "voteLength"
    LOCK_MIN_LENGTH = "lockMinLength"
    LOCK_MAX_LENGTH = "lockMaxLength"
    MARKET_LENGTH = "marketLength"
    MARKET_TIP_BPS = "marketTipBps"


_PARAMS_BY_KEY = {p.value: p for p in ProtocolParam}


@dataclass(frozen=True)
class MintProposal:
    recipient: str
    qty: int

    def to_record(self) -> Json:
        return {"type": "mint", "recipient": self.recipient, "qty": self.qty}


@dataclass(frozen=True)
class MintLockedProposal:
    recipient: str
    qty: int
    lock_length: int

    def to_record(self) -> Json:
        return {"type": "mintLocked", "recipient": self.recipient, "qty": self.qty, "lockLength": self.lock_length}


@dataclass(frozen=True)
class SetParamProposal:
    param: ProtocolParam
    value: Any

    def to_record(self) -> Json:
        return {"type": "set", "key": self.param.value, "value": self.value}


@dataclass(frozen=True)
class SetRoleProposal:
    recipient: str
    value: str

    def to_record(self) -> Json:
        return {"type": "set", "key": ROLE_KEY, "recipient": self.recipient, "value": self.value}


@dataclass(frozen=True)
class SetCustomProposal:
    key: str
    value: Any

    def to_record(self) -> Json:
        return {"type": "set", "key": self.key, "value": self.value}


@dataclass(frozen=True)
class IndicativeProposal:
    def to_record(self) -> Json:
        return {"type": "indicative"}


Proposal = Union[
    MintProposal,
    MintLockedProposal,
    SetParamProposal,
    SetRoleProposal,
    SetCustomProposal,
    IndicativeProposal,
]

PROPOSAL_TYPES = ("mint", "mintLocked", "set", "indicative")


def _is_int(v: Any) -> bool:
    return isinstance(v, int) and not isinstance(v, bool)


def _require_recipient(recipient: Optional[str]) -> str:
    if not is_address(recipient):
        raise ContractError("invalid_input", "invalid_recipient_address", {"recipient": recipient})
    return str(recipient)


def check_mint_qty(qty: Any, *, supply: int) -> int:
    if not _is_int(qty) or qty <= 0:
        raise ContractError("invalid_input", "qty_must_be_positive_integer", {"qty": qty})
    if qty > MAX_SAFE_INTEGER or supply + qty > MAX_SAFE_INTEGER:
        raise ContractError("invalid_input", "qty_exceeds_safe_supply", {"qty": qty, "supply": supply})
    return int(qty)


def check_param_value(state: Json, param: ProtocolParam, value: Any) -> Any:
    """Validate a parameter value against the current state. Returns the value."""
    if param in (ProtocolParam.QUORUM, ProtocolParam.SUPPORT):
        try:
            r = as_ratio(value)
        except (ValueError, ZeroDivisionError):
            raise ContractError("invalid_input", "ratio_not_a_number", {"key": param.value, "value": value})
        ok = (0 < r <= 1) if param is ProtocolParam.QUORUM else (0 <= r < 1)
        if not ok:
            raise ContractError("invalid_input", "ratio_out_of_range", {"key": param.value, "value": value})
        return value

    if not _is_int(value):
        raise ContractError("invalid_input", "value_must_be_integer", {"key": param.value, "value": value})

    if param is ProtocolParam.MARKET_TIP_BPS:
        if value < 0 or value > BPS_DENOMINATOR:
            raise ContractError("invalid_input", "tip_bps_out_of_range", {"value": value})
        return value

    if value <= 0:
        raise ContractError("invalid_input", "value_must_be_positive", {"key": param.value, "value": value})

    if param is ProtocolParam.LOCK_MIN_LENGTH and value > int_setting(state, "lockMaxLength"):
        raise ContractError("invalid_input", "lock_min_above_max", {"value": value})
    if param is ProtocolParam.LOCK_MAX_LENGTH and value < int_setting(state, "lockMinLength"):
        raise ContractError("invalid_input", "lock_max_below_min", {"value": value})
    return value


def _parse_set(state: Json, inp: ProposeInput) -> Proposal:
    key = inp.key
    if key is None or not key.strip():
        raise ContractError("invalid_input", "missing_key", {})
    if key in PROTECTED_KEYS:
        raise ContractError("forbidden", "protected_key", {"key": key})

    if key == ROLE_KEY:
        recipient = _require_recipient(inp.recipient)
        if not isinstance(inp.value, str) or not inp.value.strip():
            raise ContractError("invalid_input", "role_must_be_text", {"value": inp.value})
        return SetRoleProposal(recipient=recipient, value=inp.value)

    param = _PARAMS_BY_KEY.get(key)
    if param is not None:
        return SetParamProposal(param=param, value=check_param_value(state, param, inp.value))

    return SetCustomProposal(key=key, value=inp.value)


def parse_proposal(state: Json, inp: ProposeInput, *, supply: int) -> Proposal:
    t = inp.type
    if t not in PROPOSAL_TYPES:
        raise ContractError("invalid_input", "proposal_type_not_recognized", {"type": t})

    if t == "mint":
        return MintProposal(recipient=_require_recipient(inp.recipient), qty=check_mint_qty(inp.qty, supply=supply))

    if t == "mintLocked":
        recipient = _require_recipient(inp.recipient)
        qty = check_mint_qty(inp.qty, supply=supply)
        lo = int_setting(state, "lockMinLength")
        hi = int_setting(state, "lockMaxLength")
        # Absent lockLength resolves to the minimum now, so the record is fixed at propose time.
        lock_length = lo if inp.lockLength is None else inp.lockLength
        if lock_length < lo or lock_length > hi:
            raise ContractError(
                "invalid_input",
                "lock_length_out_of_range",
                {"lockLength": lock_length, "min": lo, "max": hi},
            )
        return MintLockedProposal(recipient=recipient, qty=qty, lock_length=lock_length)

    if t == "set":
        return _parse_set(state, inp)

    return IndicativeProposal()


def proposal_from_record(rec: Json) -> Proposal:
    """Rebuild the variant stored on a vote record."""
    t = rec.get("type")
    try:
        if t == "mint":
            return MintProposal(recipient=str(rec["recipient"]), qty=int(rec["qty"]))
        if t == "mintLocked":
            return MintLockedProposal(
                recipient=str(rec["recipient"]),
                qty=int(rec["qty"]),
                lock_length=int(rec["lockLength"]),
            )
        if t == "set":
            key = str(rec["key"])
            if key == ROLE_KEY:
                return SetRoleProposal(recipient=str(rec["recipient"]), value=str(rec["value"]))
            if key in _PARAMS_BY_KEY:
                return SetParamProposal(param=_PARAMS_BY_KEY[key], value=rec.get("value"))
            if key in PROTECTED_KEYS:
                raise ContractError("invalid_state", "protected_key_on_record", {"key": key})
            return SetCustomProposal(key=key, value=rec.get("value"))
        if t == "indicative":
            return IndicativeProposal()
    except (KeyError, TypeError, ValueError):
        raise ContractError("invalid_state", "bad_proposal_record", {"type": t})
    raise ContractError("invalid_state", "bad_proposal_record", {"type": t})


__all__ = [
    "PROPOSAL_TYPES",
    "ROLE_KEY",
    "IndicativeProposal",
    "MintLockedProposal",
    "MintProposal",
    "Proposal",
    "ProtocolParam",
    "SetCustomProposal",
    "SetParamProposal",
    "SetRoleProposal",
    "check_mint_qty",
    "check_param_value",
    "parse_proposal",
    "proposal_from_record",
]
