# src/consensustrade/runtime/apply/vault.py
from __future__ import annotations

from typing import Any, Dict, List, Optional, Set

from consensustrade.ledger.state import LedgerView
from consensustrade.runtime.action_schema import parse_input
from consensustrade.runtime.action_types import ActionEnvelope
from consensustrade.runtime.apply.ledger import credit, debit, require_funds
from consensustrade.runtime.errors import ContractError
from consensustrade.runtime.state_invariants import int_setting
from consensustrade.util.address import is_address

Json = Dict[str, Any]


def _entries(state: Json, address: str) -> List[Json]:
    """The address's vault list, created empty if absent."""
    vault = state["vault"]
    lst = vault.get(address)
    if lst is None:
        lst = []
        vault[address] = lst
    elif not isinstance(lst, list):
        raise ContractError("invalid_state", "bad_vault_shape", {"address": address})
    return lst


def check_lock_length(state: Json, lock_length: int) -> None:
    lo = int_setting(state, "lockMinLength")
    hi = int_setting(state, "lockMaxLength")
    if lock_length < lo or lock_length > hi:
        raise ContractError(
            "invalid_input",
            "lock_length_out_of_range",
            {"lockLength": lock_length, "min": lo, "max": hi},
        )


def append_entry(state: Json, address: str, *, qty: int, height: int, lock_length: int) -> Json:
    entry = {"balance": int(qty), "start": int(height), "end": int(height) + int(lock_length)}
    _entries(state, address).append(entry)
    return entry


def _lock_to(state: Json, env: ActionEnvelope, *, target: str, qty: int, lock_length: int) -> Json:
    if qty <= 0:
        raise ContractError("invalid_input", "qty_must_be_positive_integer", {"qty": qty})
    check_lock_length(state, lock_length)
    require_funds(state, env.caller, qty)

    debit(state, env.caller, qty)
    return append_entry(state, target, qty=qty, height=env.height, lock_length=lock_length)


def _apply_lock(state: Json, env: ActionEnvelope) -> Json:
    inp = parse_input(env.function, env.input)
    entry = _lock_to(state, env, target=env.caller, qty=inp.qty, lock_length=inp.lockLength)
    return {"applied": "LOCK", "address": env.caller, "entry": dict(entry)}


def _apply_transfer_locked(state: Json, env: ActionEnvelope) -> Json:
    inp = parse_input(env.function, env.input)
    if not is_address(inp.target):
        raise ContractError("invalid_input", "invalid_target_address", {"target": inp.target})
    entry = _lock_to(state, env, target=inp.target, qty=inp.qty, lock_length=inp.lockLength)
    return {"applied": "TRANSFER_LOCKED", "from": env.caller, "to": inp.target, "entry": dict(entry)}


def _apply_increase_vault(state: Json, env: ActionEnvelope) -> Json:
    """
    Re-set the end of one of the caller's entries to `height + lockLength`.

    The new end may be earlier than the old one; it only has to respect the
    lock length bounds, and the entry must not have ended already.
    """
    inp = parse_input(env.function, env.input)
    check_lock_length(state, inp.lockLength)

    entries = state["vault"].get(env.caller)
    if not isinstance(entries, list) or not entries:
        raise ContractError("not_found", "caller_has_no_vault", {"caller": env.caller})
    if inp.id < 0 or inp.id >= len(entries):
        raise ContractError("not_found", "vault_entry_not_found", {"id": inp.id, "count": len(entries)})

    entry = entries[inp.id]
    if env.height >= int(entry.get("end", 0)):
        raise ContractError("forbidden", "vault_entry_ended", {"id": inp.id, "end": entry.get("end")})

    entry["end"] = env.height + inp.lockLength
    return {"applied": "INCREASE_VAULT", "id": inp.id, "end": entry["end"]}


def _apply_unlock(state: Json, env: ActionEnvelope) -> Json:
    entries = state["vault"].get(env.caller)
    if not isinstance(entries, list) or not entries:
        return {"applied": "UNLOCK", "released": 0, "removed": 0}

    keep: List[Json] = []
    released = 0
    for entry in entries:
        if int(entry.get("end", 0)) <= env.height:
            released += int(entry.get("balance", 0))
        else:
            keep.append(entry)

    removed = len(entries) - len(keep)
    if removed:
        entries[:] = keep
        credit(state, env.caller, released)
    return {"applied": "UNLOCK", "released": released, "removed": removed}


def _query_vault_balance(state: Json, env: ActionEnvelope) -> Json:
    inp = parse_input(env.function, env.input)
    target = env.caller if inp.target is None else inp.target
    if not is_address(target):
        raise ContractError("invalid_input", "invalid_target_address", {"target": target})
    view = LedgerView.from_state(state)
    return {"result": {"target": target, "balance": view.locked_active(target, height=env.height)}}


VAULT_FUNCTIONS: Set[str] = {
    "lock",
    "transferLocked",
    "increaseVault",
    "unlock",
    "vaultBalance",
}


def apply_vault(state: Json, env: ActionEnvelope) -> Optional[Json]:
    f = env.function
    if f not in VAULT_FUNCTIONS:
        return None

    if f == "lock":
        return _apply_lock(state, env)

    if f == "transferLocked":
        return _apply_transfer_locked(state, env)

    if f == "increaseVault":
        return _apply_increase_vault(state, env)

    if f == "unlock":
        return _apply_unlock(state, env)

    if f == "vaultBalance":
        return _query_vault_balance(state, env)

    return None


__all__ = ["VAULT_FUNCTIONS", "apply_vault", "append_entry", "check_lock_length"]
