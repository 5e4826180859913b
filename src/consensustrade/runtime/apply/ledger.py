# src/consensustrade/runtime/apply/ledger.py
from __future__ import annotations

from typing import Any, Dict, Optional, Set

from consensustrade.ledger.state import LedgerView
from consensustrade.runtime.action_schema import parse_input
from consensustrade.runtime.action_types import ActionEnvelope
from consensustrade.runtime.errors import ContractError
from consensustrade.util.address import is_address

Json = Dict[str, Any]


def _as_int(v: Any, default: int = 0) -> int:
    try:
        return int(v)
    except Exception:
        return int(default)


def _present_target(state: Json, env: ActionEnvelope, target: Optional[str]) -> str:
    """Resolve a query target (default: caller) that has some ledger presence."""
    t = env.caller if target is None else target
    if not is_address(t):
        raise ContractError("invalid_input", "invalid_target_address", {"target": t})
    if t not in state["balances"] and t not in state["vault"]:
        raise ContractError("not_found", "target_not_in_ledger", {"target": t})
    return t


def credit(state: Json, address: str, qty: int) -> None:
    """Credit liquid balance, creating the entry at 0 first if absent."""
    balances = state["balances"]
    balances[address] = _as_int(balances.get(address), 0) + int(qty)


def debit(state: Json, address: str, qty: int) -> None:
    """Debit liquid balance. Callers check sufficiency first."""
    balances = state["balances"]
    bal = _as_int(balances.get(address), 0)
    if bal < qty:
        raise ContractError("insufficient_funds", "balance_too_low", {"balance": bal, "qty": qty})
    balances[address] = bal - int(qty)


def require_funds(state: Json, address: str, qty: int) -> None:
    bal = _as_int(state["balances"].get(address), 0)
    if bal < qty:
        raise ContractError("insufficient_funds", "balance_too_low", {"address": address, "balance": bal, "qty": qty})


def _apply_transfer(state: Json, env: ActionEnvelope) -> Json:
    inp = parse_input(env.function, env.input)
    target = inp.target
    qty = inp.qty

    if qty <= 0:
        raise ContractError("invalid_input", "qty_must_be_positive_integer", {"qty": qty})
    if not is_address(target):
        raise ContractError("invalid_input", "invalid_target_address", {"target": target})
    if target == env.caller:
        raise ContractError("forbidden", "target_is_caller", {"target": target})

    require_funds(state, env.caller, qty)

    debit(state, env.caller, qty)
    credit(state, target, qty)
    return {"applied": "TRANSFER", "from": env.caller, "to": target, "qty": qty}


def _query_balance(state: Json, env: ActionEnvelope) -> Json:
    inp = parse_input(env.function, env.input)
    target = _present_target(state, env, inp.target)
    view = LedgerView.from_state(state)
    return {"result": {"target": target, "balance": view.liquid(target) + view.locked_total(target)}}


def _query_unlocked_balance(state: Json, env: ActionEnvelope) -> Json:
    inp = parse_input(env.function, env.input)
    target = _present_target(state, env, inp.target)
    return {"result": {"target": target, "balance": _as_int(state["balances"].get(target), 0)}}


LEDGER_FUNCTIONS: Set[str] = {
    "transfer",
    "balance",
    "unlockedBalance",
}


def apply_ledger(state: Json, env: ActionEnvelope) -> Optional[Json]:
    """
    Returns:
      - dict: applied receipt or query result
      - None: function not in the ledger domain
    """
    f = env.function
    if f not in LEDGER_FUNCTIONS:
        return None

    if f == "transfer":
        return _apply_transfer(state, env)

    if f == "balance":
        return _query_balance(state, env)

    if f == "unlockedBalance":
        return _query_unlocked_balance(state, env)

    return None


__all__ = ["LEDGER_FUNCTIONS", "apply_ledger", "credit", "debit", "require_funds"]
