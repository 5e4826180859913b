# src/consensustrade/runtime/apply/market.py
from __future__ import annotations

from typing import Any, Dict, Optional, Set

from consensustrade.ledger.constants import CASTS, MARKET_ACTIVE, MARKET_PASSED
from consensustrade.runtime.action_schema import parse_input
from consensustrade.runtime.action_types import ActionEnvelope
from consensustrade.runtime.apply.ledger import credit, debit, require_funds
from consensustrade.runtime.errors import ContractError
from consensustrade.runtime.settlement import settle
from consensustrade.runtime.state_invariants import int_setting
from consensustrade.util.canonical import market_id

Json = Dict[str, Any]


def _market(state: Json, mid: str) -> Dict[str, Any]:
    m = state["markets"].get(mid)
    if m is None:
        raise ContractError("not_found", "market_not_found", {"id": mid})
    if not isinstance(m, dict):
        raise ContractError("invalid_state", "bad_market_shape", {"id": mid})
    return m


def _staked(m: Dict[str, Any], mid: str) -> Dict[str, Any]:
    staked = m.get("staked")
    if staked is None:
        staked = {}
        m["staked"] = staked
    if not isinstance(staked, dict):
        raise ContractError("invalid_state", "bad_market_shape", {"id": mid})
    return staked


def _apply_create_market(state: Json, env: ActionEnvelope) -> Json:
    inp = parse_input(env.function, env.input)

    mid = market_id(
        tweet=inp.tweet,
        tweet_username=inp.tweetUsername,
        tweet_photo=inp.tweetPhoto,
        tweet_created=inp.tweetCreated,
        tweet_link=inp.tweetLink,
    )
    if mid in state["markets"]:
        raise ContractError("conflict", "market_already_exists", {"id": mid})

    state["markets"][mid] = {
        "creator": env.caller,
        "tweet": inp.tweet,
        "tweetUsername": inp.tweetUsername,
        "tweetPhoto": inp.tweetPhoto,
        "tweetCreated": inp.tweetCreated,
        "tweetLink": inp.tweetLink,
        "staked": {},
        "status": MARKET_ACTIVE,
        "endBlock": env.height + int_setting(state, "marketLength"),
    }
    return {"applied": "CREATE_MARKET", "id": mid, "endBlock": state["markets"][mid]["endBlock"]}


def _apply_stake(state: Json, env: ActionEnvelope) -> Json:
    inp = parse_input(env.function, env.input)
    m = _market(state, inp.id)

    if m.get("status") != MARKET_ACTIVE:
        raise ContractError("forbidden", "market_not_active", {"id": inp.id, "status": m.get("status")})
    if inp.cast not in CASTS:
        raise ContractError("invalid_input", "cast_not_recognized", {"cast": inp.cast})
    if inp.stakedAmount <= 0:
        raise ContractError("invalid_input", "staked_amount_must_be_positive_integer", {"stakedAmount": inp.stakedAmount})

    staked = _staked(m, inp.id)
    rec = staked.get(env.caller)
    if rec is not None and rec.get("cast") != inp.cast:
        raise ContractError("conflict", "already_staked_other_side", {"id": inp.id, "cast": rec.get("cast")})

    require_funds(state, env.caller, inp.stakedAmount)

    debit(state, env.caller, inp.stakedAmount)
    if rec is None:
        rec = {"address": env.caller, "amount": 0, "cast": inp.cast}
        staked[env.caller] = rec
    rec["amount"] = int(rec.get("amount", 0)) + inp.stakedAmount
    return {"applied": "STAKE", "id": inp.id, "cast": inp.cast, "amount": rec["amount"]}


def _apply_disburse(state: Json, env: ActionEnvelope) -> Json:
    """
    Settle a market whose window has closed.

    Holders are taken after every stake debit, i.e. the current keys of
    `balances`. Credits go to liquid balances.
    """
    inp = parse_input(env.function, env.input)
    m = _market(state, inp.id)

    end = int(m.get("endBlock", 0))
    if env.height < end:
        raise ContractError("forbidden", "market_window_open", {"id": inp.id, "endBlock": end})
    if m.get("status") != MARKET_ACTIVE:
        raise ContractError("forbidden", "market_not_active", {"id": inp.id, "status": m.get("status")})

    result = settle(
        _staked(m, inp.id),
        holders=list(state["balances"].keys()),
        tip_bps=int_setting(state, "marketTipBps"),
    )
    for addr in sorted(result.credits):
        credit(state, addr, result.credits[addr])

    m["status"] = MARKET_PASSED
    m["outcome"] = result.outcome
    m["yays"] = result.yays
    m["nays"] = result.nays
    m["tip"] = result.tip
    return {
        "applied": "DISBURSE",
        "id": inp.id,
        "outcome": result.outcome,
        "pool": result.pool,
        "tip": result.tip,
    }


MARKET_FUNCTIONS: Set[str] = {
    "createMarket",
    "stake",
    "disburse",
}


def apply_market(state: Json, env: ActionEnvelope) -> Optional[Json]:
    f = env.function
    if f not in MARKET_FUNCTIONS:
        return None

    if f == "createMarket":
        return _apply_create_market(state, env)

    if f == "stake":
        return _apply_stake(state, env)

    if f == "disburse":
        return _apply_disburse(state, env)

    return None


__all__ = ["MARKET_FUNCTIONS", "apply_market"]
