# src/consensustrade/runtime/apply/governance.py
from __future__ import annotations

from typing import Any, Dict, List, Optional, Set

from consensustrade.ledger.constants import CASTS, CAST_YAY, VOTE_FAILED, VOTE_PASSED, VOTE_QUORUM_FAILED
from consensustrade.ledger.state import LedgerView
from consensustrade.runtime.action_schema import parse_input
from consensustrade.runtime.action_types import ActionEnvelope
from consensustrade.runtime.apply.ledger import credit
from consensustrade.runtime.apply.vault import append_entry
from consensustrade.runtime.errors import ContractError
from consensustrade.runtime.proposals import (
    IndicativeProposal,
    MintLockedProposal,
    MintProposal,
    Proposal,
    SetCustomProposal,
    SetParamProposal,
    SetRoleProposal,
    check_mint_qty,
    check_param_value,
    parse_proposal,
    proposal_from_record,
)
from consensustrade.runtime.state_invariants import int_setting, ratio_setting

Json = Dict[str, Any]


def _d(x: Any) -> Dict[str, Any]:
    return x if isinstance(x, dict) else {}


def _l(x: Any) -> List[Any]:
    return x if isinstance(x, list) else []


def _i(x: Any, default: int = 0) -> int:
    try:
        return int(x)
    except Exception:
        return int(default)


def _vote(state: Json, vote_id: int) -> Dict[str, Any]:
    votes = state["votes"]
    if vote_id < 0 or vote_id >= len(votes):
        raise ContractError("not_found", "vote_not_found", {"id": vote_id, "count": len(votes)})
    v = votes[vote_id]
    if not isinstance(v, dict):
        raise ContractError("invalid_state", "bad_vote_shape", {"id": vote_id})
    return v


def _window_end(state: Json, v: Dict[str, Any]) -> int:
    return _i(v.get("start"), 0) + int_setting(state, "voteLength")


def voting_power(state: Json, address: str, *, proposal_start: int) -> int:
    """Locked balance that was already locked when the proposal was created.

    An entry counts when it started strictly before the proposal and was
    still locked at the proposal's start height.
    """
    total = 0
    for entry in _l(_d(state.get("vault")).get(address)):
        if not isinstance(entry, dict):
            continue
        if _i(entry.get("start")) < proposal_start < _i(entry.get("end")):
            total += _i(entry.get("balance"))
    return total


def _apply_propose(state: Json, env: ActionEnvelope) -> Json:
    inp = parse_input(env.function, env.input)

    entries = _l(state["vault"].get(env.caller))
    if not any(isinstance(e, dict) and _i(e.get("balance")) > 0 for e in entries):
        raise ContractError("forbidden", "caller_has_no_locked_balance", {"caller": env.caller})

    view = LedgerView.from_state(state)
    proposal = parse_proposal(state, inp, supply=view.total_supply())

    record: Json = proposal.to_record()
    record.update(
        {
            "note": inp.note,
            "yays": 0,
            "nays": 0,
            "voted": [],
            "start": env.height,
            "totalWeight": view.total_active_weight(height=env.height),
            "creator": env.caller,
        }
    )
    state["votes"].append(record)
    return {"applied": "PROPOSE", "id": len(state["votes"]) - 1, "type": record["type"]}


def _apply_vote(state: Json, env: ActionEnvelope) -> Json:
    inp = parse_input(env.function, env.input)
    v = _vote(state, inp.id)

    if "status" in v:
        raise ContractError("forbidden", "vote_already_finalized", {"id": inp.id, "status": v.get("status")})
    if inp.cast not in CASTS:
        raise ContractError("invalid_input", "cast_not_recognized", {"cast": inp.cast})
    if env.height >= _window_end(state, v):
        raise ContractError("forbidden", "voting_window_closed", {"id": inp.id, "end": _window_end(state, v)})

    voted = v.get("voted")
    if not isinstance(voted, list):
        raise ContractError("invalid_state", "bad_vote_shape", {"id": inp.id})
    if env.caller in voted:
        raise ContractError("conflict", "caller_already_voted", {"id": inp.id, "caller": env.caller})

    power = voting_power(state, env.caller, proposal_start=_i(v.get("start")))
    if power <= 0:
        raise ContractError("forbidden", "no_voting_power_for_proposal", {"id": inp.id, "caller": env.caller})

    side = "yays" if inp.cast == CAST_YAY else "nays"
    v[side] = _i(v.get(side)) + power
    voted.append(env.caller)
    return {"applied": "VOTE", "id": inp.id, "cast": inp.cast, "weight": power}


def _effect_allowed(state: Json, proposal: Proposal) -> bool:
    """Re-check a passed proposal against the state it is about to change."""
    try:
        if isinstance(proposal, (MintProposal, MintLockedProposal)):
            check_mint_qty(proposal.qty, supply=LedgerView.from_state(state).total_supply())
        elif isinstance(proposal, SetParamProposal):
            check_param_value(state, proposal.param, proposal.value)
    except ContractError:
        return False
    return True


def _apply_effect(state: Json, env: ActionEnvelope, proposal: Proposal) -> None:
    if isinstance(proposal, MintProposal):
        credit(state, proposal.recipient, proposal.qty)
    elif isinstance(proposal, MintLockedProposal):
        append_entry(state, proposal.recipient, qty=proposal.qty, height=env.height, lock_length=proposal.lock_length)
    elif isinstance(proposal, SetParamProposal):
        state["settings"][proposal.param.value] = proposal.value
    elif isinstance(proposal, SetRoleProposal):
        state["roles"][proposal.recipient] = proposal.value
    elif isinstance(proposal, SetCustomProposal):
        state[proposal.key] = proposal.value
    elif isinstance(proposal, IndicativeProposal):
        pass


def _apply_finalize(state: Json, env: ActionEnvelope) -> Json:
    inp = parse_input(env.function, env.input)
    v = _vote(state, inp.id)

    if "status" in v:
        raise ContractError("forbidden", "vote_already_finalized", {"id": inp.id, "status": v.get("status")})
    end = _window_end(state, v)
    if env.height < end:
        raise ContractError("forbidden", "voting_window_open", {"id": inp.id, "end": end})

    proposal = proposal_from_record(v)
    yays = _i(v.get("yays"))
    nays = _i(v.get("nays"))
    participation = yays + nays

    if participation < _i(v.get("totalWeight")) * ratio_setting(state, "quorum"):
        status = VOTE_QUORUM_FAILED
    elif yays > participation * ratio_setting(state, "support") and _effect_allowed(state, proposal):
        status = VOTE_PASSED
        _apply_effect(state, env, proposal)
    else:
        status = VOTE_FAILED

    v["status"] = status
    return {"applied": "FINALIZE", "id": inp.id, "status": status}


GOV_FUNCTIONS: Set[str] = {
    "propose",
    "vote",
    "finalize",
}


def apply_governance(state: Json, env: ActionEnvelope) -> Optional[Json]:
    f = env.function
    if f not in GOV_FUNCTIONS:
        return None

    if f == "propose":
        return _apply_propose(state, env)

    if f == "vote":
        return _apply_vote(state, env)

    if f == "finalize":
        return _apply_finalize(state, env)

    return None


__all__ = ["GOV_FUNCTIONS", "apply_governance", "voting_power"]
