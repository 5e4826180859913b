# tests/test_market_disburse.py
from __future__ import annotations

import pytest

from consensustrade.ledger.state import LedgerView
from consensustrade.runtime.action_types import ActionEnvelope
from consensustrade.runtime.domain_apply import ContractError, apply_action_atomic
from consensustrade.runtime.settlement import settle, split_equal, split_pro_rata

ADMIN = "XacJBWnPmWEHUixZepCPGc-DJD7jDn1CiZ99UAKpkIk"
USER = "KWn-0l96Ss_lHheS1cjDY5N-94SHyxAQO8Wfy1ehPu0"
HOLDER_O = "O6SGGaUbSm72rQO-9A7SGFUIGOiSy8Uih1-zbQmufaU"
HOLDER_A = "aYFm9TP2G0_gVmzn-lCuYPlg2_Cpksq5VBBFEvDoOxA"

TWEET = {
    "tweet": "Will this settle?",
    "tweetUsername": "@ct",
    "tweetPhoto": "https://example.org/p.jpg",
    "tweetCreated": 1620000000.5,
    "tweetLink": "https://twitter.com/ct/status/9",
}


def _env(function: str, caller: str, height: int = 0, **fields) -> ActionEnvelope:
    return ActionEnvelope(function=function, caller=caller, input={"function": function, **fields}, height=height)


def _state(*holders: str) -> dict:
    return {
        "balances": {h: 2_500_000 for h in holders},
        "vault": {},
        "votes": [],
        "roles": {},
        "markets": {},
        "settings": {},
    }


def _market(st: dict) -> str:
    return apply_action_atomic(st, _env("createMarket", ADMIN, height=0, **TWEET))["id"]


def _stake(st: dict, mid: str, caller: str, cast: str, amount: int) -> None:
    apply_action_atomic(st, _env("stake", caller, height=1, id=mid, cast=cast, stakedAmount=amount))


def test_disburse_pays_winners_and_tips_holders() -> None:
    st = _state(ADMIN, USER, HOLDER_O, HOLDER_A)
    mid = _market(st)
    _stake(st, mid, ADMIN, "yay", 2_000)
    _stake(st, mid, HOLDER_O, "yay", 2_000)
    _stake(st, mid, HOLDER_A, "nay", 3_000)
    supply = LedgerView.from_state(st).total_supply()

    meta = apply_action_atomic(st, _env("disburse", USER, height=2160, id=mid))
    assert meta == {"applied": "DISBURSE", "id": mid, "outcome": "yay", "pool": 7_000, "tip": 70}

    # Tip 70 split over four holders in address order: 18, 18, 17, 17.
    # Winners split the remaining 2_930 of the losing side evenly.
    assert st["balances"] == {
        ADMIN: 2_500_000 - 2_000 + 2_000 + 1_465 + 17,
        USER: 2_500_000 + 18,
        HOLDER_O: 2_500_000 - 2_000 + 2_000 + 1_465 + 18,
        HOLDER_A: 2_500_000 - 3_000 + 17,
    }
    m = st["markets"][mid]
    assert m["status"] == "passed"
    assert (m["outcome"], m["yays"], m["nays"], m["tip"]) == ("yay", 4_000, 3_000, 70)
    assert LedgerView.from_state(st).total_supply() == supply


def test_disburse_tie_refunds_minus_tip() -> None:
    st = _state(ADMIN, USER, HOLDER_A)
    mid = _market(st)
    _stake(st, mid, ADMIN, "yay", 1_000)
    _stake(st, mid, HOLDER_A, "nay", 1_000)

    meta = apply_action_atomic(st, _env("disburse", USER, height=2160, id=mid))
    assert meta["outcome"] == "tie"
    assert meta["tip"] == 20

    assert st["balances"] == {
        ADMIN: 2_500_000 - 10 + 7,
        USER: 2_500_000 + 7,
        HOLDER_A: 2_500_000 - 10 + 6,
    }


def test_disburse_empty_market() -> None:
    st = _state(ADMIN, USER)
    mid = _market(st)
    meta = apply_action_atomic(st, _env("disburse", USER, height=2160, id=mid))
    assert (meta["outcome"], meta["pool"], meta["tip"]) == ("tie", 0, 0)
    assert st["balances"] == {ADMIN: 2_500_000, USER: 2_500_000}
    assert st["markets"][mid]["status"] == "passed"


def test_disburse_window_and_status_checks() -> None:
    st = _state(ADMIN, USER)
    mid = _market(st)
    _stake(st, mid, USER, "nay", 100)

    with pytest.raises(ContractError) as e:
        apply_action_atomic(st, _env("disburse", USER, height=2159, id=mid))
    assert e.value.reason == "market_window_open"

    with pytest.raises(ContractError) as e:
        apply_action_atomic(st, _env("disburse", USER, height=2160, id="missing"))
    assert e.value.reason == "market_not_found"

    apply_action_atomic(st, _env("disburse", USER, height=2160, id=mid))
    after = dict(st["balances"])

    with pytest.raises(ContractError) as e:
        apply_action_atomic(st, _env("disburse", ADMIN, height=2200, id=mid))
    assert e.value.reason == "market_not_active"
    assert st["balances"] == after


def test_tip_setting_is_read_from_state() -> None:
    st = _state(ADMIN, USER)
    st["settings"]["marketTipBps"] = 0
    mid = _market(st)
    _stake(st, mid, ADMIN, "yay", 500)
    _stake(st, mid, USER, "nay", 100)

    meta = apply_action_atomic(st, _env("disburse", USER, height=2160, id=mid))
    assert meta["tip"] == 0
    assert st["balances"] == {ADMIN: 2_500_100, USER: 2_499_900}


def test_split_pro_rata_largest_remainder() -> None:
    assert split_pro_rata(10, {"c": 1, "b": 1, "a": 1}) == {"a": 4, "b": 3, "c": 3}
    assert split_pro_rata(7, {"a": 1, "b": 2}) == {"a": 2, "b": 5}
    assert split_pro_rata(0, {"a": 1}) == {"a": 0}
    assert split_pro_rata(5, {}) == {}


def test_split_equal_gives_remainder_to_first_addresses() -> None:
    assert split_equal(5, ["b", "a", "c"]) == {"a": 2, "b": 2, "c": 1}
    assert split_equal(5, []) == {}
    assert split_equal(0, ["a"]) == {}


def test_tip_is_capped_at_forfeited_side() -> None:
    staked = {
        "w": {"address": "w", "amount": 1_000, "cast": "yay"},
        "l": {"address": "l", "amount": 1, "cast": "nay"},
    }
    res = settle(staked, holders=["h"], tip_bps=100)
    assert res.tip == 1
    assert res.credits == {"h": 1, "w": 1_000}
    assert sum(res.credits.values()) == res.pool


def test_settle_without_holders_pays_no_tip() -> None:
    staked = {
        "w": {"address": "w", "amount": 900, "cast": "nay"},
        "l": {"address": "l", "amount": 100, "cast": "yay"},
    }
    res = settle(staked, holders=[], tip_bps=100)
    assert res.outcome == "nay"
    assert res.tip == 0
    assert res.credits == {"w": 1_000}


@pytest.mark.parametrize("tip_bps", [0, 1, 100, 2_500, 10_000])
def test_settle_conserves_pool(tip_bps: int) -> None:
    staked = {
        "a": {"address": "a", "amount": 333, "cast": "yay"},
        "b": {"address": "b", "amount": 667, "cast": "yay"},
        "c": {"address": "c", "amount": 101, "cast": "nay"},
        "d": {"address": "d", "amount": 99, "cast": "nay"},
    }
    res = settle(staked, holders=["a", "x", "y"], tip_bps=tip_bps)
    assert res.outcome == "yay"
    assert sum(res.credits.values()) == res.pool == 1_200
    assert all(v >= 0 for v in res.credits.values())
