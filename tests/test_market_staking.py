# tests/test_market_staking.py
from __future__ import annotations

import copy

import pytest

from consensustrade.runtime.action_types import ActionEnvelope
from consensustrade.runtime.domain_apply import ContractError, apply_action_atomic
from consensustrade.util.address import is_address
from consensustrade.util.canonical import market_id

ADMIN = "XacJBWnPmWEHUixZepCPGc-DJD7jDn1CiZ99UAKpkIk"
USER = "KWn-0l96Ss_lHheS1cjDY5N-94SHyxAQO8Wfy1ehPu0"

TWEET = {
    "tweet": "ConsensusTrade goes live today",
    "tweetUsername": "@consensustrade",
    "tweetPhoto": "https://pbs.twimg.com/profile_images/ct.jpg",
    "tweetCreated": 1620000000,
    "tweetLink": "https://twitter.com/consensustrade/status/1",
}


def _env(function: str, caller: str, height: int = 0, **fields) -> ActionEnvelope:
    return ActionEnvelope(function=function, caller=caller, input={"function": function, **fields}, height=height)


def _state() -> dict:
    return {
        "balances": {ADMIN: 10_000, USER: 10_000},
        "vault": {},
        "votes": [],
        "roles": {},
        "markets": {},
        "settings": {},
    }


def _create(st: dict, height: int = 100, **overrides) -> str:
    fields = dict(TWEET)
    fields.update(overrides)
    return apply_action_atomic(st, _env("createMarket", ADMIN, height=height, **fields))["id"]


def test_create_market_derives_id_from_content() -> None:
    st = _state()
    meta = apply_action_atomic(st, _env("createMarket", USER, height=100, **TWEET))

    mid = meta["id"]
    assert is_address(mid)
    assert mid == market_id(
        tweet=TWEET["tweet"],
        tweet_username=TWEET["tweetUsername"],
        tweet_photo=TWEET["tweetPhoto"],
        tweet_created=TWEET["tweetCreated"],
        tweet_link=TWEET["tweetLink"],
    )
    assert meta["endBlock"] == 100 + 2160

    m = st["markets"][mid]
    assert m["creator"] == USER
    assert m["status"] == "active"
    assert m["staked"] == {}
    assert m["tweet"] == TWEET["tweet"]


def test_create_market_is_independent_of_caller_and_height() -> None:
    a = _create(_state(), height=1)
    b = _create(_state(), height=999)
    c = _create(_state(), tweetLink="https://twitter.com/consensustrade/status/2")
    assert a == b
    assert a != c


def test_create_market_rejects_duplicate() -> None:
    st = _state()
    _create(st)
    before = copy.deepcopy(st)
    with pytest.raises(ContractError) as e:
        _create(st, height=500)
    assert e.value.code == "conflict"
    assert st == before


@pytest.mark.parametrize(
    "overrides",
    [
        {"tweet": 5},
        {"tweetCreated": "1620000000"},
        {"tweetCreated": True},
        {"tweetLink": None},
    ],
)
def test_create_market_rejects_bad_fields(overrides: dict) -> None:
    st = _state()
    with pytest.raises(ContractError) as e:
        _create(st, **overrides)
    assert e.value.reason == "input_schema_mismatch"
    assert st["markets"] == {}


def test_create_market_requires_every_field() -> None:
    st = _state()
    fields = dict(TWEET)
    del fields["tweetPhoto"]
    with pytest.raises(ContractError) as e:
        apply_action_atomic(st, _env("createMarket", ADMIN, **fields))
    assert e.value.details["fields"] == ["tweetPhoto"]


def test_stake_debits_and_accumulates() -> None:
    st = _state()
    mid = _create(st)

    apply_action_atomic(st, _env("stake", USER, height=101, id=mid, cast="yay", stakedAmount=1_000))
    meta = apply_action_atomic(st, _env("stake", USER, height=102, id=mid, cast="yay", stakedAmount=500))

    assert meta == {"applied": "STAKE", "id": mid, "cast": "yay", "amount": 1_500}
    assert st["balances"][USER] == 8_500
    assert st["markets"][mid]["staked"] == {USER: {"address": USER, "amount": 1_500, "cast": "yay"}}


@pytest.mark.parametrize(
    "fields,reason",
    [
        ({"cast": "yay", "stakedAmount": 10_001}, "balance_too_low"),
        ({"cast": "maybe", "stakedAmount": 10}, "cast_not_recognized"),
        ({"cast": "yay", "stakedAmount": 0}, "staked_amount_must_be_positive_integer"),
        ({"cast": "yay", "stakedAmount": "10"}, "input_schema_mismatch"),
        ({"cast": "yay", "stakedAmount": 1.5}, "input_schema_mismatch"),
        ({"cast": "yay"}, "input_schema_mismatch"),
    ],
)
def test_stake_rejections(fields: dict, reason: str) -> None:
    st = _state()
    mid = _create(st)
    before = copy.deepcopy(st)
    with pytest.raises(ContractError) as e:
        apply_action_atomic(st, _env("stake", USER, height=101, id=mid, **fields))
    assert e.value.reason == reason
    assert st == before


def test_stake_on_unknown_market() -> None:
    st = _state()
    with pytest.raises(ContractError) as e:
        apply_action_atomic(st, _env("stake", USER, id="nope", cast="yay", stakedAmount=1))
    assert e.value.code == "not_found"

    with pytest.raises(ContractError) as e:
        apply_action_atomic(st, _env("stake", USER, id=0, cast="yay", stakedAmount=1))
    assert e.value.reason == "input_schema_mismatch"


def test_stake_cannot_switch_sides() -> None:
    st = _state()
    mid = _create(st)
    apply_action_atomic(st, _env("stake", USER, height=101, id=mid, cast="yay", stakedAmount=10))

    with pytest.raises(ContractError) as e:
        apply_action_atomic(st, _env("stake", USER, height=102, id=mid, cast="nay", stakedAmount=10))
    assert e.value.reason == "already_staked_other_side"
    assert st["balances"][USER] == 9_990


def test_stake_after_disburse_is_rejected() -> None:
    st = _state()
    mid = _create(st, height=0)
    apply_action_atomic(st, _env("disburse", ADMIN, height=2160, id=mid))

    with pytest.raises(ContractError) as e:
        apply_action_atomic(st, _env("stake", USER, height=2161, id=mid, cast="yay", stakedAmount=10))
    assert e.value.reason == "market_not_active"
