# tests/test_action_schema.py
from __future__ import annotations

import pytest

from consensustrade.runtime.action_schema import (
    QUERY_FUNCTIONS,
    SUPPORTED_FUNCTIONS,
    ProposeInput,
    TransferInput,
    parse_input,
    schema_for,
)
from consensustrade.runtime.action_types import ActionEnvelope
from consensustrade.runtime.errors import ContractError


def test_every_function_has_a_schema() -> None:
    assert QUERY_FUNCTIONS <= SUPPORTED_FUNCTIONS
    assert len(SUPPORTED_FUNCTIONS) == 14
    for f in SUPPORTED_FUNCTIONS:
        assert schema_for(f) is not None
    assert schema_for("burn") is None


def test_parse_input_ignores_unknown_keys() -> None:
    m = parse_input("transfer", {"function": "transfer", "target": "t", "qty": 3, "memo": "hi"})
    assert isinstance(m, TransferInput)
    assert m.qty == 3
    assert not hasattr(m, "memo")


def test_parse_input_is_strict_about_types() -> None:
    with pytest.raises(ContractError) as e:
        parse_input("transfer", {"function": "transfer", "target": "t", "qty": "3"})
    assert e.value.code == "invalid_input"
    assert e.value.details == {"function": "transfer", "fields": ["qty"]}


def test_parse_input_requires_an_object() -> None:
    with pytest.raises(ContractError) as e:
        parse_input("unlock", ["unlock"])
    assert e.value.reason == "input_must_be_object"


def test_parse_input_unknown_function() -> None:
    with pytest.raises(ContractError) as e:
        parse_input("burn", {"function": "burn"})
    assert e.value.code == "unknown_function"


def test_propose_value_accepts_any_json() -> None:
    m = parse_input("propose", {"function": "propose", "type": "set", "note": "n", "key": "k", "value": {"a": [1, 2]}})
    assert isinstance(m, ProposeInput)
    assert m.value == {"a": [1, 2]}
    assert m.recipient is None


def test_create_market_rejects_non_finite_timestamp() -> None:
    payload = {
        "function": "createMarket",
        "tweet": "t",
        "tweetUsername": "u",
        "tweetPhoto": "p",
        "tweetCreated": float("inf"),
        "tweetLink": "l",
    }
    with pytest.raises(ContractError) as e:
        parse_input("createMarket", payload)
    assert e.value.details["fields"] == ["tweetCreated"]


def test_envelope_from_json() -> None:
    env = ActionEnvelope.from_json({"input": {"function": "unlock"}, "caller": "me", "height": 5})
    assert (env.function, env.caller, env.height) == ("unlock", "me", 5)
    assert ActionEnvelope.from_json(env) is env
    assert ActionEnvelope.from_json(env, height=9).height == 9
    assert ActionEnvelope.from_json(env.to_json()) == env


def test_envelope_without_input() -> None:
    env = ActionEnvelope.from_json({"caller": "me"})
    assert env.function == ""
    assert env.input == {}
