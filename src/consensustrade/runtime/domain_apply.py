# src/consensustrade/runtime/domain_apply.py
# ---------------------------------------------------------------------------
# Public, stable import path for applying actions.
# ---------------------------------------------------------------------------

from __future__ import annotations

import copy
import logging
from typing import Any, Dict

from consensustrade.runtime.action_types import ActionEnvelope
from consensustrade.runtime.domain_dispatch import apply_action
from consensustrade.runtime.errors import ContractError
from consensustrade.runtime.structured_logging import log_event

Json = Dict[str, Any]

_log = logging.getLogger("consensustrade.runtime")


def apply_action_atomic(state: Json, env: Any) -> Json:
    """Apply an action with fail-atomic semantics.

    On success:
      - state is updated as if apply_action() ran directly.
      - query functions return {"result": ...} and leave state untouched.

    On ContractError:
      - state remains deep-equal to its value before the call.
    """

    env_norm = ActionEnvelope.from_json(env)

    # Apply on a deep copy to guarantee atomicity.
    snapshot = copy.deepcopy(state)

    try:
        meta = apply_action(snapshot, env_norm)
    except ContractError as e:
        log_event(
            _log,
            "action_rejected",
            function=env_norm.function,
            caller=env_norm.caller,
            height=env_norm.height,
            code=e.code,
            reason=e.reason,
            message=e.message,
        )
        raise

    if "result" in meta:
        return meta

    # Commit by replacing contents in-place so callers holding references
    # to `state` see the updated view.
    state.clear()
    state.update(snapshot)
    log_event(
        _log,
        "action_applied",
        level=logging.DEBUG,
        function=env_norm.function,
        caller=env_norm.caller,
        height=env_norm.height,
    )
    return meta


def handle(state: Json, action: Any, *, height: int) -> Json:
    """Host-facing entry point.

    `action` is `{"input": {"function": ..., ...}, "caller": address}`; the
    host injects the current block height. Returns `{"result": ...}` for
    queries and `{"state": state}` (the same, updated object) otherwise.
    """
    env = ActionEnvelope.from_json(action, height=height)
    meta = apply_action_atomic(state, env)
    if "result" in meta:
        return {"result": meta["result"]}
    return {"state": state}


__all__ = ["ContractError", "apply_action", "apply_action_atomic", "handle", "Json"]
