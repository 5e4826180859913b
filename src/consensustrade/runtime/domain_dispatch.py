# src/consensustrade/runtime/domain_dispatch.py

from __future__ import annotations

from typing import Any, Callable, Dict, Optional

from consensustrade.runtime.action_schema import QUERY_FUNCTIONS, SUPPORTED_FUNCTIONS
from consensustrade.runtime.action_types import ActionEnvelope
from consensustrade.runtime.errors import ContractError
from consensustrade.runtime.state_invariants import ensure_state
from consensustrade.util.address import is_address

# Domain appliers (each returns Optional[Json]; returning None means "not claimed")
from consensustrade.runtime.apply.governance import apply_governance
from consensustrade.runtime.apply.ledger import apply_ledger
from consensustrade.runtime.apply.market import apply_market
from consensustrade.runtime.apply.vault import apply_vault

Json = Dict[str, Any]
ApplyFn = Callable[[Json, ActionEnvelope], Optional[Json]]


def _enforce_envelope(env: ActionEnvelope) -> None:
    """Context checks shared by every function.

    Queries may come from any caller string; state-changing functions need a
    well-formed caller address, since the caller is debited or recorded.
    """
    if env.function not in SUPPORTED_FUNCTIONS:
        raise ContractError("unknown_function", "function_not_recognized", {"function": env.function})

    if isinstance(env.height, bool) or not isinstance(env.height, int) or env.height < 0:
        raise ContractError("invalid_input", "bad_block_height", {"height": env.height})

    if env.function not in QUERY_FUNCTIONS and not is_address(env.caller):
        raise ContractError("invalid_input", "invalid_caller_address", {"caller": env.caller})


_APPLIERS: tuple[ApplyFn, ...] = (
    apply_ledger,
    apply_vault,
    apply_governance,
    apply_market,
)


def apply_action(state: Json, env: Any) -> Json:
    """Dispatch an ActionEnvelope to the first domain applier that claims it.

    Mutates `state` in place and is NOT fail-atomic on its own; use
    domain_apply.apply_action_atomic for that.
    """

    ensure_state(state)

    # Tests and tools pass raw dict actions. Normalize to ActionEnvelope so
    # domain appliers can rely on attribute access.
    env_norm = ActionEnvelope.from_json(env)
    f = env_norm.function
    if not f:
        raise ContractError("invalid_input", "missing_function", {})

    _enforce_envelope(env_norm)

    for fn in _APPLIERS:
        try:
            out = fn(state, env_norm)
        except ContractError:
            raise
        except Exception as e:
            raise ContractError(
                "domain_error",
                type(e).__name__,
                {"function": f, "domain": fn.__name__, "error": str(e)},
            ) from e

        if out is not None:
            return out

    raise ContractError("unknown_function", "function_not_implemented", {"function": f})


__all__ = ["apply_action"]
