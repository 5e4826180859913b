from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping

from consensustrade.runtime.errors import ContractError


def _check_height(h: Any) -> int:
    if isinstance(h, bool) or not isinstance(h, int) or h < 0:
        raise ContractError("invalid_input", "bad_block_height", {"height": h})
    return h


@dataclass(frozen=True)
class ActionEnvelope:
    """One host-submitted action plus the context it executes in.

    `caller` is the address the host authenticated; `height` is the injected
    block height. Appliers read both from here and never from ambient state.
    """

    function: str
    caller: str
    input: Dict[str, Any] = field(default_factory=dict)
    height: int = 0

    @staticmethod
    def from_json(j: Any, *, height: int | None = None) -> "ActionEnvelope":
        """Build from `{"input": {"function": ...}, "caller": ..., "height"?: ...}`.

        An explicit `height` overrides any height carried in `j`. A non-mapping
        action or a height that is not a non-negative int is rejected, never
        coerced.
        """
        if isinstance(j, ActionEnvelope):
            if height is None:
                return j
            return ActionEnvelope(function=j.function, caller=j.caller, input=j.input, height=_check_height(height))
        if not isinstance(j, Mapping):
            raise ContractError("invalid_input", "bad_action_envelope", {"type": type(j).__name__})
        inp = j.get("input")
        inp = dict(inp) if isinstance(inp, Mapping) else {}
        h = height if height is not None else j.get("height", 0)
        return ActionEnvelope(
            function=str(inp.get("function", "") or ""),
            caller=str(j.get("caller", "") or ""),
            input=inp,
            height=_check_height(h),
        )

    def to_json(self) -> Dict[str, Any]:
        return {
            "input": dict(self.input),
            "caller": self.caller,
            "height": self.height,
        }
