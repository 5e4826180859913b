from __future__ import annotations

"""Action input schemas.

Every recognized `function` has a model describing the shape of its input:
field names and strict JSON types (no str -> int coercion, no bool-as-int).
Together the models form a tagged union keyed by `function`.

Shape checks live here; semantic checks (positive amounts, address format,
balances, windows) stay in the apply modules so their rejections name the
violated precondition.
"""

import math
from typing import Any, Dict, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, StrictFloat, StrictInt, StrictStr, ValidationError, field_validator

from consensustrade.runtime.errors import ContractError

Json = Dict[str, Any]


# ---------------------------------------------------------------------------
# Base Models
# ---------------------------------------------------------------------------


class _ActionModel(BaseModel):
    """Input for one function. Unknown keys are ignored, not stored."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    function: StrictStr


class _TargetQuery(_ActionModel):
    target: Optional[StrictStr] = None


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


class TransferInput(_ActionModel):
    target: StrictStr
    qty: StrictInt


class BalanceInput(_TargetQuery):
    pass


class UnlockedBalanceInput(_TargetQuery):
    pass


# ---------------------------------------------------------------------------
# Vault
# ---------------------------------------------------------------------------


class LockInput(_ActionModel):
    qty: StrictInt
    lockLength: StrictInt


class TransferLockedInput(_ActionModel):
    target: StrictStr
    qty: StrictInt
    lockLength: StrictInt


class IncreaseVaultInput(_ActionModel):
    id: StrictInt
    lockLength: StrictInt


class UnlockInput(_ActionModel):
    pass


class VaultBalanceInput(_TargetQuery):
    pass


# ---------------------------------------------------------------------------
# Governance
# ---------------------------------------------------------------------------


class ProposeInput(_ActionModel):
    type: StrictStr
    note: StrictStr
    recipient: Optional[StrictStr] = None
    qty: Optional[StrictInt] = None
    lockLength: Optional[StrictInt] = None
    key: Optional[StrictStr] = None
    # Any JSON value; meaning depends on `key`.
    value: Any = None


class VoteInput(_ActionModel):
    id: StrictInt
    cast: StrictStr


class FinalizeInput(_ActionModel):
    id: StrictInt


# ---------------------------------------------------------------------------
# Market
# ---------------------------------------------------------------------------


class CreateMarketInput(_ActionModel):
    tweet: StrictStr
    tweetUsername: StrictStr
    tweetPhoto: StrictStr
    tweetCreated: Union[StrictInt, StrictFloat]
    tweetLink: StrictStr

    @field_validator("tweetCreated")
    @classmethod
    def _finite(cls, v: Union[int, float]) -> Union[int, float]:
        if isinstance(v, float) and not math.isfinite(v):
            raise ValueError("tweetCreated must be finite")
        return v


class StakeInput(_ActionModel):
    id: StrictStr
    cast: StrictStr
    stakedAmount: StrictInt


class DisburseInput(_ActionModel):
    id: StrictStr


Schema = Type[_ActionModel]

_SCHEMA_BY_FUNCTION: Dict[str, Schema] = {
    # Ledger
    "transfer": TransferInput,
    "balance": BalanceInput,
    "unlockedBalance": UnlockedBalanceInput,
    # Vault
    "lock": LockInput,
    "transferLocked": TransferLockedInput,
    "increaseVault": IncreaseVaultInput,
    "unlock": UnlockInput,
    "vaultBalance": VaultBalanceInput,
    # Governance
    "propose": ProposeInput,
    "vote": VoteInput,
    "finalize": FinalizeInput,
    # Market
    "createMarket": CreateMarketInput,
    "stake": StakeInput,
    "disburse": DisburseInput,
}

SUPPORTED_FUNCTIONS = frozenset(_SCHEMA_BY_FUNCTION)

QUERY_FUNCTIONS = frozenset({"balance", "unlockedBalance", "vaultBalance"})


def schema_for(function: str) -> Optional[Schema]:
    return _SCHEMA_BY_FUNCTION.get(str(function or ""))


def parse_input(function: str, payload: Any) -> _ActionModel:
    """Validate `payload` against the schema of `function`.

    Raises ContractError on an unknown function or a shape mismatch.
    """
    sch = schema_for(function)
    if sch is None:
        raise ContractError("unknown_function", "function_not_recognized", {"function": function})

    if not isinstance(payload, dict):
        raise ContractError("invalid_input", "input_must_be_object", {"function": function})

    try:
        return sch.model_validate(payload)
    except ValidationError as ve:
        fields = sorted({".".join(str(p) for p in e.get("loc", ())) for e in ve.errors()})
        raise ContractError("invalid_input", "input_schema_mismatch", {"function": function, "fields": fields})


__all__ = [
    "QUERY_FUNCTIONS",
    "SUPPORTED_FUNCTIONS",
    "parse_input",
    "schema_for",
    "TransferInput",
    "BalanceInput",
    "UnlockedBalanceInput",
    "LockInput",
    "TransferLockedInput",
    "IncreaseVaultInput",
    "UnlockInput",
    "VaultBalanceInput",
    "ProposeInput",
    "VoteInput",
    "FinalizeInput",
    "CreateMarketInput",
    "StakeInput",
    "DisburseInput",
]
