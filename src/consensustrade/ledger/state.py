from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping


Json = Dict[str, Any]

_EMPTY: Mapping[str, Any] = MappingProxyType({})


def _read_only(v: Any) -> Mapping[str, Any]:
    return MappingProxyType(v) if isinstance(v, dict) else _EMPTY


@dataclass(frozen=True, slots=True)
class LedgerView:
    """
    Read-only view over the token-holding parts of a state document.

    The containers are wrapped, not copied; a view is only valid until the
    next mutation of the state it was built from.
    """

    balances: Mapping[str, int] = field(default_factory=lambda: _EMPTY)
    vault: Mapping[str, List[Json]] = field(default_factory=lambda: _EMPTY)
    markets: Mapping[str, Json] = field(default_factory=lambda: _EMPTY)

    @classmethod
    def from_state(cls, state: Mapping[str, Any]) -> "LedgerView":
        return cls(
            balances=_read_only(state.get("balances")),
            vault=_read_only(state.get("vault")),
            markets=_read_only(state.get("markets")),
        )

    def has_presence(self, address: str) -> bool:
        return address in self.balances or address in self.vault

    def liquid(self, address: str) -> int:
        return int(self.balances.get(address, 0) or 0)

    def entries(self, address: str) -> List[Json]:
        v = self.vault.get(address)
        return [e for e in v if isinstance(e, dict)] if isinstance(v, list) else []

    def locked_total(self, address: str) -> int:
        """Every vault entry still held, ended or not."""
        return sum(int(e.get("balance", 0)) for e in self.entries(address))

    def locked_active(self, address: str, *, height: int) -> int:
        """Vault entries still locked at `height`."""
        return sum(int(e.get("balance", 0)) for e in self.entries(address) if height < int(e.get("end", 0)))

    def total_liquid(self) -> int:
        return sum(int(v) for v in self.balances.values())

    def total_locked(self) -> int:
        return sum(self.locked_total(a) for a in self.vault)

    def total_active_weight(self, *, height: int) -> int:
        return sum(self.locked_active(a, height=height) for a in self.vault)

    def total_staked(self) -> int:
        """Principal held by markets that have not been disbursed."""
        out = 0
        for m in self.markets.values():
            if not isinstance(m, dict) or m.get("status") != "active":
                continue
            staked = m.get("staked")
            if isinstance(staked, dict):
                out += sum(int(s.get("amount", 0)) for s in staked.values() if isinstance(s, dict))
        return out

    def total_supply(self) -> int:
        return self.total_liquid() + self.total_locked() + self.total_staked()
