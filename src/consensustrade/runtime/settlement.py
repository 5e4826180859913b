# src/consensustrade/runtime/settlement.py
from __future__ import annotations

"""Market settlement arithmetic.

Pure integer math, no state access. `settle` turns a market's stake records
and the list of ledger holders into per-address credits whose sum equals the
staked pool exactly:

  - the side with the larger total wins; equal totals are a tie
  - tip = pool * tip_bps // 10000, capped at what the losers forfeit
    (on a tie, at the pool), split equally over the holders
  - winners get principal + a pro-rata share of (losing total - tip)
  - on a tie every staker gets principal minus a pro-rata share of the tip

Pro-rata shares use largest-remainder rounding with ties broken by address,
so no unit is created or lost.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Tuple

from consensustrade.ledger.constants import BPS_DENOMINATOR, CAST_NAY, CAST_YAY

OUTCOME_TIE: str = "tie"


@dataclass(frozen=True)
class Settlement:
    outcome: str
    yays: int
    nays: int
    tip: int
    credits: Dict[str, int] = field(default_factory=dict)

    @property
    def pool(self) -> int:
        return self.yays + self.nays


def split_pro_rata(total: int, weights: Mapping[str, int]) -> Dict[str, int]:
    """Split `total` over `weights` with largest-remainder rounding."""
    denom = sum(weights.values())
    if total <= 0 or denom <= 0:
        return {a: 0 for a in weights}

    shares: Dict[str, int] = {}
    remainders: List[Tuple[int, str]] = []
    for addr in sorted(weights):
        q, r = divmod(total * weights[addr], denom)
        shares[addr] = q
        remainders.append((r, addr))

    leftover = total - sum(shares.values())
    remainders.sort(key=lambda t: (-t[0], t[1]))
    for _, addr in remainders[:leftover]:
        shares[addr] += 1
    return shares


def split_equal(total: int, holders: Iterable[str]) -> Dict[str, int]:
    ordered = sorted(set(holders))
    if total <= 0 or not ordered:
        return {}
    q, r = divmod(total, len(ordered))
    return {addr: q + (1 if i < r else 0) for i, addr in enumerate(ordered)}


def side_totals(staked: Mapping[str, Mapping[str, object]]) -> Tuple[int, int]:
    yays = nays = 0
    for rec in staked.values():
        amount = int(rec.get("amount", 0))  # type: ignore[arg-type]
        if rec.get("cast") == CAST_YAY:
            yays += amount
        elif rec.get("cast") == CAST_NAY:
            nays += amount
    return yays, nays


def settle(
    staked: Mapping[str, Mapping[str, object]],
    *,
    holders: Iterable[str],
    tip_bps: int,
) -> Settlement:
    yays, nays = side_totals(staked)
    pool = yays + nays
    amounts = {addr: int(rec.get("amount", 0)) for addr, rec in staked.items()}  # type: ignore[arg-type]

    if yays == nays:
        outcome = OUTCOME_TIE
        forfeit = pool
    else:
        outcome = CAST_YAY if yays > nays else CAST_NAY
        forfeit = min(yays, nays)

    holders = list(holders)
    tip = min(pool * tip_bps // BPS_DENOMINATOR, forfeit) if holders else 0

    credits: Dict[str, int] = {}

    def _add(addr: str, qty: int) -> None:
        if qty:
            credits[addr] = credits.get(addr, 0) + qty

    for addr, qty in split_equal(tip, holders).items():
        _add(addr, qty)

    if outcome == OUTCOME_TIE:
        charges = split_pro_rata(tip, amounts)
        for addr, amount in amounts.items():
            _add(addr, amount - charges.get(addr, 0))
    else:
        winners = {a: amt for a, amt in amounts.items() if staked[a].get("cast") == outcome}
        shares = split_pro_rata(forfeit - tip, winners)
        for addr, amount in winners.items():
            _add(addr, amount + shares.get(addr, 0))

    return Settlement(outcome=outcome, yays=yays, nays=nays, tip=tip, credits=credits)


__all__ = ["OUTCOME_TIE", "Settlement", "settle", "side_totals", "split_equal", "split_pro_rata"]
