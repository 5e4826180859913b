#!/usr/bin/env python3
"""
Replay an ordered list of actions against a state snapshot.

Host-side tooling: reads files, applies each action through the fail-atomic
engine entry point, and prints the final state as canonical JSON so two runs
(or two implementations) can be compared byte for byte.

Actions file: a YAML/JSON list of {"input": {...}, "caller": ..., "height": ...}.
"""

from __future__ import annotations

import argparse
import copy
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Tuple

import yaml

from consensustrade.runtime.action_types import ActionEnvelope
from consensustrade.runtime.domain_apply import apply_action_atomic
from consensustrade.runtime.engine_config import load_engine_config
from consensustrade.runtime.errors import ContractError
from consensustrade.runtime.structured_logging import configure_structured_logging, log_event
from consensustrade.util.canonical import canonical_json_str

Json = Dict[str, Any]

_log = logging.getLogger("consensustrade.replay")


@dataclass(frozen=True)
class Receipt:
    index: int
    function: str
    ok: bool
    applied: Json | None = None
    code: str = ""
    reason: str = ""

    def to_json(self) -> Json:
        out: Json = {"index": self.index, "function": self.function, "ok": self.ok}
        if self.ok:
            out["applied"] = self.applied
        else:
            out["code"] = self.code
            out["reason"] = self.reason
        return out


def replay(state: Json, actions: Iterable[Any]) -> Tuple[Json, List[Receipt]]:
    """Apply `actions` in order to a copy of `state`.

    Rejected actions are recorded and skipped; they never change the state.
    """
    st = copy.deepcopy(state)
    receipts: List[Receipt] = []
    for i, raw in enumerate(actions):
        env: ActionEnvelope | None = None
        try:
            env = ActionEnvelope.from_json(raw)
            meta = apply_action_atomic(st, env)
        except ContractError as e:
            function = env.function if env is not None else ""
            receipts.append(Receipt(index=i, function=function, ok=False, code=e.code, reason=e.reason))
            continue
        receipts.append(Receipt(index=i, function=env.function, ok=True, applied=meta))
    return st, receipts


def _load_doc(p: Path) -> Any:
    try:
        with p.open("r", encoding="utf-8") as f:
            return yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise SystemExit(f"Failed to read {p}: {e}") from e


def main(argv: List[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Replay actions against a state snapshot.")
    ap.add_argument("--state", required=True, help="state snapshot (YAML or JSON)")
    ap.add_argument("--actions", required=True, help="ordered action list (YAML or JSON)")
    ap.add_argument("--out", default="", help="write the final state here instead of stdout")
    ap.add_argument("--receipts", action="store_true", help="also print one receipt per action")
    ap.add_argument("--config", default=None, help="engine config file (log level)")
    args = ap.parse_args(argv)

    cfg = load_engine_config(config_path=args.config)
    configure_structured_logging(cfg.log_level)

    state = _load_doc(Path(args.state))
    if not isinstance(state, dict):
        raise SystemExit("state snapshot must be a mapping")
    actions = _load_doc(Path(args.actions))
    if not isinstance(actions, list):
        raise SystemExit("actions file must be a list")

    final, receipts = replay(state, actions)
    rejected = sum(1 for r in receipts if not r.ok)
    log_event(_log, "replay_done", actions=len(receipts), rejected=rejected)

    out = canonical_json_str(final)
    if args.out:
        Path(args.out).write_text(out + "\n", encoding="utf-8")
    else:
        sys.stdout.write(out + "\n")

    if args.receipts:
        for r in receipts:
            sys.stdout.write(canonical_json_str(r.to_json()) + "\n")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
