# src/consensustrade/runtime/engine_config.py
from __future__ import annotations

import copy
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from consensustrade.env import load_dotenv_if_present
from consensustrade.ledger.constants import DEFAULT_SETTINGS
from consensustrade.runtime.errors import ContractError
from consensustrade.runtime.proposals import ProtocolParam, check_param_value
from consensustrade.util.address import is_address

Json = Dict[str, Any]


def _as_str(v: Any, default: str) -> str:
    if v is None:
        return str(default)
    s = str(v)
    return s if s.strip() else str(default)


@dataclass(frozen=True)
class EngineConfig:
    """Operator configuration.

    Only used to seed a genesis state document. Once a state exists, every
    parameter is read from `state["settings"]` so replicas cannot diverge on
    local configuration.
    """

    name: str
    ticker: str
    settings: Dict[str, Any] = field(default_factory=lambda: dict(DEFAULT_SETTINGS))
    log_level: str = "INFO"


_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def validate_engine_config(cfg: EngineConfig) -> None:
    """Fail-fast validation for operator config."""

    if not isinstance(cfg.name, str) or not cfg.name.strip():
        raise ValueError("name must be a non-empty string")

    if not isinstance(cfg.ticker, str) or not cfg.ticker.strip():
        raise ValueError("ticker must be a non-empty string")

    level = str(cfg.log_level or "").strip().upper()
    if level not in _LOG_LEVELS:
        raise ValueError(f"log_level must be one of {sorted(_LOG_LEVELS)}; got: {cfg.log_level!r}")

    if not isinstance(cfg.settings, dict):
        raise ValueError("settings must be a mapping")

    unknown = sorted(set(cfg.settings) - set(DEFAULT_SETTINGS))
    if unknown:
        raise ValueError(f"unknown settings: {unknown}")

    # Validate each parameter against the merged settings, the same rules
    # governance applies to a `set` proposal.
    candidate: Json = {"settings": dict(cfg.settings)}
    for key, value in cfg.settings.items():
        try:
            check_param_value(candidate, ProtocolParam(key), value)
        except ContractError as e:
            raise ValueError(f"invalid setting {key}={value!r}: {e.reason}") from e


def default_engine_config() -> EngineConfig:
    return EngineConfig(
        name="ConsensusTrade",
        ticker="CTRADE",
        settings=dict(DEFAULT_SETTINGS),
        log_level="INFO",
    )


def read_engine_config_file(path: str) -> EngineConfig:
    """Read a YAML (or JSON, a YAML subset) config file."""
    p = Path(path)
    raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError("engine config must be a mapping")

    d = default_engine_config()

    settings = dict(d.settings)
    raw_settings = raw.get("settings")
    if raw_settings is not None:
        if not isinstance(raw_settings, dict):
            raise ValueError("settings must be a mapping")
        settings.update({str(k): v for k, v in raw_settings.items()})

    cfg = EngineConfig(
        name=_as_str(raw.get("name"), d.name),
        ticker=_as_str(raw.get("ticker"), d.ticker),
        settings=settings,
        log_level=_as_str(raw.get("log_level"), d.log_level).upper(),
    )

    validate_engine_config(cfg)
    return cfg


def load_engine_config(*, config_path: Optional[str] = None) -> EngineConfig:
    load_dotenv_if_present()

    p = config_path or os.environ.get("CTRADE_ENGINE_CONFIG_PATH")
    cfg = read_engine_config_file(p) if p else default_engine_config()

    level = os.environ.get("CTRADE_LOG_LEVEL")
    if level:
        cfg = EngineConfig(name=cfg.name, ticker=cfg.ticker, settings=dict(cfg.settings), log_level=level.strip().upper())

    validate_engine_config(cfg)
    return cfg


def genesis_state(
    cfg: EngineConfig,
    *,
    balances: Optional[Mapping[str, int]] = None,
    vault: Optional[Mapping[str, List[Json]]] = None,
) -> Json:
    """Build a fresh state document seeded from `cfg`."""
    validate_engine_config(cfg)

    bal: Dict[str, int] = {}
    for addr, qty in (balances or {}).items():
        if not is_address(addr):
            raise ValueError(f"genesis balance address is malformed: {addr!r}")
        if isinstance(qty, bool) or not isinstance(qty, int) or qty < 0:
            raise ValueError(f"genesis balance must be a non-negative integer: {addr}={qty!r}")
        bal[addr] = qty

    vlt: Dict[str, List[Json]] = {}
    for addr, entries in (vault or {}).items():
        if not is_address(addr):
            raise ValueError(f"genesis vault address is malformed: {addr!r}")
        vlt[addr] = [
            {"balance": int(e["balance"]), "start": int(e["start"]), "end": int(e["end"])}
            for e in entries
        ]

    return {
        "name": cfg.name,
        "ticker": cfg.ticker,
        "balances": bal,
        "vault": vlt,
        "votes": [],
        "roles": {},
        "markets": {},
        "settings": copy.deepcopy(cfg.settings),
    }


__all__ = [
    "EngineConfig",
    "default_engine_config",
    "genesis_state",
    "load_engine_config",
    "read_engine_config_file",
    "validate_engine_config",
]
