from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class ContractError(Exception):
    """The single rejection kind raised by dispatch and every domain applier.

    `code` is a coarse category callers may branch on, `reason` names the
    violated precondition, `details` carries the offending values.
    """

    code: str
    reason: str
    details: Any | None = None

    @property
    def message(self) -> str:
        """Human-readable rejection text, e.g. `balance too low (balance=5, qty=9)`."""
        text = self.reason.replace("_", " ")
        if isinstance(self.details, dict) and self.details:
            args = ", ".join(f"{k}={self.details[k]!r}" for k in sorted(self.details))
            return f"{text} ({args})"
        if self.details not in (None, {}, [], ""):
            return f"{text} ({self.details!r})"
        return text

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"
