from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, Optional

from risk_rollup.core.models import Control, as_utc
from risk_rollup.domain.controls import DONE_STATUSES, ControlPhase, ControlStatus


def is_implemented(status: ControlStatus | str | None, verified_at: Optional[datetime]) -> bool:
    """
    Two independent signals for the same fact.

    The status is canonical. Older records only carry the verification
    timestamp, so either one is enough; disagreement is not an error.
    """
    if verified_at is not None:
        return True
    if status is None:
        return False
    try:
        return ControlStatus(getattr(status, "value", status)) in DONE_STATUSES
    except ValueError:
        return False


def is_overdue(control: Control, now: datetime) -> bool:
    if control.due_date is None:
        return False
    if is_implemented(control.status, control.verified_at):
        return False
    return control.due_date < as_utc(now)


@dataclass(frozen=True)
class ControlsProgress:
    total: int = 0
    implemented: int = 0
    overdue: int = 0

    @property
    def open(self) -> int:
        return self.total - self.implemented

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "implemented": self.implemented,
            "overdue": self.overdue,
            "open": self.open,
        }


class ControlProgressCounter:
    def count(self, controls: Iterable[Control], now: datetime) -> ControlsProgress:
        total = 0
        implemented = 0
        overdue = 0

        for c in controls:
            if c.phase != ControlPhase.ADDITIONAL:
                continue
            total += 1
            if is_implemented(c.status, c.verified_at):
                implemented += 1
            elif is_overdue(c, now):
                overdue += 1

        return ControlsProgress(total=total, implemented=implemented, overdue=overdue)
