"""In-process scheduler state reported by the health endpoint."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from woorkpay.utils.time import utcnow


@dataclass
class SchedulerState:
    active: bool = False
    last_run_at: datetime | None = None
    last_run_stats: dict[str, int] = field(default_factory=dict)


_state = SchedulerState()


def set_scheduler_active(active: bool) -> None:
    _state.active = active


def is_scheduler_active() -> bool:
    return _state.active


def record_reconciliation_run(stats: dict[str, int]) -> None:
    _state.last_run_at = utcnow()
    _state.last_run_stats = dict(stats)


def last_reconciliation_run() -> dict[str, object] | None:
    """Return when the last reconciliation pass finished and what it did, if any ran."""

    if _state.last_run_at is None:
        return None
    return {"finished_at": _state.last_run_at.isoformat(), **_state.last_run_stats}


__all__ = [
    "is_scheduler_active",
    "last_reconciliation_run",
    "record_reconciliation_run",
    "set_scheduler_active",
]
