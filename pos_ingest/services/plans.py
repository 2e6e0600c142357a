from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from sqlalchemy.orm import Session


@dataclass(frozen=True)
class PlanContext:
    source_file: str
    record_kind: str
    created_by: str


@dataclass(frozen=True)
class WritePlan:
    """One record's writes; the orchestrator runs ``execute`` inside its own transaction.

    A plan with a ``skip_reason`` is counted as skipped and never executed.
    """

    label: str
    execute: Callable[[Session], object] | None = None
    skip_reason: str | None = None

    @classmethod
    def skip(cls, label: str, reason: str) -> WritePlan:
        return cls(label=label, skip_reason=reason)
