from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from hostnet.plan.steps import OperationStep


class StepOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    FAILED = "failed"
    TOLERATED = "tolerated"


@dataclass(frozen=True, slots=True)
class RecordEntry:
    step: OperationStep
    outcome: StepOutcome
    timestamp: datetime
    detail: str = ""
    would_execute: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "step": self.step.describe(),
            "outcome": self.outcome.value,
            "timestamp": self.timestamp.isoformat(),
            "detail": self.detail,
            "would_execute": self.would_execute,
        }


@dataclass(slots=True)
class ExecutionRecord:
    dry_run: bool = False
    entries: list[RecordEntry] = field(default_factory=list)

    def add(self, entry: RecordEntry) -> None:
        self.entries.append(entry)

    def __iter__(self):
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def failed_entry(self) -> RecordEntry | None:
        for entry in self.entries:
            if entry.outcome == StepOutcome.FAILED:
                return entry
        return None

    @property
    def failed(self) -> bool:
        return self.failed_entry is not None

    def outcomes(self) -> list[tuple[OperationStep, StepOutcome]]:
        return [(e.step, e.outcome) for e in self.entries]

    def to_dict(self) -> dict[str, Any]:
        return {"dry_run": self.dry_run, "failed": self.failed, "entries": [e.to_dict() for e in self.entries]}
