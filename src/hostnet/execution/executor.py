from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from hostnet.adapters.base import CmdResult, NetworkBackend
from hostnet.plan.steps import OperationStep, Plan
from hostnet.utils.time import utc_now

from .record import ExecutionRecord, RecordEntry, StepOutcome

logger = logging.getLogger(__name__)


def _cause(result: CmdResult) -> str:
    return result.stderr or result.stdout or f"exit status {result.rc}"


class Executor:
    """Runs a plan step by step. Deciding whether to keep the result is not its job."""

    def __init__(self, backend: NetworkBackend, clock: Callable[[], datetime] = utc_now) -> None:
        self.backend = backend
        self.clock = clock

    def _run(self, step: OperationStep) -> RecordEntry:
        try:
            result = self.backend.apply(step)
        except Exception as exc:
            result = CmdResult(1, "", f"{type(exc).__name__}: {exc}")

        if result.ok:
            logger.info("ok    %s", step.describe())
            return RecordEntry(step, StepOutcome.SUCCEEDED, self.clock(), result.stdout)
        if step.best_effort:
            logger.warning("skip  %s (best effort): %s", step.describe(), _cause(result))
            return RecordEntry(step, StepOutcome.TOLERATED, self.clock(), _cause(result))
        logger.error("FAIL  %s: %s", step.describe(), _cause(result))
        return RecordEntry(step, StepOutcome.FAILED, self.clock(), _cause(result))

    def apply(self, plan: Plan, dry_run: bool = False) -> ExecutionRecord:
        record = ExecutionRecord(dry_run=dry_run)
        logger.info("%s %s plan: %d steps", "Previewing" if dry_run else "Applying", plan.kind.value, len(plan))
        for step in plan.steps:
            if dry_run:
                record.add(RecordEntry(step, StepOutcome.SKIPPED, self.clock(), "dry run", would_execute=True))
                continue
            entry = self._run(step)
            record.add(entry)
            if entry.outcome == StepOutcome.FAILED:
                break
        return record
