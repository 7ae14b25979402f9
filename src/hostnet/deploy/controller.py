"""Deployment state machine.

IDLE -> BACKING_UP -> APPLYING -> VERIFYING -> COMMITTED | ROLLING_BACK -> TERMINAL

A failed apply goes straight to TERMINAL without a rollback: nothing is known
to be broken yet and the operator restores explicitly. Only an unreachable
gateway after a clean apply triggers the rescue interface.
"""

from __future__ import annotations

import logging
import signal
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterator

from hostnet.adapters.base import NetworkBackend
from hostnet.backup.store import BackupStore, capture_snapshot
from hostnet.core.errors import (
    ApplyStepFailed,
    CompileError,
    HostnetError,
    NoBackupAvailable,
    RollbackFailed,
    SnapshotFailed,
    VerificationFailed,
)
from hostnet.core.settings import Settings
from hostnet.execution.executor import Executor
from hostnet.execution.record import ExecutionRecord
from hostnet.oracle.probe import ReachabilityOracle, Verdict
from hostnet.plan.compiler import compile_plan, compile_rescue_plan, compile_reverse_plan
from hostnet.plan.steps import Plan
from hostnet.topology.names import RESCUE_CONNECTION
from hostnet.topology.schema import Topology

logger = logging.getLogger(__name__)


class DeployState(str, Enum):
    IDLE = "idle"
    BACKING_UP = "backing-up"
    APPLYING = "applying"
    VERIFYING = "verifying"
    COMMITTED = "committed"
    ROLLING_BACK = "rolling-back"
    TERMINAL = "terminal"


TRANSITIONS: dict[DeployState, set[DeployState]] = {
    DeployState.IDLE: {DeployState.BACKING_UP, DeployState.TERMINAL},
    DeployState.BACKING_UP: {DeployState.APPLYING},
    DeployState.APPLYING: {DeployState.VERIFYING, DeployState.TERMINAL},
    DeployState.VERIFYING: {DeployState.COMMITTED, DeployState.ROLLING_BACK},
    DeployState.COMMITTED: {DeployState.TERMINAL},
    DeployState.ROLLING_BACK: {DeployState.TERMINAL},
    DeployState.TERMINAL: set(),
}


class DeployStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"


class StateMachine:
    def __init__(self) -> None:
        self.state = DeployState.IDLE
        self.history: list[DeployState] = [DeployState.IDLE]

    def advance(self, target: DeployState) -> None:
        if target not in TRANSITIONS[self.state]:
            raise HostnetError(f"illegal transition {self.state.value} -> {target.value}")
        logger.debug("state %s -> %s", self.state.value, target.value)
        self.state = target
        self.history.append(target)


@dataclass(slots=True)
class DeployResult:
    status: DeployStatus
    plan: Plan
    record: ExecutionRecord
    states: list[DeployState]
    cause: str | None = None
    error: HostnetError | None = None
    snapshot_id: str | None = None
    verdict: Verdict | None = None
    rescue_plan: Plan | None = None
    rescue_record: ExecutionRecord | None = None
    undo_plan: Plan | None = None
    dry_run: bool = False

    @property
    def exit_code(self) -> int:
        return {DeployStatus.SUCCESS: 0, DeployStatus.FAILED: 1, DeployStatus.ROLLED_BACK: 2}[self.status]

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "dry_run": self.dry_run,
            "cause": self.cause,
            "snapshot_id": self.snapshot_id,
            "states": [s.value for s in self.states],
            "verdict": self.verdict.to_dict() if self.verdict else None,
            "plan": self.plan.to_dict(),
            "record": self.record.to_dict(),
            "rescue_record": self.rescue_record.to_dict() if self.rescue_record else None,
            "undo_plan": self.undo_plan.to_dict() if self.undo_plan else None,
        }


@dataclass(slots=True)
class RestoreResult:
    snapshot_id: str
    record: ExecutionRecord = field(default_factory=ExecutionRecord)

    @property
    def ok(self) -> bool:
        return not self.record.failed


@contextmanager
def deferred_signals(signums: tuple[int, ...] = (signal.SIGINT, signal.SIGTERM)) -> Iterator[None]:
    """Hold SIGINT/SIGTERM until the block exits; the host must not be left half configured."""
    if threading.current_thread() is not threading.main_thread():
        yield
        return
    received: list[int] = []
    previous = {s: signal.signal(s, lambda signum, _frame: received.append(signum)) for s in signums}
    try:
        yield
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)
        if received:
            logger.warning("Re-raising signal %d deferred during deployment", received[0])
            signal.raise_signal(received[0])


class DeploymentController:
    def __init__(
        self,
        backend: NetworkBackend,
        oracle: ReachabilityOracle,
        store: BackupStore | None = None,
        settings: Settings | None = None,
        sources: dict[str, Path] | None = None,
        post_commit: Callable[[Topology], None] | None = None,
        executor: Executor | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.backend = backend
        self.executor = executor or Executor(backend)
        self.oracle = oracle
        self.store = store
        self.settings = settings or Settings()
        self.sources = sources or {}
        self.post_commit = post_commit
        self.sleep = sleep

    def run_deployment(self, topology: Topology, dry_run: bool = False) -> DeployResult:
        machine = StateMachine()
        plan = compile_plan(topology, self.backend.list_connections())

        if dry_run:
            record = self.executor.apply(plan, dry_run=True)
            machine.advance(DeployState.TERMINAL)
            return DeployResult(DeployStatus.SUCCESS, plan, record, machine.history, dry_run=True)

        machine.advance(DeployState.BACKING_UP)
        snapshot_id = self._backup()

        if self.settings.grace_delay > 0:
            logger.info("Starting configuration in %.0f seconds", self.settings.grace_delay)
            self.sleep(self.settings.grace_delay)

        with deferred_signals():
            machine.advance(DeployState.APPLYING)
            record = self.executor.apply(plan)
            failed = record.failed_entry
            if failed is not None:
                error = ApplyStepFailed(f"{failed.step.describe()} failed: {failed.detail}", failed.step, record)
                undo_plan, irreversible = compile_reverse_plan(record)
                logger.error("Deployment halted at %s; no automatic rollback", failed.step.describe())
                if irreversible:
                    logger.error("%d completed steps can only be undone by a snapshot restore", len(irreversible))
                machine.advance(DeployState.TERMINAL)
                return DeployResult(
                    DeployStatus.FAILED, plan, record, machine.history,
                    cause=str(error), error=error, snapshot_id=snapshot_id, undo_plan=undo_plan,
                )

            machine.advance(DeployState.VERIFYING)
            verdict = self._verify(topology)

            if verdict.reachable:
                machine.advance(DeployState.COMMITTED)
                logger.info("SUCCESS: network deployed and gateway %s reachable", verdict.target)
                self._commit(topology)
                machine.advance(DeployState.TERMINAL)
                return DeployResult(DeployStatus.SUCCESS, plan, record, machine.history, snapshot_id=snapshot_id, verdict=verdict)

            machine.advance(DeployState.ROLLING_BACK)
            trigger = VerificationFailed(f"gateway {verdict.target} unreachable: {verdict.error}")
            logger.critical("CONNECTIVITY LOST (%s), initiating rollback", trigger)
            rescue_plan, rescue_record, rescue_error = self._rescue(topology)
            machine.advance(DeployState.TERMINAL)
            return DeployResult(
                DeployStatus.ROLLED_BACK, plan, record, machine.history,
                cause=str(trigger), error=rescue_error or trigger, snapshot_id=snapshot_id, verdict=verdict,
                rescue_plan=rescue_plan, rescue_record=rescue_record,
            )

    def _backup(self) -> str | None:
        if self.store is None:
            logger.warning("No backup store configured, snapshot restore is unavailable for this attempt")
            return None
        try:
            return self.store.save(capture_snapshot(self.backend, self.sources))
        except SnapshotFailed as exc:
            logger.warning("%s; continuing without a restorable backup", exc)
            return None

    def _verify(self, topology: Topology) -> Verdict:
        gateway_plane = topology.gateway_plane
        if gateway_plane is None or not gateway_plane.gateway:
            return Verdict(False, "", error="topology has no gateway to probe")
        target = gateway_plane.gateway
        try:
            return self.oracle.probe(target, self.settings.probe_attempts, self.settings.probe_timeout)
        except Exception as exc:
            logger.error("Probe of %s raised %s: %s", target, type(exc).__name__, exc)
            return Verdict(False, target, error=f"{type(exc).__name__}: {exc}")

    def _commit(self, topology: Topology) -> None:
        if self.post_commit is None:
            return
        try:
            self.post_commit(topology)
        except Exception as exc:
            logger.warning("Post-commit step failed: %s", exc)

    def _rescue(self, topology: Topology) -> tuple[Plan | None, ExecutionRecord | None, RollbackFailed | None]:
        try:
            plan = compile_rescue_plan(topology)
        except CompileError as exc:
            error = RollbackFailed(f"cannot build rescue plan: {exc}")
            logger.critical("CRIT: %s; console access required", error)
            return None, None, error

        record = self.executor.apply(plan)
        failed = record.failed_entry
        if failed is not None:
            error = RollbackFailed(f"rescue step {failed.step.describe()} failed: {failed.detail}", failed.step, record)
            logger.critical("CRIT: %s; console access required", error)
            return plan, record, error
        logger.warning("Rollback complete, host reachable via %s", RESCUE_CONNECTION)
        return plan, record, None

    def rollback(self) -> RestoreResult:
        if self.store is None:
            raise NoBackupAvailable("No backup store configured")
        snapshot = self.store.latest()
        if snapshot is None:
            raise NoBackupAvailable(f"No snapshots in {self.store.root}")
        with deferred_signals():
            record = self.store.restore(snapshot.id, self.executor)
        if record.failed:
            logger.error("Restore of %s stopped at %s", snapshot.id, record.failed_entry.step.describe())
        else:
            logger.info("Restored snapshot %s", snapshot.id)
        return RestoreResult(snapshot.id, record)
