import signal

import pytest

from conftest import FakeBackend, FakeClock, FakePinger
from hostnet.adapters.base import Connection
from hostnet.backup.store import BackupStore
from hostnet.core.errors import ApplyStepFailed, HostnetError, NoBackupAvailable, RollbackFailed
from hostnet.core.settings import Settings
from hostnet.deploy.controller import (
    DeploymentController,
    DeployState,
    DeployStatus,
    StateMachine,
    deferred_signals,
)
from hostnet.execution.record import StepOutcome
from hostnet.oracle.probe import ReachabilityOracle
from hostnet.plan.steps import StepKind
from hostnet.topology.schema import PlaneName

FAST = Settings(settle_delay=0.0, grace_delay=5.0, probe_attempts=3, probe_timeout=2.0)


def _controller(backend, reachable, tmp_path, store=True, post_commit=None):
    clock = FakeClock()
    oracle = ReachabilityOracle(FakePinger(reachable, clock), settle_delay=0.0, sleep=clock.sleep, clock=clock)
    sources = {"connections": tmp_path / "nm"}
    (tmp_path / "nm").mkdir(exist_ok=True)
    (tmp_path / "nm" / "bond1.nmconnection").write_text("[connection]\nid=bond1\ntype=bond\n")
    return DeploymentController(
        backend=backend,
        oracle=oracle,
        store=BackupStore(tmp_path / "backups") if store else None,
        settings=FAST,
        sources=sources,
        post_commit=post_commit,
        sleep=clock.sleep,
    ), clock


def test_successful_deployment_commits(topology, tmp_path) -> None:
    committed = []
    controller, clock = _controller(FakeBackend(), True, tmp_path, post_commit=committed.append)
    result = controller.run_deployment(topology)

    assert result.status == DeployStatus.SUCCESS
    assert result.exit_code == 0
    assert result.states == [
        DeployState.IDLE,
        DeployState.BACKING_UP,
        DeployState.APPLYING,
        DeployState.VERIFYING,
        DeployState.COMMITTED,
        DeployState.TERMINAL,
    ]
    assert result.snapshot_id is not None
    assert result.verdict.reachable
    assert committed == [topology]
    assert clock.sleeps[0] == 5.0


def test_unreachable_gateway_rolls_back_to_rescue(topology, tmp_path) -> None:
    backend = FakeBackend()
    controller, _ = _controller(backend, False, tmp_path)
    result = controller.run_deployment(topology)

    assert result.status == DeployStatus.ROLLED_BACK
    assert result.exit_code == 2
    assert DeployState.ROLLING_BACK in result.states
    assert "10.1.41.1" in result.cause
    assert result.rescue_plan.planes() == {PlaneName.MANAGEMENT}
    rescue_targets = [e.step.target for e in result.rescue_record]
    assert "rescue-mgmt" in rescue_targets
    assert not any(t.startswith(("bond0", "cloudbr0")) for t in rescue_targets)
    assert "rescue-mgmt" in backend.connections
    assert "cloudbr0" in backend.connections
    assert "cloudbr1" not in backend.connections


def test_pinger_error_still_rolls_back(topology, tmp_path) -> None:
    def denied(target, timeout):
        raise PermissionError("ping: permission denied")

    backend = FakeBackend()
    controller, _ = _controller(backend, True, tmp_path)
    controller.oracle = ReachabilityOracle(denied, settle_delay=0.0, sleep=lambda _s: None)
    result = controller.run_deployment(topology)

    assert result.status == DeployStatus.ROLLED_BACK
    assert result.states[-2:] == [DeployState.ROLLING_BACK, DeployState.TERMINAL]
    assert not result.verdict.reachable
    assert "PermissionError" in result.verdict.error
    assert "rescue-mgmt" in backend.connections


def test_rescue_failure_is_reported(topology, tmp_path, caplog) -> None:
    backend = FakeBackend(fail_on={"rescue-mgmt"})
    controller, _ = _controller(backend, False, tmp_path)
    result = controller.run_deployment(topology)

    assert result.status == DeployStatus.ROLLED_BACK
    assert isinstance(result.error, RollbackFailed)
    assert result.error.step.target == "rescue-mgmt"
    assert any(r.levelname == "CRITICAL" for r in caplog.records)


def test_failed_apply_does_not_roll_back(topology, tmp_path) -> None:
    backend = FakeBackend(fail_on={"cloudbr1"})
    committed = []
    controller, _ = _controller(backend, True, tmp_path, post_commit=committed.append)
    result = controller.run_deployment(topology)

    assert result.status == DeployStatus.FAILED
    assert result.exit_code == 1
    assert isinstance(result.error, ApplyStepFailed)
    assert result.error.step.target == "cloudbr1"
    assert result.rescue_plan is None
    assert DeployState.VERIFYING not in result.states
    assert [s.target for s in result.undo_plan.steps][:2] == ["bond1-slave-eth3", "bond1-slave-eth2"]
    assert committed == []


def test_dry_run_touches_nothing(topology, tmp_path) -> None:
    backend = FakeBackend([Connection("cloudbr1", "bridge")])
    controller, clock = _controller(backend, False, tmp_path)
    result = controller.run_deployment(topology, dry_run=True)

    assert result.dry_run
    assert result.status == DeployStatus.SUCCESS
    assert result.states == [DeployState.IDLE, DeployState.TERMINAL]
    assert backend.applied == []
    assert clock.sleeps == []
    assert all(e.outcome == StepOutcome.SKIPPED for e in result.record)
    assert not (tmp_path / "backups").exists()


def test_snapshot_failure_is_not_fatal(topology, tmp_path) -> None:
    class BrokenListing(FakeBackend):
        calls = 0

        def list_connections(self):
            self.calls += 1
            if self.calls == 2:
                raise RuntimeError("nmcli busy")
            return super().list_connections()

    controller, _ = _controller(BrokenListing(), True, tmp_path)
    result = controller.run_deployment(topology)
    assert result.status == DeployStatus.SUCCESS
    assert result.snapshot_id is None


def test_rollback_restores_latest_snapshot(topology, tmp_path) -> None:
    backend = FakeBackend()
    controller, _ = _controller(backend, True, tmp_path)
    controller.run_deployment(topology)

    restored = controller.rollback()
    assert restored.ok
    imports = [e.step for e in restored.record if e.step.kind == StepKind.IMPORT_CONNECTION]
    assert [s.target for s in imports] == ["bond1"]


def test_rollback_without_store_or_snapshot(tmp_path) -> None:
    controller, _ = _controller(FakeBackend(), True, tmp_path, store=False)
    with pytest.raises(NoBackupAvailable):
        controller.rollback()
    controller, _ = _controller(FakeBackend(), True, tmp_path)
    with pytest.raises(NoBackupAvailable):
        controller.rollback()


def test_state_machine_rejects_illegal_transition() -> None:
    machine = StateMachine()
    machine.advance(DeployState.BACKING_UP)
    with pytest.raises(HostnetError):
        machine.advance(DeployState.COMMITTED)
    assert machine.history == [DeployState.IDLE, DeployState.BACKING_UP]


def test_deferred_signals_hold_sigterm_until_exit() -> None:
    seen = []
    previous = signal.signal(signal.SIGTERM, lambda signum, _frame: seen.append(signum))
    try:
        with deferred_signals():
            signal.raise_signal(signal.SIGTERM)
            assert seen == []
        assert seen == [signal.SIGTERM]
    finally:
        signal.signal(signal.SIGTERM, previous)
