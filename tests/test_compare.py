from conftest import FakeBackend
from hostnet.adapters.base import Connection
from hostnet.drift.compare import compare, expected_connections
from hostnet.execution.executor import Executor
from hostnet.plan.compiler import compile_plan


def test_expected_connections(topology) -> None:
    expected = expected_connections(topology)
    assert expected["bond0"] == "bond"
    assert expected["bond0-slave-eth0"] == "802-3-ethernet"
    assert expected["cloudbr1"] == "bridge"
    assert expected["bond1.41-bridge"] == "vlan"
    assert len(expected) == 9


def test_in_sync_after_deploy(topology) -> None:
    backend = FakeBackend([Connection("Wired connection 1", "802-3-ethernet")])
    Executor(backend).apply(compile_plan(topology, backend.list_connections()))
    report = compare(topology, backend.list_connections())
    assert report.in_sync
    assert report.exit_code == 0


def test_reports_missing_unexpected_and_changed(topology) -> None:
    state = [
        Connection("bond0", "bond"),
        Connection("cloudbr0", "802-3-ethernet"),
        Connection("cloudbr100", "bridge"),
        Connection("eth2", "802-3-ethernet"),
        Connection("home-wifi", "wifi"),
    ]
    report = compare(topology, state)
    assert not report.in_sync
    assert report.exit_code == 1
    assert "cloudbr1" in report.missing
    assert report.unexpected == ["cloudbr100", "eth2"]
    assert report.changed == [{"path": "cloudbr0", "type": "changed", "expected": "bridge", "actual": "802-3-ethernet"}]
    assert "home-wifi" not in report.present
