from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from hostnet.adapters.base import CmdResult, Connection
from hostnet.plan.steps import OperationStep, StepKind
from hostnet.topology.schema import NetworkPlane, PlaneName, PortMode, Topology


class FakeBackend:
    """In-memory NetworkManager: applies steps to a dict of connection names."""

    CREATED = {
        StepKind.CREATE_BOND: "bond",
        StepKind.ATTACH_SLAVE: "802-3-ethernet",
        StepKind.CREATE_BRIDGE: "bridge",
        StepKind.CREATE_VLAN: "vlan",
        StepKind.CREATE_RESCUE: "vlan",
        StepKind.IMPORT_CONNECTION: "bond",
    }

    def __init__(self, connections: list[Connection] | None = None, fail_on: set[str] | None = None) -> None:
        self.connections = {c.name: c for c in connections or []}
        self.fail_on = fail_on or set()
        self.applied: list[OperationStep] = []

    def list_connections(self) -> list[Connection]:
        return list(self.connections.values())

    def interface_state(self) -> str:
        return "lo UNKNOWN 127.0.0.1/8"

    def apply(self, step: OperationStep) -> CmdResult:
        self.applied.append(step)
        if step.target in self.fail_on:
            return CmdResult(4, "", f"failed to apply {step.target}")
        if step.kind == StepKind.DELETE_CONNECTION:
            self.connections.pop(step.target, None)
        elif step.kind in self.CREATED:
            self.connections[step.target] = Connection(step.target, self.CREATED[step.kind])
        return CmdResult(0, "", "")


class FakePinger:
    def __init__(self, results: list[bool] | bool, clock: "FakeClock | None" = None, cost: float = 0.0) -> None:
        self.results = results
        self.clock = clock
        self.cost = cost
        self.calls: list[tuple[str, float]] = []

    def __call__(self, target: str, timeout: float) -> CmdResult:
        self.calls.append((target, timeout))
        if self.clock is not None:
            self.clock.advance(self.cost)
        if isinstance(self.results, bool):
            ok = self.results
        else:
            ok = self.results[len(self.calls) - 1]
        return CmdResult(0 if ok else 1, "", "" if ok else "100% packet loss")


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class StepClock:
    """Deterministic datetime source for snapshots and records."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


def make_topology(storage_tagged: bool = False, mgmt_tagged: bool = True, public: bool = False) -> Topology:
    planes = [
        NetworkPlane(
            name=PlaneName.STORAGE,
            bond="bond0",
            slaves=("eth0", "eth1"),
            bridge="cloudbr0",
            mode=PortMode.TAGGED if storage_tagged else PortMode.UNTAGGED,
            vlan=40 if storage_tagged else None,
            mtu=9000,
            ip_cidr="10.1.40.11/24",
        ),
        NetworkPlane(
            name=PlaneName.MANAGEMENT,
            bond="bond1",
            slaves=("eth2", "eth3"),
            bridge="cloudbr1",
            mode=PortMode.TAGGED if mgmt_tagged else PortMode.UNTAGGED,
            vlan=41 if mgmt_tagged else None,
            mtu=1500,
            ip_cidr="10.1.41.11/24",
            gateway="10.1.41.1",
            dns=("8.8.8.8",),
        ),
    ]
    if public:
        planes.append(
            NetworkPlane(
                name=PlaneName.PUBLIC,
                bond="bond1",
                slaves=("eth2", "eth3"),
                bridge="cloudbr100",
                mode=PortMode.TAGGED,
                vlan=100,
                mtu=1500,
            )
        )
    return Topology(planes=tuple(planes), hostname="kvm01")


@pytest.fixture
def topology() -> Topology:
    return make_topology()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
