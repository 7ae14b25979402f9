from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

from hostnet.adapters.base import Connection
from hostnet.plan.compiler import compile_plan
from hostnet.plan.steps import StepKind
from hostnet.topology.names import RESERVED, ReservedNames
from hostnet.topology.schema import Topology

from .diff import diff_state

# nmcli connection types for each create step.
CONNECTION_TYPES: dict[StepKind, str] = {
    StepKind.CREATE_BOND: "bond",
    StepKind.ATTACH_SLAVE: "802-3-ethernet",
    StepKind.CREATE_BRIDGE: "bridge",
    StepKind.CREATE_VLAN: "vlan",
}


@dataclass(slots=True)
class ComparisonReport:
    expected: dict[str, str]
    present: dict[str, str]
    diffs: list[dict[str, Any]] = field(default_factory=list)

    @property
    def missing(self) -> list[str]:
        return [d["path"] for d in self.diffs if d["type"] == "missing"]

    @property
    def unexpected(self) -> list[str]:
        return [d["path"] for d in self.diffs if d["type"] == "unexpected"]

    @property
    def changed(self) -> list[dict[str, Any]]:
        return [d for d in self.diffs if d["type"] == "changed"]

    @property
    def in_sync(self) -> bool:
        return not self.diffs

    @property
    def exit_code(self) -> int:
        return 0 if self.in_sync else 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "in_sync": self.in_sync,
            "expected": self.expected,
            "present": self.present,
            "missing": self.missing,
            "unexpected": self.unexpected,
            "changed": self.changed,
        }


def expected_connections(topology: Topology) -> dict[str, str]:
    plan = compile_plan(topology, [])
    return {s.target: CONNECTION_TYPES[s.kind] for s in plan.build if s.kind in CONNECTION_TYPES}


def compare(topology: Topology, current_state: Iterable[Connection], reserved: ReservedNames = RESERVED) -> ComparisonReport:
    """Diff the connections a deployment would create against what the host has now."""
    expected = expected_connections(topology)
    slaves = set(topology.slaves)
    present = {
        c.name: c.type
        for c in current_state
        if c.name in expected or reserved.matches(c.name) or c.name in slaves
    }
    return ComparisonReport(expected=expected, present=present, diffs=diff_state(expected, present))
