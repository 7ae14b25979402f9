"""Turn a target topology and the connections present on the host into ordered plans.

Every compiler here is pure: it reads its arguments and returns a new ``Plan``.
Build steps are ordered so a bond exists before its slaves attach and a bridge
exists before anything names it as master.
"""

from __future__ import annotations

import configparser
from typing import Iterable

from hostnet.adapters.base import Connection
from hostnet.core.errors import CompileError
from hostnet.execution.record import ExecutionRecord, StepOutcome
from hostnet.topology.names import RESCUE_CONNECTION, RESERVED, ReservedNames, slave_connection, vlan_connection, vlan_device
from hostnet.topology.schema import NetworkPlane, PlaneName, Topology
from hostnet.topology.validation import validate_topology

from .steps import OperationStep, Plan, PlanKind, StepKind, activate, creates, delete

BOND_OPTIONS = "mode=802.3ad,miimon=100,lacp_rate=fast"


def _ipv4(plane: NetworkPlane) -> dict[str, object]:
    if not plane.has_address:
        return {"ipv4_method": "disabled"}
    return {
        "ipv4_method": "manual",
        "address": plane.ip_cidr,
        "gateway": plane.gateway,
        "dns": list(plane.dns),
    }


def cleanup_steps(
    current_state: Iterable[Connection],
    reused_names: Iterable[str] = (),
    reserved: ReservedNames = RESERVED,
) -> tuple[OperationStep, ...]:
    reused = set(reused_names)
    names = {c.name for c in current_state if reserved.matches(c.name) or c.name in reused}
    return tuple(delete(name) for name in sorted(names))


def plane_build_steps(plane: NetworkPlane, create_bond: bool = True) -> list[OperationStep]:
    if plane.tagged and plane.vlan is None:
        raise CompileError(f"{plane.name.value}: tagged plane has no VLAN id")
    steps: list[OperationStep] = []
    if create_bond:
        steps.append(
            creates(StepKind.CREATE_BOND, plane.bond, {"ifname": plane.bond, "options": BOND_OPTIONS, "mtu": plane.mtu}, plane.name)
        )
        for iface in plane.slaves:
            steps.append(
                creates(
                    StepKind.ATTACH_SLAVE,
                    slave_connection(plane.bond, iface),
                    {"ifname": iface, "master": plane.bond, "mtu": plane.mtu},
                    plane.name,
                )
            )

    bridge_params: dict[str, object] = {"ifname": plane.bridge, "mtu": plane.mtu, "stp": False}
    bridge_params.update(_ipv4(plane))
    steps.append(creates(StepKind.CREATE_BRIDGE, plane.bridge, bridge_params, plane.name))

    if plane.tagged and plane.vlan is not None:
        steps.append(
            creates(
                StepKind.CREATE_VLAN,
                vlan_connection(plane.bond, plane.vlan),
                {
                    "ifname": vlan_device(plane.bond, plane.vlan),
                    "parent": plane.bond,
                    "vlan": plane.vlan,
                    "master": plane.bridge,
                    "mtu": plane.mtu,
                },
                plane.name,
            )
        )
    else:
        detach = OperationStep(StepKind.DETACH_BRIDGE, plane.bond, {"master": plane.bridge}, plane=plane.name)
        steps.append(
            OperationStep(StepKind.ATTACH_BRIDGE, plane.bond, {"master": plane.bridge}, plane=plane.name, reverse=detach)
        )
    return steps


def activation_steps(topology: Topology) -> tuple[OperationStep, ...]:
    seen_bonds: set[str] = set()
    slaves: list[OperationStep] = []
    masters: list[OperationStep] = []
    for plane in topology.ordered():
        if plane.bond not in seen_bonds:
            seen_bonds.add(plane.bond)
            slaves.extend(activate(slave_connection(plane.bond, s), plane.name, best_effort=True) for s in plane.slaves)
            masters.append(activate(plane.bond, plane.name))
        masters.append(activate(plane.bridge, plane.name))
    return tuple(slaves + masters)


def compile_plan(topology: Topology, current_state: Iterable[Connection]) -> Plan:
    validate_topology(topology)

    build: list[OperationStep] = []
    seen_bonds: set[str] = set()
    for plane in topology.ordered():
        build.extend(plane_build_steps(plane, create_bond=plane.bond not in seen_bonds))
        seen_bonds.add(plane.bond)

    names = [s.target for s in build if s.kind != StepKind.ATTACH_BRIDGE]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise CompileError(f"plan would create duplicate connections: {duplicates}")

    return Plan(
        kind=PlanKind.DEPLOY,
        cleanup=cleanup_steps(current_state, [*topology.slaves, *names]),
        build=tuple(build),
        activation=activation_steps(topology),
    )


def compile_rescue_plan(topology: Topology) -> Plan:
    """Minimal management-only plan that bypasses the bridge/VLAN chain."""
    mgmt = topology.get(PlaneName.MANAGEMENT)
    if mgmt is None:
        raise CompileError("rescue requires a management plane")
    if mgmt.tagged and mgmt.vlan is None:
        raise CompileError("rescue requires a VLAN id on the tagged management plane")
    plane = PlaneName.MANAGEMENT

    cleanup = [delete(mgmt.bridge, plane)]
    build: list[OperationStep] = []
    if mgmt.tagged and mgmt.vlan is not None:
        cleanup.append(delete(vlan_connection(mgmt.bond, mgmt.vlan), plane))
        ifname = vlan_device(mgmt.bond, mgmt.vlan)
    else:
        build.append(OperationStep(StepKind.DETACH_BRIDGE, mgmt.bond, {"master": mgmt.bridge}, plane=plane, best_effort=True))
        ifname = mgmt.bond
    cleanup.append(delete(RESCUE_CONNECTION, plane))

    gateway_plane = topology.gateway_plane
    params: dict[str, object] = {
        "ifname": ifname,
        "parent": mgmt.bond,
        "vlan": mgmt.vlan if mgmt.tagged else None,
        "mtu": mgmt.mtu,
        "ipv4_method": "manual",
        "address": mgmt.ip_cidr,
        "gateway": mgmt.gateway or (gateway_plane.gateway if gateway_plane else None),
        "dns": list(mgmt.dns),
    }
    if not params["address"]:
        raise CompileError("rescue requires a management address")
    build.append(creates(StepKind.CREATE_RESCUE, RESCUE_CONNECTION, params, plane))

    return Plan(
        kind=PlanKind.RESCUE,
        cleanup=tuple(cleanup),
        build=tuple(build),
        activation=(activate(RESCUE_CONNECTION, plane),),
    )


def connection_id(filename: str, content: bytes) -> str:
    """Read the profile name from a keyfile, falling back to the file stem."""
    parser = configparser.ConfigParser(interpolation=None, strict=False)
    try:
        parser.read_string(content.decode("utf-8", errors="replace"))
    except configparser.Error:
        parser = None
    if parser is not None and parser.has_option("connection", "id"):
        return parser.get("connection", "id")
    stem = filename.rsplit("/", 1)[-1]
    return stem[: -len(".nmconnection")] if stem.endswith(".nmconnection") else stem


def compile_restore_plan(
    connection_files: dict[str, bytes],
    current_state: Iterable[Connection],
    reserved: ReservedNames = RESERVED,
) -> Plan:
    """Delete every reserved connection, then re-import the archived definitions."""
    imports: list[OperationStep] = []
    names: list[str] = []
    for filename in sorted(connection_files):
        name = connection_id(filename, connection_files[filename])
        names.append(name)
        imports.append(
            OperationStep(
                StepKind.IMPORT_CONNECTION,
                name,
                {"filename": filename.rsplit("/", 1)[-1], "content": connection_files[filename]},
            )
        )

    state = list(current_state)
    restored = set(names)
    doomed = {c.name for c in state if reserved.matches(c.name) or c.name in restored}
    return Plan(
        kind=PlanKind.RESTORE,
        cleanup=tuple(delete(name) for name in sorted(doomed)),
        build=tuple(imports),
        activation=tuple(activate(name, best_effort=True) for name in names),
    )


def compile_reverse_plan(record: ExecutionRecord) -> tuple[Plan, list[OperationStep]]:
    """Undo what a partial run completed; returns the plan and the steps it cannot undo."""
    undo: list[OperationStep] = []
    irreversible: list[OperationStep] = []
    for entry in reversed(record.entries):
        if entry.outcome != StepOutcome.SUCCEEDED:
            continue
        if entry.step.reverse is None:
            irreversible.append(entry.step)
        else:
            undo.append(entry.step.reverse)
    return Plan(kind=PlanKind.REVERSE, build=tuple(undo)), irreversible
