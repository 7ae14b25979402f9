from __future__ import annotations

import ipaddress

from hostnet.core.errors import CompileError, InvalidTopology

from .schema import NetworkPlane, PortMode, Topology


def _check_address(plane: NetworkPlane, label: str, value: str, interface: bool = False) -> None:
    try:
        if interface:
            ipaddress.ip_interface(value)
        else:
            ipaddress.ip_address(value)
    except ValueError:
        raise InvalidTopology(f"{plane.name.value}: invalid {label} {value!r}") from None


def validate_plane(plane: NetworkPlane) -> None:
    label = plane.name.value
    if plane.mode == PortMode.TAGGED and plane.vlan is None:
        raise InvalidTopology(f"{label}: mode is tagged but no VLAN id is set")
    if plane.mode == PortMode.UNTAGGED and plane.vlan is not None:
        raise InvalidTopology(f"{label}: VLAN {plane.vlan} is set but mode is untagged")
    if plane.vlan is not None and not 1 <= plane.vlan <= 4094:
        raise InvalidTopology(f"{label}: VLAN id {plane.vlan} out of range 1-4094")
    if not plane.slaves:
        raise InvalidTopology(f"{label}: at least one physical slave is required")
    if len(set(plane.slaves)) != len(plane.slaves):
        raise InvalidTopology(f"{label}: duplicate slave interfaces {list(plane.slaves)}")
    if plane.mtu <= 0:
        raise InvalidTopology(f"{label}: MTU must be positive, got {plane.mtu}")
    if not plane.bond or not plane.bridge:
        raise InvalidTopology(f"{label}: bond and bridge names are required")
    if plane.ip_cidr:
        _check_address(plane, "address", plane.ip_cidr, interface=True)
    if plane.gateway:
        _check_address(plane, "gateway", plane.gateway)
        if not plane.ip_cidr:
            raise InvalidTopology(f"{label}: gateway {plane.gateway} needs an address on the same plane")
    for server in plane.dns:
        _check_address(plane, "DNS server", server)


def check_names(topology: Topology) -> None:
    bridges: dict[str, NetworkPlane] = {}
    bonds: dict[str, NetworkPlane] = {}
    slave_owner: dict[str, str] = {}

    for plane in topology.ordered():
        if plane.bridge in bridges:
            raise CompileError(
                f"bridge {plane.bridge} declared by both {bridges[plane.bridge].name.value} and {plane.name.value}"
            )
        bridges[plane.bridge] = plane

        first = bonds.get(plane.bond)
        if first is not None:
            # Tagged planes may ride the same trunk bond; anything else is a name clash.
            if not (first.tagged and plane.tagged):
                raise CompileError(f"bond {plane.bond} shared by {first.name.value} and {plane.name.value} without VLAN tagging")
            if first.slaves != plane.slaves or first.mtu != plane.mtu:
                raise CompileError(f"bond {plane.bond} declared with different slaves or MTU by {first.name.value} and {plane.name.value}")
        else:
            bonds[plane.bond] = plane

        for slave in plane.slaves:
            owner = slave_owner.setdefault(slave, plane.bond)
            if owner != plane.bond:
                raise CompileError(f"interface {slave} enslaved to both {owner} and {plane.bond}")

    if set(bridges) & set(bonds):
        raise CompileError(f"names used as both bond and bridge: {sorted(set(bridges) & set(bonds))}")


def validate_topology(topology: Topology) -> None:
    if not topology.planes:
        raise InvalidTopology("topology declares no planes")
    names = [p.name for p in topology.planes]
    if len(set(names)) != len(names):
        raise InvalidTopology("each plane may be declared once")
    for plane in topology.planes:
        validate_plane(plane)

    owners = [p.name.value for p in topology.planes if p.gateway]
    if len(owners) != 1:
        raise InvalidTopology(f"exactly one plane must own the default gateway, found {owners or 'none'}")

    check_names(topology)
