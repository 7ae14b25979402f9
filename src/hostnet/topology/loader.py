from __future__ import annotations

import shlex
from pathlib import Path
from typing import Any

import yaml

from hostnet.core.errors import InvalidTopology
from hostnet.utils.yaml import load_yaml

from .schema import MTU_JUMBO, MTU_STD, NetworkPlane, PlaneName, PortMode, Topology
from .validation import validate_topology

MANUAL_PLACEHOLDER = "MANUAL"

PLANE_DEFAULTS: dict[PlaneName, dict[str, Any]] = {
    PlaneName.STORAGE: {"bond": "bond0", "bridge": "cloudbr0", "mtu": MTU_JUMBO},
    PlaneName.MANAGEMENT: {"bond": "bond1", "bridge": "cloudbr1", "mtu": MTU_STD},
    PlaneName.PUBLIC: {"bond": "bond1", "bridge": "cloudbr100", "mtu": MTU_STD},
}


def _required(data: dict, key: str, where: str):
    if key not in data or data[key] in (None, ""):
        raise InvalidTopology(f"Missing required key: {where}.{key}")
    return data[key]


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if MANUAL_PLACEHOLDER in text:
        raise InvalidTopology(f"Value {text!r} still needs manual input")
    return text


def _as_list(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        items = value.replace(",", " ").split()
    else:
        items = [str(x) for x in value]
    out: list[str] = []
    for item in items:
        text = _text(item)
        if text:
            out.append(text)
    return tuple(out)


def _mode(value: Any, where: str) -> PortMode:
    try:
        return PortMode(str(value).lower())
    except ValueError:
        raise InvalidTopology(f"{where}.mode must be tagged or untagged, got {value!r}") from None


def _int(value: Any, where: str) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidTopology(f"{where} must be an integer, got {value!r}") from None


def plane_from_dict(name: PlaneName, data: dict[str, Any]) -> NetworkPlane:
    where = f"planes.{name.value}"
    defaults = PLANE_DEFAULTS[name]
    vlan = _int(data.get("vlan"), f"{where}.vlan")
    mtu = _int(data.get("mtu"), f"{where}.mtu")
    mode = _mode(data.get("mode", "tagged" if vlan is not None else "untagged"), where)
    return NetworkPlane(
        name=name,
        bond=str(data.get("bond", defaults["bond"])),
        slaves=_as_list(_required(data, "slaves", where)),
        bridge=str(data.get("bridge", defaults["bridge"])),
        mode=mode,
        vlan=vlan,
        mtu=mtu if mtu is not None else defaults["mtu"],
        ip_cidr=_text(data.get("ip")),
        gateway=_text(data.get("gateway")),
        dns=_as_list(data.get("dns")),
    )


def topology_from_dict(data: dict[str, Any], source: str | None = None) -> Topology:
    planes_data = _required(data, "planes", "topology")
    if not isinstance(planes_data, dict):
        raise InvalidTopology("planes must be a mapping of plane name to settings")

    planes = []
    for key, value in planes_data.items():
        try:
            name = PlaneName(str(key))
        except ValueError:
            raise InvalidTopology(f"Unknown plane {key!r}; expected storage, management or public") from None
        if value is not None and not isinstance(value, dict):
            raise InvalidTopology(f"planes.{name.value} must be a mapping, got {type(value).__name__}")
        planes.append(plane_from_dict(name, dict(value or {})))

    hostname = data.get("hostname")
    return Topology(planes=tuple(planes), hostname=str(hostname) if hostname else None, source=source)


def parse_server_conf(text: str) -> dict[str, str]:
    values: dict[str, str] = {}
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, rest = line.partition("=")
        try:
            parts = shlex.split(rest, comments=True)
        except ValueError as exc:
            raise InvalidTopology(f"Cannot parse line {raw!r}: {exc}") from exc
        values[key.strip()] = " ".join(parts)
    return values


def topology_from_server_conf(values: dict[str, str], source: str | None = None) -> Topology:
    """Map the flat variables written by the discovery script onto planes."""
    strg_mode = values.get("STRG_MODE") or "untagged"
    mgmt_mode = values.get("MGMT_MODE") or "tagged"
    mtu_std = values.get("MTU_STD") or MTU_STD
    mtu_jumbo = values.get("MTU_JUMBO") or MTU_JUMBO
    dns = values.get("DNS")

    planes: dict[str, Any] = {
        "storage": {
            "slaves": values.get("MY_BOND0_SLAVES"),
            "mode": strg_mode,
            "vlan": values.get("VLAN_STORAGE") if strg_mode == "tagged" else None,
            "mtu": mtu_jumbo,
            "ip": values.get("MY_STRG_IP"),
        },
        "management": {
            "slaves": values.get("MY_BOND1_SLAVES"),
            "mode": mgmt_mode,
            "vlan": values.get("VLAN_MGMT") if mgmt_mode == "tagged" else None,
            "mtu": mtu_std,
            "ip": values.get("MY_MGMT_IP"),
            "gateway": values.get("GATEWAY"),
            "dns": dns,
        },
    }
    if mgmt_mode == "tagged" and values.get("VLAN_PUBLIC"):
        planes["public"] = {
            "slaves": values.get("MY_BOND1_SLAVES"),
            "mode": "tagged",
            "vlan": values["VLAN_PUBLIC"],
            "mtu": mtu_std,
        }
    return topology_from_dict({"hostname": values.get("MY_HOSTNAME"), "planes": planes}, source=source)


def load_topology(path: Path) -> Topology:
    if not path.exists():
        raise InvalidTopology(f"Topology file not found: {path}")
    if path.suffix == ".conf":
        topology = topology_from_server_conf(parse_server_conf(path.read_text(encoding="utf-8")), source=str(path))
    else:
        try:
            data = load_yaml(path)
        except (ValueError, yaml.YAMLError) as exc:
            raise InvalidTopology(f"Cannot read topology {path}: {exc}") from exc
        topology = topology_from_dict(data, source=str(path))
    validate_topology(topology)
    return topology
