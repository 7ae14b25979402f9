from __future__ import annotations

import logging
import os
import re
from pathlib import Path

from hostnet.adapters.base import CmdResult, Connection
from hostnet.adapters.host import LocalHost
from hostnet.core.registry import PrimitiveRegistry
from hostnet.plan.steps import OperationStep, StepKind

logger = logging.getLogger(__name__)

NMCLI = "nmcli"
# nmcli exit status for "connection, device, or access point does not exist".
NMCLI_NOT_FOUND = 10

CREATE_KINDS = {
    StepKind.CREATE_BOND,
    StepKind.ATTACH_SLAVE,
    StepKind.CREATE_BRIDGE,
    StepKind.CREATE_VLAN,
    StepKind.CREATE_RESCUE,
}
ABSENT_IS_SUCCESS = {StepKind.DELETE_CONNECTION, StepKind.DEACTIVATE}

PRIMITIVES = PrimitiveRegistry()


def _ipv4_args(params: dict) -> list[str]:
    if params.get("ipv4_method") != "manual":
        return ["ipv4.method", "disabled", "ipv6.method", "disabled"]
    args = ["ipv4.method", "manual", "ipv4.addresses", str(params["address"])]
    if params.get("gateway"):
        args += ["ipv4.gateway", str(params["gateway"])]
    if params.get("dns"):
        args += ["ipv4.dns", ",".join(params["dns"])]
    return args


def _add(kind: str, step: OperationStep, *extra: str) -> list[str]:
    return [NMCLI, "connection", "add", "type", kind, "ifname", str(step.params["ifname"]), "con-name", step.target, *extra]


@PRIMITIVES.register(StepKind.DELETE_CONNECTION)
def _delete(step: OperationStep) -> list[list[str]]:
    return [[NMCLI, "connection", "delete", step.target]]


@PRIMITIVES.register(StepKind.CREATE_BOND)
def _create_bond(step: OperationStep) -> list[list[str]]:
    p = step.params
    return [_add("bond", step, "bond.options", p["options"], "mtu", str(p["mtu"]), "connection.autoconnect", "yes")]


@PRIMITIVES.register(StepKind.ATTACH_SLAVE)
def _attach_slave(step: OperationStep) -> list[list[str]]:
    p = step.params
    return [_add("ethernet", step, "master", p["master"], "mtu", str(p["mtu"]), "connection.autoconnect", "yes")]


@PRIMITIVES.register(StepKind.CREATE_BRIDGE)
def _create_bridge(step: OperationStep) -> list[list[str]]:
    p = step.params
    stp = "yes" if p.get("stp") else "no"
    return [_add("bridge", step, "bridge.stp", stp, "mtu", str(p["mtu"]), "connection.autoconnect", "yes", *_ipv4_args(p))]


@PRIMITIVES.register(StepKind.CREATE_VLAN)
def _create_vlan(step: OperationStep) -> list[list[str]]:
    p = step.params
    return [
        _add(
            "vlan", step,
            "dev", p["parent"], "id", str(p["vlan"]),
            "master", p["master"], "slave-type", "bridge",
            "mtu", str(p["mtu"]), "connection.autoconnect", "yes",
        )
    ]


@PRIMITIVES.register(StepKind.ATTACH_BRIDGE)
def _attach_bridge(step: OperationStep) -> list[list[str]]:
    return [[NMCLI, "connection", "modify", step.target, "connection.master", step.params["master"], "connection.slave-type", "bridge"]]


@PRIMITIVES.register(StepKind.DETACH_BRIDGE)
def _detach_bridge(step: OperationStep) -> list[list[str]]:
    return [[NMCLI, "connection", "modify", step.target, "connection.master", "", "connection.slave-type", ""]]


@PRIMITIVES.register(StepKind.CREATE_RESCUE)
def _create_rescue(step: OperationStep) -> list[list[str]]:
    p = step.params
    tail = [*_ipv4_args(p), "mtu", str(p["mtu"])]
    if p.get("vlan"):
        return [_add("vlan", step, "dev", p["parent"], "id", str(p["vlan"]), *tail)]
    return [_add("ethernet", step, *tail)]


@PRIMITIVES.register(StepKind.IMPORT_CONNECTION)
def _import(step: OperationStep) -> list[list[str]]:
    return [[NMCLI, "connection", "load", str(step.params["path"])]]


@PRIMITIVES.register(StepKind.ACTIVATE)
def _activate(step: OperationStep) -> list[list[str]]:
    return [[NMCLI, "connection", "up", step.target]]


@PRIMITIVES.register(StepKind.DEACTIVATE)
def _deactivate(step: OperationStep) -> list[list[str]]:
    return [[NMCLI, "connection", "down", step.target]]


def _split_terse(line: str) -> list[str]:
    return [field.replace("\\:", ":") for field in re.split(r"(?<!\\):", line)]


def parse_connections(stdout: str) -> list[Connection]:
    out: list[Connection] = []
    for line in stdout.splitlines():
        if not line.strip():
            continue
        fields = _split_terse(line) + ["", ""]
        out.append(Connection(name=fields[0], type=fields[1], device=fields[2]))
    return out


class NmcliBackend:
    """Apply primitives backed by NetworkManager's command line client."""

    def __init__(self, host: LocalHost, connections_dir: Path, registry: PrimitiveRegistry = PRIMITIVES) -> None:
        self.host = host
        self.connections_dir = connections_dir
        self.registry = registry

    def list_connections(self) -> list[Connection]:
        r = self.host.run([NMCLI, "-t", "-f", "NAME,TYPE,DEVICE", "connection", "show"])
        if not r.ok:
            raise RuntimeError(f"nmcli connection show failed: {r.stderr or r.rc}")
        return parse_connections(r.stdout)

    def interface_state(self) -> str:
        r = self.host.run(["ip", "-br", "addr"])
        return r.stdout if r.ok else ""

    def _exists(self, name: str) -> bool:
        return any(c.name == name for c in self.list_connections())

    def _write_keyfile(self, step: OperationStep) -> OperationStep:
        path = self.connections_dir / str(step.params["filename"])
        self.connections_dir.mkdir(parents=True, exist_ok=True)
        path.write_bytes(step.params["content"])
        os.chmod(path, 0o600)
        return OperationStep(step.kind, step.target, {**step.params, "path": str(path)}, plane=step.plane)

    def apply(self, step: OperationStep) -> CmdResult:
        if step.kind in CREATE_KINDS and self._exists(step.target):
            logger.info("%s already exists, leaving it in place", step.target)
            return CmdResult(0, f"{step.target} already exists", "")
        if step.kind == StepKind.IMPORT_CONNECTION:
            try:
                step = self._write_keyfile(step)
            except OSError as exc:
                return CmdResult(1, "", f"cannot write keyfile: {exc}")

        result = CmdResult(0, "", "")
        for argv in self.registry.get(step.kind)(step):
            result = self.host.run(argv)
            if step.kind in ABSENT_IS_SUCCESS and result.rc == NMCLI_NOT_FOUND:
                logger.debug("%s not present, nothing to do", step.target)
                result = CmdResult(0, result.stdout, result.stderr)
            if not result.ok:
                break
        return result
