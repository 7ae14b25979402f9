from __future__ import annotations

from hostnet.core.model import CheckResult, CheckStatus, Severity, ValidationContext
from hostnet.topology.schema import MTU_JUMBO, MTU_STD, NetworkPlane

DEFAULT_BONDS = {"bond0": MTU_JUMBO, "bond1": MTU_STD}
DEFAULT_BRIDGES = {"cloudbr0": MTU_JUMBO, "cloudbr1": MTU_STD, "cloudbr100": MTU_STD}
OPTIONAL_BRIDGES = {"cloudbr100"}


def make_result(
    phase: str,
    name: str,
    ok: bool,
    message: str,
    evidence: dict | None = None,
    severity: Severity = Severity.ERROR,
) -> CheckResult:
    return CheckResult(
        phase=phase,
        name=name,
        status=CheckStatus.PASS if ok else CheckStatus.FAIL,
        severity=Severity.INFO if ok else severity,
        message=message,
        evidence=evidence or {},
    )


def warn_result(phase: str, name: str, message: str, evidence: dict | None = None) -> CheckResult:
    return CheckResult(phase, name, CheckStatus.WARN, Severity.WARN, message, evidence or {})


def skip_result(phase: str, name: str, message: str) -> CheckResult:
    return CheckResult(phase, name, CheckStatus.SKIP, Severity.INFO, message)


def planes(ctx: ValidationContext) -> list[NetworkPlane]:
    return ctx.topology.ordered() if ctx.topology is not None else []


def expected_bonds(ctx: ValidationContext) -> dict[str, int]:
    if ctx.topology is None:
        return dict(DEFAULT_BONDS)
    out: dict[str, int] = {}
    for plane in planes(ctx):
        out.setdefault(plane.bond, plane.mtu)
    return out


def expected_bridges(ctx: ValidationContext) -> dict[str, int]:
    if ctx.topology is None:
        return dict(DEFAULT_BRIDGES)
    return {plane.bridge: plane.mtu for plane in planes(ctx)}


def addressed_bridges(ctx: ValidationContext) -> list[str]:
    if ctx.topology is None:
        return ["cloudbr0", "cloudbr1"]
    return [p.bridge for p in planes(ctx) if p.ip_cidr]
