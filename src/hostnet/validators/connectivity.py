from hostnet.core.model import CheckResult, Severity, ValidationContext
from hostnet.evidence.host_net import default_gateway, ping
from hostnet.validators.base import make_result, warn_result


def validate(ctx: ValidationContext) -> list[CheckResult]:
    out: list[CheckResult] = []
    gateway = default_gateway(ctx.host)
    if gateway is None:
        out.append(make_result("connectivity", "Default gateway", False, "No default gateway configured", severity=Severity.CRIT))
    else:
        ok = ping(ctx.host, gateway)["rc"] == 0
        message = gateway if ok else f"{gateway} unreachable"
        out.append(make_result("connectivity", "Gateway reachable", ok, message, severity=Severity.CRIT))

    if ping(ctx.host, ctx.dns)["rc"] == 0:
        out.append(make_result("connectivity", "DNS reachable", True, ctx.dns))
    else:
        out.append(warn_result("connectivity", "DNS unreachable", ctx.dns))
    return out
