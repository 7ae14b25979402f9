from hostnet.core.model import CheckResult, Severity, ValidationContext
from hostnet.evidence.host_net import bridge_ports, ipv4_addresses, link_show
from hostnet.validators.base import OPTIONAL_BRIDGES, addressed_bridges, expected_bridges, make_result, warn_result


def validate(ctx: ValidationContext) -> list[CheckResult]:
    out: list[CheckResult] = []
    for bridge in expected_bridges(ctx):
        link = link_show(ctx.host, bridge)
        if not link["exists"]:
            if ctx.topology is None and bridge in OPTIONAL_BRIDGES:
                out.append(warn_result("bridges", f"{bridge} not found", "Optional bridge (tagged mode only)"))
            else:
                out.append(make_result("bridges", f"{bridge} exists", False, "Bridge not found", link))
            continue
        ok = link["state"] == "UP"
        message = f"State: {link['state']}"
        if ok:
            message += f", Attached interfaces: {len(bridge_ports(ctx.host, bridge))}"
        out.append(make_result("bridges", f"{bridge} status", ok, message, link, severity=Severity.CRIT))

    for bridge in addressed_bridges(ctx):
        if not link_show(ctx.host, bridge)["exists"]:
            continue
        addresses = ipv4_addresses(ctx.host, bridge)
        message = ", ".join(addresses) if addresses else "No IP assigned"
        out.append(make_result("addressing", f"{bridge} IP", bool(addresses), message, severity=Severity.CRIT))
    return out
