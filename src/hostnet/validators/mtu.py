from hostnet.core.model import CheckResult, ValidationContext
from hostnet.evidence.host_net import link_show
from hostnet.topology.schema import MTU_JUMBO
from hostnet.validators.base import expected_bonds, expected_bridges, make_result, warn_result


def validate(ctx: ValidationContext) -> list[CheckResult]:
    out: list[CheckResult] = []
    expected = {**expected_bonds(ctx), **expected_bridges(ctx)}
    for iface, mtu in expected.items():
        link = link_show(ctx.host, iface)
        if not link["exists"]:
            continue
        if link["mtu"] == mtu:
            note = " (Jumbo frames enabled)" if mtu == MTU_JUMBO else ""
            out.append(make_result("mtu", f"{iface} MTU", True, f"{mtu}{note}"))
        else:
            out.append(warn_result("mtu", f"{iface} MTU", f"Expected {mtu}, got {link['mtu']}"))
    return out
