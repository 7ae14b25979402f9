from hostnet.core.model import CheckResult, ValidationContext
from hostnet.evidence.host_net import link_show
from hostnet.topology.names import vlan_device
from hostnet.validators.base import make_result, planes, skip_result


def validate(ctx: ValidationContext) -> list[CheckResult]:
    out: list[CheckResult] = []
    for plane in planes(ctx):
        label = plane.name.value.capitalize()
        if not plane.tagged or plane.vlan is None:
            out.append(skip_result("vlans", f"{label} VLAN", "Untagged mode (no VLAN interface)"))
            continue
        device = vlan_device(plane.bond, plane.vlan)
        exists = link_show(ctx.host, device)["exists"]
        out.append(make_result("vlans", f"{label} VLAN ({device})", exists, "Exists" if exists else "Not found"))
    return out
