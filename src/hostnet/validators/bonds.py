from hostnet.core.model import CheckResult, ValidationContext
from hostnet.evidence.host_net import bond_status
from hostnet.validators.base import expected_bonds, make_result, warn_result


def validate(ctx: ValidationContext) -> list[CheckResult]:
    out: list[CheckResult] = []
    for bond in expected_bonds(ctx):
        data = bond_status(ctx.host, bond)
        if not data["exists"]:
            out.append(make_result("bonds", f"{bond} exists", False, "Bond not found", data))
            continue
        up, total = data["slaves_up"], data["slaves_total"]
        detail = f"Mode: {data['mode']}, Slaves: {up}/{total} UP"
        if total > 0 and up == total:
            out.append(make_result("bonds", f"{bond} status", True, detail, data))
        elif up > 0:
            out.append(warn_result("bonds", f"{bond} degraded", detail, data))
        else:
            out.append(make_result("bonds", f"{bond} status", False, "No slaves UP", data))

        if total >= 2:
            out.append(make_result("bonds", f"{bond} redundancy", True, f"{total} slaves configured (failover capable)"))
        else:
            out.append(warn_result("bonds", f"{bond} redundancy", f"Only {total} slave (no failover)"))
    return out
