from hostnet.core.model import CheckResult, Severity, ValidationContext
from hostnet.evidence.host_net import disk_usage_percent, load_average, memory_usage_percent, service_active
from hostnet.validators.base import make_result, skip_result, warn_result


def _threshold(phase: str, name: str, value: float, warn: float, crit: float, message: str) -> CheckResult:
    if value > crit:
        return make_result(phase, name, False, message, severity=Severity.CRIT)
    if value > warn:
        return warn_result(phase, name, message)
    return make_result(phase, name, True, message)


def validate_services(ctx: ValidationContext) -> list[CheckResult]:
    out: list[CheckResult] = []
    nm = service_active(ctx.host, "NetworkManager")
    out.append(make_result("services", "NetworkManager", nm, "Running" if nm else "Not running", severity=Severity.CRIT))
    if service_active(ctx.host, "libvirtd"):
        out.append(make_result("services", "libvirtd", True, "Running"))
    else:
        out.append(warn_result("services", "libvirtd", "Not running"))
    return out


def validate_resources(ctx: ValidationContext) -> list[CheckResult]:
    out: list[CheckResult] = []
    disk = disk_usage_percent("/")
    out.append(_threshold("resources", "Disk usage", disk, 80, 90, f"{disk}%"))

    mem = memory_usage_percent(ctx.host)
    if mem is None:
        out.append(skip_result("resources", "Memory usage", "/proc/meminfo unavailable"))
    else:
        out.append(_threshold("resources", "Memory usage", mem, 85, 95, f"{mem}%"))

    load = load_average(ctx.host)
    cores = load["cores"]
    out.append(_threshold("resources", "Load average", load["load"], cores, cores * 2, f"{load['load']} (cores: {cores})"))
    return out
