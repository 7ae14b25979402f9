from __future__ import annotations

import os
import re
import shutil

from hostnet.adapters.host import LocalHost


def bond_status(host: LocalHost, bond: str) -> dict:
    raw = host.read_text(f"/proc/net/bonding/{bond}")
    if raw is None:
        return {"exists": False, "mode": None, "slaves": {}, "slaves_up": 0, "slaves_total": 0}

    mode = None
    slaves: dict[str, str] = {}
    current = None
    for line in raw.splitlines():
        key, _, value = line.partition(":")
        key, value = key.strip(), value.strip()
        if key == "Bonding Mode":
            mode = value
        elif key == "Slave Interface":
            current = value
            slaves[current] = "unknown"
        elif key == "MII Status" and current is not None:
            slaves[current] = value
    up = sum(1 for status in slaves.values() if status == "up")
    return {"exists": True, "mode": mode, "slaves": slaves, "slaves_up": up, "slaves_total": len(slaves)}


def link_show(host: LocalHost, iface: str) -> dict:
    r = host.run(["ip", "-o", "link", "show", "dev", iface])
    if not r.ok:
        return {"exists": False, "state": None, "mtu": None, "err": r.stderr}
    state = re.search(r"\bstate (\S+)", r.stdout)
    mtu = re.search(r"\bmtu (\d+)", r.stdout)
    return {
        "exists": True,
        "state": state.group(1) if state else "UNKNOWN",
        "mtu": int(mtu.group(1)) if mtu else None,
        "err": "",
    }


def ipv4_addresses(host: LocalHost, iface: str) -> list[str]:
    r = host.run(["ip", "-4", "-o", "addr", "show", "dev", iface])
    return re.findall(r"\binet (\S+)", r.stdout) if r.ok else []


def bridge_ports(host: LocalHost, bridge: str) -> list[str]:
    r = host.run(["bridge", "link", "show"])
    if not r.ok:
        return []
    ports = []
    for line in r.stdout.splitlines():
        if f"master {bridge} " in f"{line} ":
            match = re.match(r"^\d+:\s*([^:@\s]+)", line)
            if match:
                ports.append(match.group(1))
    return ports


def default_gateway(host: LocalHost) -> str | None:
    r = host.run(["ip", "route", "show", "default"])
    match = re.search(r"\bvia (\S+)", r.stdout) if r.ok else None
    return match.group(1) if match else None


def ping(host: LocalHost, target: str, count: int = 2, timeout: int = 2) -> dict:
    r = host.run(["ping", "-c", str(count), "-W", str(timeout), target])
    return {"rc": r.rc, "out": r.stdout, "err": r.stderr}


def service_active(host: LocalHost, service: str) -> bool:
    return host.run(["systemctl", "is-active", "--quiet", service]).ok


def disk_usage_percent(path: str = "/") -> int:
    usage = shutil.disk_usage(path)
    return round(usage.used * 100 / usage.total) if usage.total else 0


def memory_usage_percent(host: LocalHost) -> int | None:
    raw = host.read_text("/proc/meminfo")
    if raw is None:
        return None
    values = {}
    for line in raw.splitlines():
        key, _, rest = line.partition(":")
        parts = rest.split()
        if parts:
            values[key.strip()] = int(parts[0])
    total = values.get("MemTotal")
    available = values.get("MemAvailable", values.get("MemFree"))
    if not total or available is None:
        return None
    return round((total - available) * 100 / total)


def load_average(host: LocalHost) -> dict:
    raw = host.read_text("/proc/loadavg") or ""
    parts = raw.split()
    load = float(parts[0]) if parts else 0.0
    return {"load": load, "cores": os.cpu_count() or 1}
