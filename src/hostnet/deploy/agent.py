from __future__ import annotations

import logging
import re
import shutil
from pathlib import Path

from hostnet.adapters.host import LocalHost
from hostnet.topology.schema import PlaneName, Topology

logger = logging.getLogger(__name__)


def agent_properties_for(topology: Topology) -> dict[str, str]:
    mgmt = topology.get(PlaneName.MANAGEMENT)
    if mgmt is None:
        return {}
    public = topology.get(PlaneName.PUBLIC)
    return {
        "private.network.device": mgmt.bridge,
        "public.network.device": public.bridge if public is not None else mgmt.bridge,
        "guest.network.device": mgmt.bond,
        "network.bridge.type": "native",
    }


def set_property(text: str, key: str, value: str) -> str:
    """Replace ``key=``, uncomment ``#key=``, or append, in that order of preference."""
    line = f"{key}={value}"
    active = re.compile(rf"^{re.escape(key)}=.*$", re.MULTILINE)
    if active.search(text):
        return active.sub(lambda _m: line, text)
    commented = re.compile(rf"^#{re.escape(key)}=.*$", re.MULTILINE)
    if commented.search(text):
        return commented.sub(lambda _m: line, text, count=1)
    if text and not text.endswith("\n"):
        text += "\n"
    return text + line + "\n"


def update_agent_properties(path: Path, topology: Topology) -> bool:
    """Point the hypervisor agent at the new bridges. The previous file is kept as ``.bak``."""
    if not path.exists():
        logger.warning("Agent properties file %s not found, skipping", path)
        return False
    values = agent_properties_for(topology)
    if not values:
        logger.warning("No management plane, agent properties left unchanged")
        return False
    try:
        shutil.copy2(path, path.with_name(path.name + ".bak"))
        text = path.read_text(encoding="utf-8")
        for key, value in values.items():
            text = set_property(text, key, value)
        path.write_text(text, encoding="utf-8")
    except OSError as exc:
        logger.warning("Could not update agent properties %s: %s", path, exc)
        return False
    logger.info("Agent properties updated: %s", ", ".join(f"{k}={v}" for k, v in values.items()))
    return True


def restart_agent(host: LocalHost, service: str) -> bool:
    r = host.run(["systemctl", "restart", service])
    if not r.ok:
        logger.warning("%s restart failed or not installed: %s", service, r.stderr or r.rc)
    return r.ok
