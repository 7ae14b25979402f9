from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class PlaneName(str, Enum):
    STORAGE = "storage"
    MANAGEMENT = "management"
    PUBLIC = "public"


# Build order is fixed regardless of how the planes were declared.
PLANE_ORDER: tuple[PlaneName, ...] = (PlaneName.STORAGE, PlaneName.MANAGEMENT, PlaneName.PUBLIC)


class PortMode(str, Enum):
    TAGGED = "tagged"
    UNTAGGED = "untagged"


MTU_STD = 1500
MTU_JUMBO = 9000


@dataclass(frozen=True, slots=True)
class NetworkPlane:
    name: PlaneName
    bond: str
    slaves: tuple[str, ...]
    bridge: str
    mode: PortMode = PortMode.UNTAGGED
    vlan: int | None = None
    mtu: int = MTU_STD
    ip_cidr: str | None = None
    gateway: str | None = None
    dns: tuple[str, ...] = ()

    @property
    def tagged(self) -> bool:
        return self.mode == PortMode.TAGGED

    @property
    def has_address(self) -> bool:
        return bool(self.ip_cidr or self.gateway)


@dataclass(frozen=True, slots=True)
class Topology:
    planes: tuple[NetworkPlane, ...]
    hostname: str | None = None
    source: str | None = field(default=None, compare=False)

    def get(self, name: PlaneName) -> NetworkPlane | None:
        for plane in self.planes:
            if plane.name == name:
                return plane
        return None

    def ordered(self) -> list[NetworkPlane]:
        by_name = {p.name: p for p in self.planes}
        return [by_name[name] for name in PLANE_ORDER if name in by_name]

    @property
    def gateway_plane(self) -> NetworkPlane | None:
        owners = [p for p in self.planes if p.gateway]
        return owners[0] if len(owners) == 1 else None

    @property
    def slaves(self) -> list[str]:
        out: list[str] = []
        for plane in self.ordered():
            out.extend(s for s in plane.slaves if s not in out)
        return out
