"""Connection naming and the registry of names that cleanup is allowed to remove."""

from __future__ import annotations

from dataclasses import dataclass

RESCUE_CONNECTION = "rescue-mgmt"


def slave_connection(bond: str, iface: str) -> str:
    return f"{bond}-slave-{iface}"


def vlan_device(bond: str, vlan: int) -> str:
    return f"{bond}.{vlan}"


def vlan_connection(bond: str, vlan: int) -> str:
    return f"{vlan_device(bond, vlan)}-bridge"


@dataclass(frozen=True, slots=True)
class ReservedNames:
    prefixes: tuple[str, ...] = ("bond", "cloudbr")
    substrings: tuple[str, ...] = ("vlan",)
    exact: tuple[str, ...] = (RESCUE_CONNECTION,)

    def matches(self, name: str) -> bool:
        if name in self.exact:
            return True
        if any(name.startswith(p) for p in self.prefixes):
            return True
        return any(s in name for s in self.substrings)


RESERVED = ReservedNames()
