from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from hostnet.topology.schema import PlaneName
from hostnet.utils.hashing import sha256_json


class StepKind(str, Enum):
    DELETE_CONNECTION = "delete-connection"
    CREATE_BOND = "create-bond"
    ATTACH_SLAVE = "attach-slave"
    CREATE_BRIDGE = "create-bridge"
    CREATE_VLAN = "create-vlan"
    ATTACH_BRIDGE = "attach-bridge"
    DETACH_BRIDGE = "detach-bridge"
    CREATE_RESCUE = "create-rescue"
    IMPORT_CONNECTION = "import-connection"
    ACTIVATE = "activate"
    DEACTIVATE = "deactivate"


class PlanKind(str, Enum):
    DEPLOY = "deploy"
    RESCUE = "rescue"
    RESTORE = "restore"
    REVERSE = "reverse"


@dataclass(frozen=True, slots=True)
class OperationStep:
    kind: StepKind
    target: str
    params: dict[str, Any] = field(default_factory=dict, compare=True, hash=False)
    plane: PlaneName | None = None
    best_effort: bool = False
    reverse: OperationStep | None = field(default=None, compare=False)

    @property
    def irreversible(self) -> bool:
        return self.reverse is None

    def describe(self) -> str:
        where = f" [{self.plane.value}]" if self.plane else ""
        return f"{self.kind.value} {self.target}{where}"

    def to_dict(self) -> dict[str, Any]:
        params = {k: v for k, v in self.params.items() if not isinstance(v, bytes)}
        return {
            "kind": self.kind.value,
            "target": self.target,
            "plane": self.plane.value if self.plane else None,
            "params": params,
            "best_effort": self.best_effort,
            "reverse": self.reverse.describe() if self.reverse else None,
        }


def delete(name: str, plane: PlaneName | None = None, best_effort: bool = True) -> OperationStep:
    return OperationStep(StepKind.DELETE_CONNECTION, name, plane=plane, best_effort=best_effort)


def creates(kind: StepKind, name: str, params: dict[str, Any], plane: PlaneName | None) -> OperationStep:
    return OperationStep(kind, name, params, plane=plane, reverse=delete(name, plane, best_effort=False))


def activate(name: str, plane: PlaneName | None = None, best_effort: bool = False) -> OperationStep:
    return OperationStep(
        StepKind.ACTIVATE,
        name,
        plane=plane,
        best_effort=best_effort,
        reverse=OperationStep(StepKind.DEACTIVATE, name, plane=plane, best_effort=True),
    )


@dataclass(frozen=True, slots=True)
class Plan:
    kind: PlanKind
    cleanup: tuple[OperationStep, ...] = ()
    build: tuple[OperationStep, ...] = ()
    activation: tuple[OperationStep, ...] = ()

    @property
    def steps(self) -> tuple[OperationStep, ...]:
        return self.cleanup + self.build + self.activation

    def __len__(self) -> int:
        return len(self.steps)

    def planes(self) -> set[PlaneName]:
        return {s.plane for s in self.steps if s.plane is not None}

    def fingerprint(self) -> str:
        return sha256_json([s.to_dict() for s in self.steps])

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "fingerprint": self.fingerprint(),
            "cleanup": [s.to_dict() for s in self.cleanup],
            "build": [s.to_dict() for s in self.build],
            "activation": [s.to_dict() for s in self.activation],
        }
