from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from hostnet.plan.steps import OperationStep


@dataclass(slots=True)
class CmdResult:
    rc: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.rc == 0


@dataclass(frozen=True, slots=True)
class Connection:
    name: str
    type: str = ""
    device: str = ""


class NetworkBackend(Protocol):
    def list_connections(self) -> list[Connection]:
        ...

    def apply(self, step: OperationStep) -> CmdResult:
        ...

    def interface_state(self) -> str:
        ...
