from __future__ import annotations

from typing import Callable

from hostnet.core.errors import HostnetError
from hostnet.plan.steps import OperationStep, StepKind

# One apply primitive renders a step into the argv lists that realise it.
PrimitiveFn = Callable[[OperationStep], list[list[str]]]


class PrimitiveRegistry:
    def __init__(self) -> None:
        self._primitives: dict[StepKind, PrimitiveFn] = {}

    def register(self, kind: StepKind) -> Callable[[PrimitiveFn], PrimitiveFn]:
        def decorator(fn: PrimitiveFn) -> PrimitiveFn:
            self._primitives[kind] = fn
            return fn

        return decorator

    def get(self, kind: StepKind) -> PrimitiveFn:
        try:
            return self._primitives[kind]
        except KeyError:
            raise HostnetError(f"No apply primitive registered for {kind.value}") from None

    def kinds(self) -> set[StepKind]:
        return set(self._primitives)
