from __future__ import annotations

from typing import Any


class HostnetError(Exception):
    """Base error for hostnet exceptions."""


class ConfigError(HostnetError):
    """Raised when a settings file is invalid."""


class InvalidTopology(HostnetError):
    """Raised when the target topology is malformed. Nothing has been applied."""


class CompileError(HostnetError):
    """Raised when a topology cannot be ordered into a plan (name reuse, sharing)."""


class StepError(HostnetError):
    def __init__(self, message: str, step: Any = None, record: Any = None) -> None:
        super().__init__(message)
        self.step = step
        self.record = record


class ApplyStepFailed(StepError):
    """Raised when a single nmcli operation failed and halted the plan."""


class RollbackFailed(StepError):
    """Raised when the rescue interface could not be brought up."""


class VerificationFailed(HostnetError):
    """Gateway unreachable after apply. Triggers rollback, never escapes the controller."""


class NoBackupAvailable(HostnetError):
    """Raised when a restore is requested but no snapshot exists."""


class SnapshotFailed(HostnetError):
    """Raised when the pre-apply snapshot could not be captured or stored."""
