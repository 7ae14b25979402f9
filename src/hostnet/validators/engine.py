from __future__ import annotations

import logging
from typing import Callable

from hostnet.core.model import CheckResult, CheckStatus, Severity, ValidationContext
from hostnet.core.results import RunSummary
from hostnet.validators import bonds, bridges, connectivity, health, mtu, vlans

logger = logging.getLogger(__name__)

ValidatorFn = Callable[[ValidationContext], list[CheckResult]]

VALIDATE_PHASES: dict[str, list[ValidatorFn]] = {
    "bonds": [bonds.validate],
    "bridges": [bridges.validate],
    "connectivity": [connectivity.validate],
    "mtu": [mtu.validate],
    "vlans": [vlans.validate],
}

HEALTH_PHASES: dict[str, list[ValidatorFn]] = {
    "bonds": [bonds.validate],
    "bridges": [bridges.validate],
    "connectivity": [connectivity.validate],
    "services": [health.validate_services],
    "resources": [health.validate_resources],
}


def run_validators(ctx: ValidationContext, phase_map: dict[str, list[ValidatorFn]]) -> RunSummary:
    summary = RunSummary()
    for phase, validators in phase_map.items():
        for validator in validators:
            try:
                summary.extend(validator(ctx))
            except Exception as exc:
                logger.exception("Validator %s crashed", validator.__module__)
                summary.add(
                    CheckResult(
                        phase=phase,
                        name=f"{validator.__module__}.{validator.__name__}",
                        status=CheckStatus.FAIL,
                        severity=Severity.ERROR,
                        message=f"Validator crashed: {exc}",
                    )
                )
    return summary
