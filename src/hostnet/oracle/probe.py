from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Any, Callable, Protocol

from hostnet.adapters.base import CmdResult
from hostnet.adapters.host import LocalHost

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Verdict:
    reachable: bool
    target: str
    latency: float | None = None
    error: str | None = None
    attempts: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "reachable": self.reachable,
            "target": self.target,
            "latency": self.latency,
            "error": self.error,
            "attempts": self.attempts,
        }


class Pinger(Protocol):
    def __call__(self, target: str, timeout: float) -> CmdResult:
        ...


class IcmpPinger:
    def __init__(self, host: LocalHost) -> None:
        self.host = host

    def __call__(self, target: str, timeout: float) -> CmdResult:
        wait = str(max(1, math.ceil(timeout)))
        return self.host.run(["ping", "-c", "1", "-W", wait, target], timeout=timeout + 5)


class ReachabilityOracle:
    """Sequential echo probes with a settle delay before the first one.

    The settle delay gives freshly activated bonds and bridges time to come up;
    probing too early produces false negatives that would trigger a rollback.
    Every failed attempt consumes its full timeout, so an all-failing probe
    takes at least ``attempts * timeout`` seconds.
    """

    def __init__(
        self,
        pinger: Pinger,
        settle_delay: float = 20.0,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.pinger = pinger
        self.settle_delay = settle_delay
        self.sleep = sleep
        self.clock = clock

    def probe(self, target: str, attempts: int = 3, timeout: float = 2.0) -> Verdict:
        if attempts < 1:
            raise ValueError("attempts must be at least 1")
        if timeout <= 0:
            raise ValueError("timeout must be positive")

        if self.settle_delay > 0:
            logger.info("Waiting %.0fs for interfaces to settle before probing %s", self.settle_delay, target)
            self.sleep(self.settle_delay)

        error = "no reply"
        for attempt in range(1, attempts + 1):
            started = self.clock()
            result = self.pinger(target, timeout)
            elapsed = self.clock() - started
            if result.ok:
                logger.info("%s reachable on attempt %d/%d (%.3fs)", target, attempt, attempts, elapsed)
                return Verdict(True, target, latency=elapsed, attempts=attempt)
            error = result.stderr or result.stdout or f"ping exit status {result.rc}"
            logger.warning("%s unreachable on attempt %d/%d: %s", target, attempt, attempts, error)
            if elapsed < timeout:
                self.sleep(timeout - elapsed)
        return Verdict(False, target, error=error, attempts=attempts)
