from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from hostnet.adapters.base import CmdResult

logger = logging.getLogger(__name__)


class LocalHost:
    """Runs OS networking tools on the machine being provisioned."""

    def __init__(self, timeout: float = 60.0) -> None:
        self.timeout = timeout

    def run(self, argv: list[str], timeout: float | None = None) -> CmdResult:
        logger.debug("exec: %s", " ".join(argv))
        try:
            p = subprocess.run(argv, capture_output=True, text=True, timeout=timeout or self.timeout)
        except FileNotFoundError:
            return CmdResult(127, "", f"{argv[0]}: command not found")
        except subprocess.TimeoutExpired:
            return CmdResult(124, "", f"{argv[0]}: timed out after {timeout or self.timeout}s")
        except OSError as exc:
            return CmdResult(126, "", f"{argv[0]}: {exc}")
        return CmdResult(p.returncode, p.stdout.strip(), p.stderr.strip())

    def read_text(self, path: str) -> str | None:
        try:
            return Path(path).read_text(encoding="utf-8")
        except OSError:
            return None
