from __future__ import annotations

import json
import logging
import shutil
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable

from hostnet.adapters.base import NetworkBackend
from hostnet.core.errors import NoBackupAvailable, SnapshotFailed
from hostnet.execution.executor import Executor
from hostnet.execution.record import ExecutionRecord
from hostnet.plan.compiler import compile_restore_plan
from hostnet.utils.hashing import sha256_bytes
from hostnet.utils.time import utc_now

from .archive import TarArchiver

logger = logging.getLogger(__name__)

CONNECTIONS_PREFIX = "connections"
AGENT_PREFIX = "agent"
ARCHIVE_NAME = "archive.tar.gz"
METADATA_NAME = "metadata.json"


@dataclass(frozen=True, slots=True)
class Snapshot:
    id: str
    created_at: datetime
    archive: bytes = field(repr=False)
    connections: tuple[str, ...] = ()
    interfaces: str = ""
    checksum: str = ""

    def metadata(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "created_at": self.created_at.isoformat(),
            "connections": list(self.connections),
            "interfaces": self.interfaces,
            "checksum": self.checksum,
            "size_bytes": len(self.archive),
        }


def new_snapshot_id(created_at: datetime) -> str:
    return f"{created_at.strftime('%Y%m%d_%H%M%S_%f')}_{uuid.uuid4().hex[:8]}"


def capture_snapshot(
    backend: NetworkBackend,
    sources: dict[str, Path],
    archiver: TarArchiver | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> Snapshot:
    archiver = archiver or TarArchiver()
    try:
        connections = tuple(c.name for c in backend.list_connections())
        interfaces = backend.interface_state()
        blob = archiver.pack(sources)
    except Exception as exc:
        raise SnapshotFailed(f"Cannot capture network state: {exc}") from exc
    created_at = clock()
    return Snapshot(
        id=new_snapshot_id(created_at),
        created_at=created_at,
        archive=blob,
        connections=connections,
        interfaces=interfaces,
        checksum=sha256_bytes(blob),
    )


class BackupStore:
    """Timestamped snapshots under ``root/<id>/``, newest ``retention`` kept."""

    DEFAULT_RETENTION = 5

    def __init__(self, root: Path, retention: int = DEFAULT_RETENTION, archiver: TarArchiver | None = None) -> None:
        if retention < 1:
            raise ValueError("retention must be at least 1")
        self.root = root
        self.retention = retention
        self.archiver = archiver or TarArchiver()

    def save(self, snapshot: Snapshot) -> str:
        target = self.root / snapshot.id
        try:
            target.mkdir(parents=True, exist_ok=False)
            (target / ARCHIVE_NAME).write_bytes(snapshot.archive)
            (target / METADATA_NAME).write_text(json.dumps(snapshot.metadata(), indent=2), encoding="utf-8")
        except OSError as exc:
            shutil.rmtree(target, ignore_errors=True)
            raise SnapshotFailed(f"Cannot write snapshot {snapshot.id}: {exc}") from exc
        logger.info("Saved snapshot %s (%d bytes)", snapshot.id, len(snapshot.archive))
        self._prune()
        return snapshot.id

    def _read_metadata(self, path: Path) -> dict[str, Any] | None:
        try:
            meta = json.loads((path / METADATA_NAME).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable snapshot %s: %s", path.name, exc)
            return None
        if not isinstance(meta, dict) or not isinstance(meta.get("id"), str) or not isinstance(meta.get("created_at"), str):
            logger.warning("Ignoring snapshot %s: metadata lacks id or created_at", path.name)
            return None
        try:
            datetime.fromisoformat(meta["created_at"])
        except ValueError:
            logger.warning("Ignoring snapshot %s: bad created_at %r", path.name, meta["created_at"])
            return None
        return meta

    def list_snapshots(self) -> list[dict[str, Any]]:
        if not self.root.exists():
            return []
        items = []
        for path in self.root.iterdir():
            if not path.is_dir():
                continue
            meta = self._read_metadata(path)
            if meta is not None:
                items.append(meta)
        return sorted(items, key=lambda m: datetime.fromisoformat(m["created_at"]))

    def _prune(self) -> None:
        items = self.list_snapshots()
        for meta in items[: max(0, len(items) - self.retention)]:
            logger.info("Evicting snapshot %s (retention %d)", meta["id"], self.retention)
            shutil.rmtree(self.root / meta["id"], ignore_errors=True)

    def get(self, snapshot_id: str) -> Snapshot:
        path = self.root / snapshot_id
        meta = self._read_metadata(path) if path.is_dir() else None
        if meta is None:
            raise NoBackupAvailable(f"Snapshot {snapshot_id} not found in {self.root}")
        archive = (path / ARCHIVE_NAME).read_bytes()
        if meta.get("checksum") and sha256_bytes(archive) != meta["checksum"]:
            raise NoBackupAvailable(f"Snapshot {snapshot_id} is corrupt (checksum mismatch)")
        return Snapshot(
            id=meta["id"],
            created_at=datetime.fromisoformat(meta["created_at"]),
            archive=archive,
            connections=tuple(meta.get("connections", [])),
            interfaces=meta.get("interfaces", ""),
            checksum=meta.get("checksum", ""),
        )

    def latest(self) -> Snapshot | None:
        items = self.list_snapshots()
        if not items:
            return None
        return self.get(items[-1]["id"])

    def connection_files(self, snapshot: Snapshot) -> dict[str, bytes]:
        members = self.archiver.unpack(snapshot.archive)
        prefix = f"{CONNECTIONS_PREFIX}/"
        return {name: data for name, data in members.items() if name.startswith(prefix)}

    def restore(self, snapshot_id: str, executor: Executor) -> ExecutionRecord:
        snapshot = self.get(snapshot_id)
        files = self.connection_files(snapshot)
        if not files:
            raise NoBackupAvailable(f"Snapshot {snapshot.id} holds no connection definitions")
        plan = compile_restore_plan(files, executor.backend.list_connections())
        logger.info("Restoring snapshot %s: %d connection definitions", snapshot.id, len(files))
        return executor.apply(plan)
