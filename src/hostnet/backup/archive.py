from __future__ import annotations

import io
import logging
import tarfile
from pathlib import Path

logger = logging.getLogger(__name__)


class TarArchiver:
    """Packs files into a single gzip tar blob and reads them back without touching disk."""

    def pack(self, sources: dict[str, Path]) -> bytes:
        buf = io.BytesIO()
        with tarfile.open(fileobj=buf, mode="w:gz") as tar:
            for prefix, path in sources.items():
                if path.is_dir():
                    for item in sorted(path.rglob("*")):
                        if item.is_file():
                            tar.add(str(item), arcname=f"{prefix}/{item.relative_to(path).as_posix()}")
                elif path.is_file():
                    tar.add(str(path), arcname=f"{prefix}/{path.name}")
                else:
                    logger.debug("Nothing to archive at %s", path)
        return buf.getvalue()

    def unpack(self, blob: bytes) -> dict[str, bytes]:
        out: dict[str, bytes] = {}
        with tarfile.open(fileobj=io.BytesIO(blob), mode="r:gz") as tar:
            for member in tar.getmembers():
                if not member.isfile():
                    continue
                handle = tar.extractfile(member)
                if handle is not None:
                    out[member.name] = handle.read()
        return out
