from __future__ import annotations

import hashlib
import logging
import os
import shutil
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .errors import ManifestFormatError, NoBaseline
from .manifest import ChecksumEntry, ChecksumManifest

logger = logging.getLogger(__name__)

MANIFEST_NAME = "boot.sha256"
BACKUP_NAME = "boot.sha256.backup"
METADATA_NAME = "boot.metadata"

CHUNK_SIZE = 64 * 1024
FILE_MODE = 0o600
DIR_MODE = 0o700


def sha256_file(path: Path) -> str:
    h = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            h.update(chunk)
    return h.hexdigest()


def regular_files(root: Path) -> List[Path]:
    out: List[Path] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        for name in sorted(filenames):
            p = Path(dirpath) / name
            # matches find -type f: symlinks and special files are skipped
            if p.is_symlink() or not p.is_file():
                continue
            out.append(p)
    return out


class ChecksumStore:
    """The checksum database directory: current manifest, one backup, metadata."""

    def __init__(self, db_dir: str | Path) -> None:
        self.db_dir = Path(db_dir)

    @property
    def manifest_path(self) -> Path:
        return self.db_dir / MANIFEST_NAME

    @property
    def backup_path(self) -> Path:
        return self.db_dir / BACKUP_NAME

    @property
    def metadata_path(self) -> Path:
        return self.db_dir / METADATA_NAME

    def exists(self) -> bool:
        return self.manifest_path.is_file()

    def backup_exists(self) -> bool:
        return self.backup_path.is_file()

    def load(self) -> ChecksumManifest:
        if not self.exists():
            raise NoBaseline(f"No checksum database at {self.manifest_path}")

        meta = self.load_metadata()
        generated_at = meta.get("generated_at") or _mtime_iso(self.manifest_path)
        m = ChecksumManifest.parse(self.manifest_path.read_text(encoding="utf-8"), generated_at=str(generated_at))
        return ChecksumManifest.build(m.entries, generated_at=m.generated_at, metadata=meta)

    def load_backup(self) -> Optional[ChecksumManifest]:
        if not self.backup_exists():
            return None
        return ChecksumManifest.parse(
            self.backup_path.read_text(encoding="utf-8"), generated_at=_mtime_iso(self.backup_path)
        )

    def load_metadata(self) -> Dict[str, Any]:
        if not self.metadata_path.is_file():
            return {}
        data = yaml.safe_load(self.metadata_path.read_text(encoding="utf-8")) or {}
        if not isinstance(data, dict):
            raise ManifestFormatError(f"{self.metadata_path} must contain a mapping")
        return data

    def save(self, manifest: ChecksumManifest) -> None:
        """Persist ``manifest`` as the new baseline.

        The previous manifest becomes the backup before anything is overwritten.
        Each file is written to a temp file in the same directory and renamed into
        place, so readers never see a half-written database.
        """

        self.db_dir.mkdir(parents=True, exist_ok=True, mode=DIR_MODE)

        if self.exists():
            shutil.copyfile(self.manifest_path, self.backup_path)
            os.chmod(self.backup_path, FILE_MODE)
            logger.info("Backed up %s to %s", self.manifest_path, self.backup_path)

        self._atomic_write(self.manifest_path, manifest.serialize())
        if manifest.metadata:
            self._atomic_write(self.metadata_path, yaml.safe_dump(manifest.metadata, sort_keys=False))
        logger.info("Wrote %d entries to %s", len(manifest), self.manifest_path)

    def _atomic_write(self, path: Path, content: str) -> None:
        fd, tmp = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            os.chmod(tmp, FILE_MODE)
            os.replace(tmp, path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    @staticmethod
    def scan(root: str | Path, *, sysroot: str | Path = "/") -> ChecksumManifest:
        """Hash every regular file under ``root``.

        Entry paths are absolute as seen from inside ``sysroot``, so a tree mounted
        at /mnt records ``/boot/vmlinuz-linux`` rather than ``/mnt/boot/...``.
        """

        root_p = Path(root)
        sysroot_p = Path(sysroot)
        entries = []
        for p in regular_files(root_p):
            logical = "/" + p.relative_to(sysroot_p).as_posix()
            entries.append(ChecksumEntry(path=logical, digest=sha256_file(p)))
        return ChecksumManifest.build(entries, generated_at=utc_now())


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def _mtime_iso(path: Path) -> str:
    return datetime.fromtimestamp(path.stat().st_mtime, timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")
