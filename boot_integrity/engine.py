from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from . import exec as sysexec
from .manifest import ChecksumEntry, ChecksumManifest, diff_manifests
from .store import ChecksumStore, regular_files, utc_now

logger = logging.getLogger(__name__)

DEFAULT_BOOT_DIR = "/boot"
DEFAULT_DB_DIR = "/var/lib/boot-checksums"


@dataclass(frozen=True)
class IntegrityPaths:
    """Where things live, as seen from inside ``sysroot``.

    For a running system ``sysroot`` is ``/``; the installer points it at the
    mounted target.
    """

    sysroot: str = "/"
    boot_dir: str = DEFAULT_BOOT_DIR
    db_dir: str = DEFAULT_DB_DIR

    def on_host(self, path: str) -> Path:
        return Path(self.sysroot) / path.lstrip("/")

    @property
    def boot_root(self) -> Path:
        return self.on_host(self.boot_dir)

    @property
    def db_root(self) -> Path:
        return self.on_host(self.db_dir)


@dataclass(frozen=True)
class VerifyReport:
    tracked: int
    current: int
    last_updated: Optional[str]
    added: Tuple[str, ...] = ()
    removed: Tuple[str, ...] = ()
    modified: Tuple[str, ...] = ()
    verified: Tuple[ChecksumEntry, ...] = ()

    @property
    def passed(self) -> bool:
        return not (self.added or self.removed or self.modified)

    @property
    def status(self) -> str:
        return "PASS" if self.passed else "FAIL"


@dataclass(frozen=True)
class UpdateReport:
    file_count: int
    backed_up: bool
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class InfoReport:
    tracked: int
    last_updated: Optional[str]
    metadata: Dict[str, Any]
    backup_path: Optional[str]
    backup_entries: Optional[int]
    live_files: int
    live_bytes: int


class IntegrityEngine:
    def __init__(
        self,
        paths: IntegrityPaths,
        *,
        package_query: Optional[Callable[[str], Mapping[str, str]]] = None,
        kernel_release: Optional[Callable[[str], Optional[str]]] = None,
    ) -> None:
        self.paths = paths
        self.store = ChecksumStore(paths.db_root)
        self._package_query = package_query or sysexec.boot_package_versions
        self._kernel_release = kernel_release or sysexec.kernel_release

    def scan(self) -> ChecksumManifest:
        return self.store.scan(self.paths.boot_root, sysroot=self.paths.sysroot)

    def verify(self, *, verbose: bool = False) -> VerifyReport:
        """Compare the live boot directory against the stored baseline. Read-only."""

        stored = self.store.load()
        current = self.scan()
        diff = diff_manifests(stored, current)

        report = VerifyReport(
            tracked=len(stored),
            current=len(current),
            last_updated=stored.generated_at,
            added=diff.added,
            removed=diff.removed,
            modified=diff.modified,
            verified=current.entries if (verbose and diff.clean) else (),
        )
        logger.info(
            "verify %s: %d added, %d removed, %d modified",
            report.status,
            len(diff.added),
            len(diff.removed),
            len(diff.modified),
        )
        return report

    def update(self) -> UpdateReport:
        """Rescan and make the result the new baseline. The caller checks privileges."""

        backed_up = self.store.exists()
        scanned = self.scan()
        metadata: Dict[str, Any] = {
            "generated_at": scanned.generated_at or utc_now(),
            "kernel": self._kernel_release(self.paths.sysroot),
            "files": len(scanned),
            "packages": dict(self._package_query(self.paths.sysroot)),
        }
        manifest = ChecksumManifest.build(scanned.entries, generated_at=metadata["generated_at"], metadata=metadata)
        self.store.save(manifest)
        return UpdateReport(file_count=len(manifest), backed_up=backed_up, metadata=metadata)

    def info(self) -> InfoReport:
        stored = self.store.load()
        backup = self.store.load_backup()

        live_files = 0
        live_bytes = 0
        if self.paths.boot_root.is_dir():
            for p in regular_files(self.paths.boot_root):
                live_files += 1
                live_bytes += p.stat().st_size

        return InfoReport(
            tracked=len(stored),
            last_updated=stored.generated_at,
            metadata=dict(stored.metadata),
            backup_path=str(self.store.backup_path) if backup is not None else None,
            backup_entries=len(backup) if backup is not None else None,
            live_files=live_files,
            live_bytes=live_bytes,
        )
