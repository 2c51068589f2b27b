"""Checksum manifest model and its on-disk text format.

The format is the one ``sha256sum`` writes and ``sha256sum -c`` reads::

    <64 hex digits>  <absolute path>

one line per file, sorted by path.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .errors import ManifestFormatError

_LINE_RE = re.compile(r"^([0-9a-f]{64}) [ *](.+)$")


@dataclass(frozen=True)
class ChecksumEntry:
    path: str
    digest: str


@dataclass(frozen=True)
class ChecksumManifest:
    entries: Tuple[ChecksumEntry, ...]
    generated_at: Optional[str] = field(default=None, compare=False)
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def build(
        cls,
        entries: Iterable[ChecksumEntry],
        *,
        generated_at: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> "ChecksumManifest":
        ordered = tuple(sorted(entries, key=lambda e: e.path))
        seen = set()
        for e in ordered:
            if e.path in seen:
                raise ManifestFormatError(f"Duplicate path in manifest: {e.path}")
            seen.add(e.path)
        return cls(entries=ordered, generated_at=generated_at, metadata=dict(metadata or {}))

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def digests(self) -> Dict[str, str]:
        return {e.path: e.digest for e in self.entries}

    @property
    def paths(self) -> List[str]:
        return [e.path for e in self.entries]

    def serialize(self) -> str:
        return "".join(f"{e.digest}  {e.path}\n" for e in self.entries)

    @classmethod
    def parse(cls, text: str, *, generated_at: Optional[str] = None) -> "ChecksumManifest":
        entries: List[ChecksumEntry] = []
        for lineno, line in enumerate(text.splitlines(), start=1):
            if not line.strip():
                continue
            m = _LINE_RE.match(line)
            if not m:
                raise ManifestFormatError(f"line {lineno}: not a sha256sum entry: {line!r}")
            entries.append(ChecksumEntry(path=m.group(2), digest=m.group(1)))
        return cls.build(entries, generated_at=generated_at)


@dataclass(frozen=True)
class ManifestDiff:
    added: Tuple[str, ...]
    removed: Tuple[str, ...]
    modified: Tuple[str, ...]

    @property
    def clean(self) -> bool:
        return not (self.added or self.removed or self.modified)


def diff_manifests(stored: ChecksumManifest, current: ChecksumManifest) -> ManifestDiff:
    """Set difference on paths plus digest comparison on the intersection.

    A rename shows up as one removed and one added path.
    """

    old = stored.digests
    new = current.digests
    return ManifestDiff(
        added=tuple(sorted(set(new) - set(old))),
        removed=tuple(sorted(set(old) - set(new))),
        modified=tuple(sorted(p for p in set(old) & set(new) if old[p] != new[p])),
    )
