from __future__ import annotations

import logging
import os
import stat

from ..errors import ConfigurationError, ToolInvocationError
from .command import run_cmd

logger = logging.getLogger(__name__)


def is_block_device(path: str) -> bool:
    try:
        return stat.S_ISBLK(os.stat(path).st_mode)
    except OSError:
        return False


def get_size_bytes(dev: str) -> int:
    """Return the byte capacity of a block device (read-only query, runs even in dry-run)."""

    r = run_cmd(["blockdev", "--getsize64", dev])
    try:
        return int((r.stdout or "").strip())
    except ValueError as e:
        raise ConfigurationError(f"Unable to determine size of {dev}: {r.stdout!r}") from e


def get_uuid(dev: str, *, dry_run: bool = False) -> str:
    """Return filesystem/LUKS UUID for a block device."""

    r = run_cmd(["blkid", "-s", "UUID", "-o", "value", dev], dry_run=dry_run)
    uuid = (r.stdout or "").strip()
    if not uuid and not dry_run:
        raise ToolInvocationError(r.argv, r.returncode, message=f"Unable to determine UUID for {dev}")
    return uuid
