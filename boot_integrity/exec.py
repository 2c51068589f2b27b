from __future__ import annotations

import logging
import platform
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence

logger = logging.getLogger(__name__)

# packages whose files land in /boot
BOOT_PACKAGE_PREFIXES = ("linux", "grub", "efibootmgr")


@dataclass(frozen=True)
class ExecResult:
    argv: List[str]
    returncode: int
    stdout: str
    stderr: str


def run_query(argv: Sequence[str]) -> ExecResult:
    argv_list = list(argv)
    p = subprocess.run(
        argv_list,
        text=True,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
    )
    return ExecResult(argv=argv_list, returncode=p.returncode, stdout=p.stdout, stderr=p.stderr)


def boot_package_versions(sysroot: str = "/", prefixes: Sequence[str] = BOOT_PACKAGE_PREFIXES) -> Dict[str, str]:
    """Installed versions of kernel and bootloader packages, from the pacman database under ``sysroot``.

    Returns an empty mapping on systems without pacman.
    """

    argv = ["pacman", "-Q"]
    if sysroot != "/":
        argv += ["--dbpath", str(Path(sysroot) / "var/lib/pacman")]

    try:
        res = run_query(argv)
    except FileNotFoundError:
        logger.info("pacman not available; package versions not recorded")
        return {}

    if res.returncode != 0:
        logger.warning("pacman -Q failed (%d): %s", res.returncode, res.stderr.strip())
        return {}

    out: Dict[str, str] = {}
    for line in res.stdout.splitlines():
        parts = line.split()
        if len(parts) == 2 and parts[0].startswith(tuple(prefixes)):
            out[parts[0]] = parts[1]
    return out


def kernel_release(sysroot: str = "/") -> Optional[str]:
    """Kernel release of ``sysroot``: the running kernel for ``/``, newest module tree otherwise."""

    if sysroot == "/":
        return platform.release()
    modules = Path(sysroot) / "usr/lib/modules"
    if not modules.is_dir():
        return None
    releases = sorted(p.name for p in modules.iterdir() if p.is_dir())
    return releases[-1] if releases else None