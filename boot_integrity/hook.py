"""Pacman hook that reminds the operator to refresh the /boot baseline.

It only warns: a kernel upgrade legitimately rewrites /boot, and refreshing the
baseline is a deliberate root action.
"""

from __future__ import annotations

from typing import Sequence

HOOK_DIR = "/etc/pacman.d/hooks"
HOOK_NAME = "99-boot-checksum-warning.hook"
HOOK_PATH = f"{HOOK_DIR}/{HOOK_NAME}"

KERNEL_PACKAGES = ("linux", "linux-lts", "linux-zen", "linux-hardened")


def render_hook(targets: Sequence[str] = KERNEL_PACKAGES, *, command: str = "boot-integrity update") -> str:
    lines = [
        "[Trigger]",
        "Operation = Install",
        "Operation = Upgrade",
        "Type = Package",
        *(f"Target = {t}" for t in targets),
        "",
        "[Action]",
        "Description = Warning: /boot has been modified - update checksums",
        "When = PostTransaction",
        "Exec = /usr/bin/bash -c 'echo \"\"; echo \"WARNING: Kernel updated - /boot contents changed\"; "
        f"echo \"Run: sudo {command}\"; echo \"\"'",
    ]
    return "\n".join(lines) + "\n"
