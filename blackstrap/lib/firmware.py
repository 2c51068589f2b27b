from __future__ import annotations

from pathlib import Path

EFIVARS = "/sys/firmware/efi/efivars"


def booted_in_uefi(efivars: str = EFIVARS) -> bool:
    """True when the *currently running* environment was booted through UEFI.

    The installed system boots through GRUB's x86_64-efi target, so legacy BIOS is refused.
    """

    return Path(efivars).is_dir()
