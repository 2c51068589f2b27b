from __future__ import annotations

import logging
import posixpath

from ..errors import ConfigurationError
from ..lib.tools import Toolset
from ..models import MountEntry
from ..pipeline import ProvisioningContext, Stage

logger = logging.getLogger(__name__)

SWAP_MOUNTPOINT = "[SWAP]"


class MountStep:
    """Root first, then /boot, then /boot/EFI inside it, then swap."""

    step_id = "50_mount"
    stage = Stage.MOUNTED

    def applies(self, ctx: ProvisioningContext) -> bool:
        return True

    def run(self, ctx: ProvisioningContext, tools: Toolset) -> ProvisioningContext:
        devices = ctx.devices
        if devices is None:
            raise ConfigurationError("Filesystems have not been formatted")

        target = ctx.target_root
        boot = posixpath.join(target, "boot")
        efi = posixpath.join(boot, "EFI")

        tools.mount.mount(devices.root, target)
        ctx.mounts.record(MountEntry(devices.root, target, "ext4"))

        if devices.boot:
            tools.mount.make_dir(boot)
            tools.mount.mount(devices.boot, boot)
            ctx.mounts.record(MountEntry(devices.boot, boot, "ext4"))

        tools.mount.make_dir(efi)
        tools.mount.mount(devices.efi, efi)
        ctx.mounts.record(MountEntry(devices.efi, efi, "vfat"))

        tools.mount.swapon(devices.swap)
        ctx.mounts.record(MountEntry(devices.swap, SWAP_MOUNTPOINT, "swap"))
        return ctx
