from __future__ import annotations

import logging

from ..errors import ConfigurationError
from ..lib.tools import Toolset
from ..models import EncryptionMode, PartitionRole, TargetDevices
from ..pipeline import ProvisioningContext, Stage
from ..volumes import ROOT_VOLUME, SWAP_VOLUME

logger = logging.getLogger(__name__)


def resolve_target_devices(ctx: ProvisioningContext) -> TargetDevices:
    """Map the layout to the block devices the filesystems go on."""

    plan = ctx.plan
    if plan is None:
        raise ConfigurationError("No partition plan on the context")

    efi = plan.path_for(PartitionRole.EFI)
    if ctx.mode is EncryptionMode.NONE:
        return TargetDevices(
            efi=efi,
            swap=plan.path_for(PartitionRole.SWAP),
            root=plan.path_for(PartitionRole.ROOT),
        )

    if ctx.group is None:
        raise ConfigurationError("No volume group on the context")
    swap = ctx.group.volume(SWAP_VOLUME)
    root = ctx.group.volume(ROOT_VOLUME)
    if swap is None or root is None:
        raise ConfigurationError(f"Volume group {ctx.group.name} is missing swap or root")

    if ctx.mode is EncryptionMode.STANDARD:
        boot = plan.path_for(PartitionRole.BOOT)
    else:
        boot = ctx.containers[PartitionRole.LUKS_BOOT.value].mapped_path
    return TargetDevices(efi=efi, boot=boot, swap=swap.path, root=root.path)


class FormatStep:
    step_id = "40_format"
    stage = Stage.FORMATTED

    def applies(self, ctx: ProvisioningContext) -> bool:
        return True

    def run(self, ctx: ProvisioningContext, tools: Toolset) -> ProvisioningContext:
        devices = resolve_target_devices(ctx)

        tools.filesystem.make_fat32(devices.efi)
        if devices.boot:
            tools.filesystem.make_ext4(devices.boot, label="boot")
        tools.filesystem.make_swap(devices.swap)
        tools.filesystem.make_ext4(devices.root, label="root")

        ctx.devices = devices
        return ctx
