from __future__ import annotations

import logging

from ..errors import ConfigurationError
from ..lib.tools import Toolset
from ..models import BlockDeviceSpec
from ..pipeline import ProvisioningContext, Stage
from ..planner import plan_partitions

logger = logging.getLogger(__name__)


def check_preconditions(ctx: ProvisioningContext, tools: Toolset) -> None:
    """Everything that must hold before the first destructive command."""

    if not tools.partition.is_block_device(ctx.device.path):
        raise ConfigurationError(f"{ctx.device.path} is not a block device")
    if not tools.partition.booted_in_uefi():
        raise ConfigurationError("Not booted in UEFI mode (/sys/firmware/efi/efivars missing)")
    if ctx.mode.encrypted and ctx.passphrase is None:
        raise ConfigurationError(f"{ctx.mode.value} mode needs a passphrase")


def probe_device(path: str, tools: Toolset) -> BlockDeviceSpec:
    if not tools.partition.is_block_device(path):
        raise ConfigurationError(f"{path} is not a block device")
    return BlockDeviceSpec(path=path, capacity_bytes=tools.partition.capacity_bytes(path))


class PartitionStep:
    step_id = "10_partition"
    stage = Stage.PARTITIONED

    def applies(self, ctx: ProvisioningContext) -> bool:
        return True

    def run(self, ctx: ProvisioningContext, tools: Toolset) -> ProvisioningContext:
        check_preconditions(ctx, tools)

        if ctx.plan is None:
            ctx.plan = plan_partitions(
                ctx.device,
                ctx.mode,
                swap_bytes=ctx.config.swap_bytes,
                min_root_bytes=ctx.config.min_root_bytes,
            )

        logger.warning("Wiping partition table on %s", ctx.device.path)
        tools.partition.apply(ctx.plan)
        return ctx
