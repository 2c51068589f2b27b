from __future__ import annotations

import logging

from ..lib.tools import Toolset
from ..models import PartitionRole
from ..pipeline import ProvisioningContext, Stage
from ..volumes import VolumeManager

logger = logging.getLogger(__name__)


class CreateVolumesStep:
    step_id = "30_create_volumes"
    stage = Stage.VOLUMES_CREATED

    def applies(self, ctx: ProvisioningContext) -> bool:
        return ctx.mode.encrypted

    def run(self, ctx: ProvisioningContext, tools: Toolset) -> ProvisioningContext:
        container = ctx.containers[PartitionRole.LUKS_ROOT.value]
        luks_root = ctx.plan.by_role(PartitionRole.LUKS_ROOT) if ctx.plan else None

        vm = VolumeManager(tools.volume)
        group = vm.create_group(
            container.mapped_path,
            name=ctx.config.volume_group,
            size_hint=luks_root.allocated_bytes if luks_root else None,
        )
        swap_bytes = ctx.plan.swap_bytes if ctx.plan else ctx.config.swap_bytes
        vm.create_swap_and_root(group, swap_bytes)
        ctx.group = group

        # Containers are open and LVM is up: nothing later needs the secret.
        ctx.discard_passphrase()
        return ctx
