from __future__ import annotations

import logging

from ..encryption import BOOT_MAPPED_NAME, EncryptionStager
from ..errors import ConfigurationError
from ..lib.tools import Toolset
from ..models import EncryptionMode, PartitionRole
from ..pipeline import ProvisioningContext, Stage

logger = logging.getLogger(__name__)


class OpenContainersStep:
    step_id = "20_open_containers"
    stage = Stage.CONTAINERS_OPENED

    def applies(self, ctx: ProvisioningContext) -> bool:
        return ctx.mode.encrypted

    def run(self, ctx: ProvisioningContext, tools: Toolset) -> ProvisioningContext:
        plan = ctx.plan
        if plan is None or ctx.passphrase is None:
            raise ConfigurationError("Encryption needs a partition plan and a passphrase")

        stager = EncryptionStager(tools.crypto)

        # FULL_DISK: the boot container first, same passphrase for both
        if ctx.mode is EncryptionMode.FULL_DISK:
            boot = plan.by_role(PartitionRole.LUKS_BOOT)
            ctx.containers[PartitionRole.LUKS_BOOT.value] = stager.format_and_open(
                plan.device.partition_path(boot.index),
                boot.luks_version,
                ctx.passphrase,
                mapped_name=BOOT_MAPPED_NAME,
            )

        root = plan.by_role(PartitionRole.LUKS_ROOT)
        ctx.containers[PartitionRole.LUKS_ROOT.value] = stager.format_and_open(
            plan.device.partition_path(root.index),
            root.luks_version,
            ctx.passphrase,
            mapped_name=ctx.config.root_mapped_name,
        )
        return ctx
