from __future__ import annotations

import logging

from ..lib.tools import Toolset
from ..pipeline import ProvisioningContext
from .step_50_mount import SWAP_MOUNTPOINT

logger = logging.getLogger(__name__)


class FinalizeStep:
    """Tear the mounts down in reverse order. Only runs when the profile asks for it."""

    step_id = "90_finalize"
    stage = None

    def applies(self, ctx: ProvisioningContext) -> bool:
        return ctx.config.finalize_unmount

    def run(self, ctx: ProvisioningContext, tools: Toolset) -> ProvisioningContext:
        for entry in ctx.mounts.teardown_order():
            if entry.mountpoint == SWAP_MOUNTPOINT:
                tools.mount.swapoff(entry.device)
            else:
                tools.mount.unmount(entry.mountpoint)
        return ctx
