from __future__ import annotations

from ..lib.tools import Toolset
from ..pipeline import ProvisioningContext, Stage
from ..target_config import configure_target


class ConfigureTargetStep:
    step_id = "70_configure_target"
    stage = Stage.CONFIGURED

    def applies(self, ctx: ProvisioningContext) -> bool:
        return True

    def run(self, ctx: ProvisioningContext, tools: Toolset) -> ProvisioningContext:
        configure_target(ctx, tools)
        return ctx
