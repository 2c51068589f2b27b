from __future__ import annotations

import logging

from ..lib.tools import Toolset
from ..pipeline import ProvisioningContext, Stage

logger = logging.getLogger(__name__)


class InstallBaseStep:
    step_id = "60_install_base"
    stage = Stage.BASE_INSTALLED

    def applies(self, ctx: ProvisioningContext) -> bool:
        return True

    def run(self, ctx: ProvisioningContext, tools: Toolset) -> ProvisioningContext:
        packages = ctx.config.packages_for(ctx.mode)
        logger.info("Installing %d packages into %s", len(packages), ctx.target_root)
        tools.package.install_base(ctx.target_root, packages)
        return ctx
