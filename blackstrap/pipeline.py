from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Sequence

from .config import InstallConfig
from .encryption import Passphrase
from .errors import ConfigurationError, StageFailed
from .lib.tools import Toolset
from .models import (
    BlockDeviceSpec,
    EncryptedContainer,
    EncryptionMode,
    MountTable,
    PartitionPlan,
    TargetDevices,
    VolumeGroup,
)

logger = logging.getLogger(__name__)


class Stage(Enum):
    UNPARTITIONED = "unpartitioned"
    PARTITIONED = "partitioned"
    CONTAINERS_OPENED = "containers_opened"
    VOLUMES_CREATED = "volumes_created"
    FORMATTED = "formatted"
    MOUNTED = "mounted"
    BASE_INSTALLED = "base_installed"
    CONFIGURED = "configured"


STAGE_ORDER: List[Stage] = list(Stage)


@dataclass
class ProvisioningContext:
    """Everything one provisioning run knows. Owned by the pipeline for the run's lifetime."""

    config: InstallConfig
    mode: EncryptionMode
    device: BlockDeviceSpec
    passphrase: Optional[Passphrase] = None
    confirmed: bool = False

    stage: Stage = Stage.UNPARTITIONED
    history: List[str] = field(default_factory=list)
    plan: Optional[PartitionPlan] = None
    containers: Dict[str, EncryptedContainer] = field(default_factory=dict)
    group: Optional[VolumeGroup] = None
    devices: Optional[TargetDevices] = None
    mounts: MountTable = field(default_factory=MountTable)
    integrity_seeded: bool = False
    failed_stage: Optional[str] = None
    error: Optional[str] = None

    @property
    def target_root(self) -> str:
        return self.config.target_root

    def discard_passphrase(self) -> None:
        self.passphrase = None

    def to_record(self) -> Dict[str, Any]:
        """Run record for the state file. The passphrase is deliberately absent."""

        return {
            "mode": self.mode.value,
            "device": self.device.path,
            "target_root": self.target_root,
            "stage": self.stage.value,
            "history": list(self.history),
            "plan": self.plan.to_dict() if self.plan else None,
            "containers": {
                role: {
                    "partition": c.partition,
                    "luks_version": c.luks_version,
                    "mapped_name": c.mapped_name,
                    "is_open": c.is_open,
                }
                for role, c in self.containers.items()
            },
            "volume_group": (
                {
                    "name": self.group.name,
                    "device": self.group.device,
                    "size_bytes": self.group.size_bytes,
                    "volumes": {v.name: v.size_bytes for v in self.group.volumes},
                }
                if self.group
                else None
            ),
            "mounts": [
                {"device": m.device, "mountpoint": m.mountpoint, "fstype": m.fstype} for m in self.mounts.entries
            ],
            "integrity_seeded": self.integrity_seeded,
            "failed_stage": self.failed_stage,
            "error": self.error,
        }


class Step(Protocol):
    """One provisioning stage.

    ``stage`` is the stage reached once ``run`` returns. Steps with ``stage = None``
    run after the last transition and do not advance the state machine.
    """

    step_id: str
    stage: Optional[Stage]

    def applies(self, ctx: ProvisioningContext) -> bool:
        ...

    def run(self, ctx: ProvisioningContext, tools: Toolset) -> ProvisioningContext:
        ...


@dataclass(frozen=True)
class PipelineResult:
    context: ProvisioningContext
    ran_steps: List[str]
    skipped_steps: List[str]


def _advance(ctx: ProvisioningContext, stage: Stage) -> None:
    if STAGE_ORDER.index(stage) <= STAGE_ORDER.index(ctx.stage):
        raise ConfigurationError(f"Cannot move from {ctx.stage.value} back to {stage.value}")
    ctx.stage = stage
    ctx.history.append(stage.value)


def run_pipeline(*, ctx: ProvisioningContext, steps: Sequence[Step], tools: Toolset) -> PipelineResult:
    """Run steps strictly in order.

    There is no resume and no rollback: the first failure stops the run and
    whatever was created on disk stays as it is.
    """

    if not ctx.confirmed:
        raise ConfigurationError(f"Refusing to touch {ctx.device.path} without explicit confirmation")

    ran: List[str] = []
    skipped: List[str] = []

    for step in steps:
        if not step.applies(ctx):
            logger.info("Skipping step %s (%s mode)", step.step_id, ctx.mode.value)
            skipped.append(step.step_id)
            continue

        logger.info("Running step %s", step.step_id)
        try:
            ctx = step.run(ctx, tools)
            if step.stage is not None:
                _advance(ctx, step.stage)
        except Exception as e:
            name = step.stage.value if step.stage is not None else step.step_id
            ctx.failed_stage = name
            ctx.error = str(e)
            logger.error("Step %s failed: %s", step.step_id, e)
            raise StageFailed(name, e) from e

        ran.append(step.step_id)

    return PipelineResult(context=ctx, ran_steps=ran, skipped_steps=skipped)
