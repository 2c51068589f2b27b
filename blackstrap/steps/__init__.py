from .step_10_partition import PartitionStep
from .step_20_open_containers import OpenContainersStep
from .step_30_create_volumes import CreateVolumesStep
from .step_40_format import FormatStep
from .step_50_mount import MountStep
from .step_60_install_base import InstallBaseStep
from .step_70_configure_target import ConfigureTargetStep
from .step_90_finalize import FinalizeStep

__all__ = [
    "PartitionStep",
    "OpenContainersStep",
    "CreateVolumesStep",
    "FormatStep",
    "MountStep",
    "InstallBaseStep",
    "ConfigureTargetStep",
    "FinalizeStep",
]
