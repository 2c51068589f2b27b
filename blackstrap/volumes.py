from __future__ import annotations

import logging
from typing import Optional, Tuple

from .errors import ConfigurationError, InsufficientFreeSpace
from .lib.tools import VolumeTool
from .lib.units import format_bytes
from .models import FixedBytes, LogicalVolume, RemainingFree, SizePolicy, VolumeGroup

logger = logging.getLogger(__name__)

DEFAULT_GROUP_NAME = "vg0"
SWAP_VOLUME = "swap"
ROOT_VOLUME = "root"


class VolumeManager:
    """LVM on top of an opened container.

    Free space is tracked locally so ordering mistakes (a fixed-size volume after
    the remainder was already claimed) fail before lvcreate is ever called.
    """

    def __init__(self, volume: VolumeTool) -> None:
        self.volume = volume

    def create_group(self, device: str, *, name: str = DEFAULT_GROUP_NAME, size_hint: Optional[int] = None) -> VolumeGroup:
        self.volume.create_physical_volume(device)
        self.volume.create_group(name, device)

        size = self.volume.group_size(name)
        if size is None:
            # dry run: nothing was created, fall back to the partition size
            size = size_hint or 0

        logger.info("Created volume group %s on %s (%s)", name, device, format_bytes(size))
        return VolumeGroup(name=name, device=device, size_bytes=size, free_bytes=size)

    def create_volume(self, group: VolumeGroup, name: str, policy: SizePolicy) -> LogicalVolume:
        if group.volume(name) is not None:
            raise ConfigurationError(f"Logical volume {group.name}/{name} already exists")

        if isinstance(policy, FixedBytes):
            if policy.size_bytes <= 0:
                raise ConfigurationError(f"Logical volume {name} needs a positive size")
            if policy.size_bytes > group.free_bytes:
                raise InsufficientFreeSpace(
                    f"{group.name} has {format_bytes(group.free_bytes)} free, "
                    f"{name} needs {format_bytes(policy.size_bytes)}"
                )
            size = policy.size_bytes
            self.volume.create_volume(group.name, name, size)
        elif isinstance(policy, RemainingFree):
            if group.free_bytes <= 0:
                raise InsufficientFreeSpace(f"{group.name} has no free space left for {name}")
            size = group.free_bytes
            self.volume.create_volume(group.name, name, None)
        else:
            raise ConfigurationError(f"Unknown size policy: {policy!r}")

        lv = LogicalVolume(name=name, group=group.name, size_bytes=size, policy=policy)
        group.volumes.append(lv)
        group.free_bytes -= size
        logger.info("Created logical volume %s (%s)", lv.path, format_bytes(size))
        return lv

    def create_swap_and_root(self, group: VolumeGroup, swap_bytes: int) -> Tuple[LogicalVolume, LogicalVolume]:
        swap = self.create_volume(group, SWAP_VOLUME, FixedBytes(swap_bytes))
        root = self.create_volume(group, ROOT_VOLUME, RemainingFree())
        return swap, root
