"""Partition layout planning.

Pure computation: nothing here touches a device. The plan is handed to the
partition tool only after the operator has confirmed the destructive run.

Layouts (GPT, 1 MiB aligned, 1 MiB kept free at the end for the backup table):

- none:      EFI 512MiB | swap (fixed)          | root (remainder)
- standard:  EFI 512MiB | boot 1GiB (plain)     | LUKS2 container (remainder) -> LVM swap + root
- full-disk: EFI 512MiB | LUKS1 container 1GiB  | LUKS2 container (remainder) -> LVM swap + root
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from .errors import ConfigurationError, InsufficientCapacity
from .lib.units import GiB, MiB, format_bytes
from .models import BlockDeviceSpec, EncryptionMode, PartitionPlan, PartitionRole, PartitionSpec

logger = logging.getLogger(__name__)

EFI_SIZE = 512 * MiB
BOOT_SIZE = 1 * GiB
DEFAULT_SWAP_SIZE = 4 * GiB
MIN_ROOT_SIZE = 10 * GiB

ALIGNMENT = 1 * MiB
GPT_TAIL_RESERVE = 1 * MiB

TYPE_EFI = "ef00"
TYPE_LINUX = "8300"
TYPE_SWAP = "8200"
TYPE_LUKS = "8309"

# (size or None for remainder, type code, label, role, luks version)
_Layout = List[Tuple[Optional[int], str, str, PartitionRole, Optional[int]]]


def _layout(mode: EncryptionMode, swap_bytes: int) -> _Layout:
    if mode is EncryptionMode.NONE:
        return [
            (EFI_SIZE, TYPE_EFI, "EFI System", PartitionRole.EFI, None),
            (swap_bytes, TYPE_SWAP, "Swap", PartitionRole.SWAP, None),
            (None, TYPE_LINUX, "Linux Root", PartitionRole.ROOT, None),
        ]
    if mode is EncryptionMode.STANDARD:
        return [
            (EFI_SIZE, TYPE_EFI, "EFI System", PartitionRole.EFI, None),
            (BOOT_SIZE, TYPE_LINUX, "Boot", PartitionRole.BOOT, None),
            (None, TYPE_LUKS, "Linux LVM", PartitionRole.LUKS_ROOT, 2),
        ]
    # LUKS1 for /boot: GRUB cannot unlock LUKS2 containers with argon2 KDFs
    return [
        (EFI_SIZE, TYPE_EFI, "EFI System", PartitionRole.EFI, None),
        (BOOT_SIZE, TYPE_LUKS, "Encrypted Boot", PartitionRole.LUKS_BOOT, 1),
        (None, TYPE_LUKS, "Encrypted Root", PartitionRole.LUKS_ROOT, 2),
    ]


def _aligned_swap(swap_bytes: int) -> int:
    """Round the swap size up to the partition alignment; sgdisk only takes whole MiB."""

    if swap_bytes <= 0:
        raise ConfigurationError(f"Swap size must be positive, got {swap_bytes}")
    return -(-swap_bytes // ALIGNMENT) * ALIGNMENT


def required_capacity(
    mode: EncryptionMode,
    *,
    swap_bytes: int = DEFAULT_SWAP_SIZE,
    min_root_bytes: int = MIN_ROOT_SIZE,
) -> int:
    """Smallest device capacity that yields a viable root for ``mode``."""

    swap_bytes = _aligned_swap(swap_bytes)
    fixed = sum(size for size, *_ in _layout(mode, swap_bytes) if size is not None)
    remainder = min_root_bytes
    if mode.encrypted:
        # swap is carved out of the encrypted remainder by LVM
        remainder += swap_bytes
    return ALIGNMENT + fixed + remainder + GPT_TAIL_RESERVE


def plan_partitions(
    device: BlockDeviceSpec,
    mode: EncryptionMode,
    *,
    swap_bytes: int = DEFAULT_SWAP_SIZE,
    min_root_bytes: int = MIN_ROOT_SIZE,
) -> PartitionPlan:
    """Compute the concrete partition table for ``mode`` on ``device``.

    Raises InsufficientCapacity when the remainder partition would fall below the
    minimum viable root size (plus swap, for the LVM layouts).
    The swap size is rounded up to whole MiB; a non-positive swap or root
    minimum raises ConfigurationError.
    """

    swap_bytes = _aligned_swap(swap_bytes)
    if min_root_bytes <= 0:
        raise ConfigurationError(f"Minimum root size must be positive, got {min_root_bytes}")
    needed = required_capacity(mode, swap_bytes=swap_bytes, min_root_bytes=min_root_bytes)
    if device.capacity_bytes < needed:
        raise InsufficientCapacity(
            f"{device.path} has {format_bytes(device.capacity_bytes)}, "
            f"{mode.value} layout needs at least {format_bytes(needed)}"
        )

    usable_end = device.capacity_bytes - GPT_TAIL_RESERVE
    # remainder partitions end on an alignment boundary
    usable_end -= usable_end % ALIGNMENT

    partitions: List[PartitionSpec] = []
    start = ALIGNMENT
    for index, (size, type_code, label, role, luks_version) in enumerate(_layout(mode, swap_bytes), start=1):
        end = usable_end if size is None else start + size
        partitions.append(
            PartitionSpec(
                index=index,
                size_bytes=size,
                type_code=type_code,
                label=label,
                role=role,
                start_bytes=start,
                end_bytes=end,
                luks_version=luks_version,
            )
        )
        start = end

    plan = PartitionPlan(device=device, mode=mode, partitions=tuple(partitions), swap_bytes=swap_bytes)
    for p in plan.partitions:
        logger.info(
            "Planned %s #%d %s (%s)%s",
            device.path,
            p.index,
            p.label,
            format_bytes(p.allocated_bytes),
            f" LUKS{p.luks_version}" if p.luks_version else "",
        )
    return plan
