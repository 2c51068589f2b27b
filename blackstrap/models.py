from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from .errors import ConfigurationError


class EncryptionMode(Enum):
    NONE = "none"
    STANDARD = "standard"
    FULL_DISK = "full-disk"

    @classmethod
    def from_flags(cls, *, use_encryption: bool = True, encrypt_boot: bool = False) -> "EncryptionMode":
        if encrypt_boot and not use_encryption:
            raise ConfigurationError("--encrypt-boot requires encryption to be enabled")
        if not use_encryption:
            return cls.NONE
        return cls.FULL_DISK if encrypt_boot else cls.STANDARD

    @property
    def encrypted(self) -> bool:
        return self is not EncryptionMode.NONE


class PartitionRole(Enum):
    EFI = "efi"
    BOOT = "boot"
    SWAP = "swap"
    ROOT = "root"
    LUKS_BOOT = "luks_boot"
    LUKS_ROOT = "luks_root"


@dataclass(frozen=True)
class BlockDeviceSpec:
    path: str
    capacity_bytes: int

    def partition_path(self, index: int) -> str:
        # nvme/mmcblk/loop devices use a p suffix
        if self.path.endswith(tuple("0123456789")):
            return f"{self.path}p{index}"
        return f"{self.path}{index}"


@dataclass(frozen=True)
class PartitionSpec:
    index: int
    size_bytes: Optional[int]  # None: takes the remainder of the disk
    type_code: str
    label: str
    role: PartitionRole
    start_bytes: int
    end_bytes: int
    luks_version: Optional[int] = None

    @property
    def allocated_bytes(self) -> int:
        return self.end_bytes - self.start_bytes

    @property
    def encrypted(self) -> bool:
        return self.luks_version is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "role": self.role.value,
            "label": self.label,
            "type_code": self.type_code,
            "size_bytes": self.size_bytes,
            "start_bytes": self.start_bytes,
            "end_bytes": self.end_bytes,
            "luks_version": self.luks_version,
        }


@dataclass(frozen=True)
class PartitionPlan:
    device: BlockDeviceSpec
    mode: EncryptionMode
    partitions: Tuple[PartitionSpec, ...]
    swap_bytes: int

    def by_role(self, role: PartitionRole) -> Optional[PartitionSpec]:
        return next((p for p in self.partitions if p.role is role), None)

    def path_for(self, role: PartitionRole) -> str:
        part = self.by_role(role)
        if part is None:
            raise KeyError(f"No {role.value} partition in {self.mode.value} layout")
        return self.device.partition_path(part.index)

    @property
    def total_bytes(self) -> int:
        return sum(p.allocated_bytes for p in self.partitions)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "device": self.device.path,
            "capacity_bytes": self.device.capacity_bytes,
            "mode": self.mode.value,
            "swap_bytes": self.swap_bytes,
            "partitions": [p.to_dict() for p in self.partitions],
        }


@dataclass
class EncryptedContainer:
    partition: str
    luks_version: int
    mapped_name: str
    is_open: bool = False

    @property
    def mapped_path(self) -> str:
        return f"/dev/mapper/{self.mapped_name}"


@dataclass(frozen=True)
class FixedBytes:
    size_bytes: int


@dataclass(frozen=True)
class RemainingFree:
    pass


SizePolicy = Union[FixedBytes, RemainingFree]


@dataclass(frozen=True)
class LogicalVolume:
    name: str
    group: str
    size_bytes: int
    policy: SizePolicy

    @property
    def path(self) -> str:
        return f"/dev/{self.group}/{self.name}"


@dataclass
class VolumeGroup:
    name: str
    device: str
    size_bytes: int
    free_bytes: int
    volumes: List[LogicalVolume] = field(default_factory=list)

    def volume(self, name: str) -> Optional[LogicalVolume]:
        return next((v for v in self.volumes if v.name == name), None)


@dataclass
class TargetDevices:
    """Block devices the filesystems end up on, after encryption and LVM."""

    efi: str
    root: str
    swap: str
    boot: Optional[str] = None


@dataclass(frozen=True)
class MountEntry:
    device: str
    mountpoint: str
    fstype: Optional[str] = None


@dataclass
class MountTable:
    entries: List[MountEntry] = field(default_factory=list)

    def record(self, entry: MountEntry) -> None:
        self.entries.append(entry)

    def teardown_order(self) -> List[MountEntry]:
        return list(reversed(self.entries))
