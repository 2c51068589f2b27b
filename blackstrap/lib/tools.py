"""External tool capability set.

Every destructive or system-level action the installer takes goes through one
of these protocols. ``system_toolset()`` returns the adapters that invoke the
real binaries; tests swap in recording fakes so the pipeline can be exercised
without block devices.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, Sequence

from ..errors import ConfigurationError
from ..models import PartitionPlan
from .block import get_size_bytes, get_uuid, is_block_device
from .chroot import chroot_cmd
from .command import CmdResult, run_cmd
from .firmware import booted_in_uefi
from .units import MiB

logger = logging.getLogger(__name__)


class PartitionTool(Protocol):
    def is_block_device(self, path: str) -> bool:
        ...

    def capacity_bytes(self, path: str) -> int:
        ...

    def booted_in_uefi(self) -> bool:
        ...

    def apply(self, plan: PartitionPlan) -> None:
        ...


class CryptoTool(Protocol):
    def luks_format(self, partition: str, version: int, passphrase: str) -> CmdResult:
        ...

    def luks_open(self, partition: str, name: str, passphrase: str) -> CmdResult:
        ...

    def uuid(self, device: str) -> str:
        ...


class VolumeTool(Protocol):
    def create_physical_volume(self, device: str) -> None:
        ...

    def create_group(self, name: str, device: str) -> None:
        ...

    def group_size(self, name: str) -> Optional[int]:
        ...

    def create_volume(self, group: str, name: str, size_bytes: Optional[int]) -> None:
        ...


class FilesystemTool(Protocol):
    def make_fat32(self, device: str) -> None:
        ...

    def make_ext4(self, device: str, label: Optional[str] = None) -> None:
        ...

    def make_swap(self, device: str) -> None:
        ...


class MountTool(Protocol):
    def make_dir(self, path: str) -> None:
        ...

    def mount(self, device: str, mountpoint: str) -> None:
        ...

    def swapon(self, device: str) -> None:
        ...

    def swapoff(self, device: str) -> None:
        ...

    def unmount(self, mountpoint: str) -> None:
        ...


class PackageTool(Protocol):
    def install_base(self, target_root: str, packages: Sequence[str]) -> None:
        ...

    def generate_fstab(self, target_root: str) -> str:
        ...


class TargetTool(Protocol):
    def run(self, target_root: str, argv: Sequence[str]) -> CmdResult:
        ...

    def read_file(self, target_root: str, path: str) -> str:
        ...

    def write_file(self, target_root: str, path: str, content: str, *, mode: Optional[int] = None) -> None:
        ...


@dataclass(frozen=True)
class Toolset:
    partition: PartitionTool
    crypto: CryptoTool
    volume: VolumeTool
    filesystem: FilesystemTool
    mount: MountTool
    package: PackageTool
    target: TargetTool
    dry_run: bool = False


@dataclass(frozen=True)
class SystemPartitionTool:
    dry_run: bool = False

    def is_block_device(self, path: str) -> bool:
        return is_block_device(path)

    def capacity_bytes(self, path: str) -> int:
        return get_size_bytes(path)

    def booted_in_uefi(self) -> bool:
        return booted_in_uefi()

    def apply(self, plan: PartitionPlan) -> None:
        disk = plan.device.path
        for part in plan.partitions:
            if part.size_bytes is not None and part.size_bytes % MiB:
                raise ConfigurationError(f"Partition {part.index} size {part.size_bytes} is not a whole MiB")

        run_cmd(["sgdisk", "--zap-all", disk], dry_run=self.dry_run)

        for part in plan.partitions:
            end = "0" if part.size_bytes is None else f"+{part.size_bytes // MiB}M"
            run_cmd(
                [
                    "sgdisk",
                    f"--new={part.index}:0:{end}",
                    f"--typecode={part.index}:{part.type_code}",
                    f"--change-name={part.index}:{part.label}",
                    disk,
                ],
                dry_run=self.dry_run,
            )

        # Inform kernel
        run_cmd(["partprobe", disk], dry_run=self.dry_run)


@dataclass(frozen=True)
class SystemCryptoTool:
    dry_run: bool = False

    def luks_format(self, partition: str, version: int, passphrase: str) -> CmdResult:
        return run_cmd(
            ["cryptsetup", "luksFormat", "--batch-mode", "--type", f"luks{version}", partition, "-"],
            input_text=passphrase,
            check=False,
            dry_run=self.dry_run,
        )

    def luks_open(self, partition: str, name: str, passphrase: str) -> CmdResult:
        return run_cmd(
            ["cryptsetup", "open", "--key-file", "-", partition, name],
            input_text=passphrase,
            check=False,
            dry_run=self.dry_run,
        )

    def uuid(self, device: str) -> str:
        return get_uuid(device, dry_run=self.dry_run)


@dataclass(frozen=True)
class SystemVolumeTool:
    dry_run: bool = False

    def create_physical_volume(self, device: str) -> None:
        run_cmd(["pvcreate", device], dry_run=self.dry_run)

    def create_group(self, name: str, device: str) -> None:
        run_cmd(["vgcreate", name, device], dry_run=self.dry_run)

    def group_size(self, name: str) -> Optional[int]:
        if self.dry_run:
            # the group was never created
            return None
        r = run_cmd(["vgs", "--noheadings", "--units", "b", "--nosuffix", "-o", "vg_size", name])
        return int(r.stdout.strip())

    def create_volume(self, group: str, name: str, size_bytes: Optional[int]) -> None:
        if size_bytes is None:
            argv = ["lvcreate", "-l", "100%FREE", group, "-n", name]
        else:
            argv = ["lvcreate", "-L", f"{size_bytes}b", group, "-n", name]
        run_cmd(argv, dry_run=self.dry_run)


@dataclass(frozen=True)
class SystemFilesystemTool:
    dry_run: bool = False

    def make_fat32(self, device: str) -> None:
        run_cmd(["mkfs.fat", "-F32", device], dry_run=self.dry_run)

    def make_ext4(self, device: str, label: Optional[str] = None) -> None:
        argv = ["mkfs.ext4", "-F"]
        if label:
            argv += ["-L", label]
        run_cmd([*argv, device], dry_run=self.dry_run)

    def make_swap(self, device: str) -> None:
        run_cmd(["mkswap", device], dry_run=self.dry_run)


@dataclass(frozen=True)
class SystemMountTool:
    dry_run: bool = False

    def make_dir(self, path: str) -> None:
        run_cmd(["mkdir", "-p", path], dry_run=self.dry_run)

    def mount(self, device: str, mountpoint: str) -> None:
        run_cmd(["mount", device, mountpoint], dry_run=self.dry_run)

    def swapon(self, device: str) -> None:
        run_cmd(["swapon", device], dry_run=self.dry_run)

    def swapoff(self, device: str) -> None:
        run_cmd(["swapoff", device], dry_run=self.dry_run)

    def unmount(self, mountpoint: str) -> None:
        run_cmd(["umount", mountpoint], dry_run=self.dry_run)


@dataclass(frozen=True)
class SystemPackageTool:
    dry_run: bool = False

    def install_base(self, target_root: str, packages: Sequence[str]) -> None:
        run_cmd(["pacstrap", "-K", target_root, *packages], dry_run=self.dry_run)

    def generate_fstab(self, target_root: str) -> str:
        r = run_cmd(["genfstab", "-U", target_root], dry_run=self.dry_run)
        return r.stdout


@dataclass(frozen=True)
class SystemTargetTool:
    dry_run: bool = False

    def run(self, target_root: str, argv: Sequence[str]) -> CmdResult:
        return chroot_cmd(target_root, argv, dry_run=self.dry_run)

    def read_file(self, target_root: str, path: str) -> str:
        p = _in_target(target_root, path)
        if self.dry_run and not p.exists():
            return ""
        return p.read_text(encoding="utf-8")

    def write_file(self, target_root: str, path: str, content: str, *, mode: Optional[int] = None) -> None:
        p = _in_target(target_root, path)
        if self.dry_run:
            logger.info("DRY-RUN write %s (%d bytes)", p, len(content))
            return
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(content, encoding="utf-8")
        if mode is not None:
            os.chmod(p, mode)
        logger.info("Wrote %s", p)


def _in_target(target_root: str, path: str) -> Path:
    return Path(target_root) / path.lstrip("/")


def system_toolset(*, dry_run: bool = False) -> Toolset:
    return Toolset(
        partition=SystemPartitionTool(dry_run=dry_run),
        crypto=SystemCryptoTool(dry_run=dry_run),
        volume=SystemVolumeTool(dry_run=dry_run),
        filesystem=SystemFilesystemTool(dry_run=dry_run),
        mount=SystemMountTool(dry_run=dry_run),
        package=SystemPackageTool(dry_run=dry_run),
        target=SystemTargetTool(dry_run=dry_run),
        dry_run=dry_run,
    )
