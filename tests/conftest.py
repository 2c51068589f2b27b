from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple

import pytest

from blackstrap.config import InstallConfig
from blackstrap.encryption import Passphrase
from blackstrap.lib.command import CmdResult
from blackstrap.lib.tools import Toolset
from blackstrap.lib.units import GiB
from blackstrap.models import BlockDeviceSpec, EncryptionMode, PartitionPlan
from blackstrap.pipeline import ProvisioningContext


class Recorder:
    def __init__(self) -> None:
        self.calls: List[Tuple] = []

    def names(self) -> List[str]:
        return [c[0] for c in self.calls]

    def of(self, name: str) -> List[Tuple]:
        return [c for c in self.calls if c[0] == name]


class FakePartitionTool:
    def __init__(self, rec: Recorder, capacity: int = 64 * GiB, uefi: bool = True, block: bool = True) -> None:
        self.rec = rec
        self.capacity = capacity
        self.uefi = uefi
        self.block = block

    def is_block_device(self, path: str) -> bool:
        return self.block

    def capacity_bytes(self, path: str) -> int:
        return self.capacity

    def booted_in_uefi(self) -> bool:
        return self.uefi

    def apply(self, plan: PartitionPlan) -> None:
        self.rec.calls.append(("partition", plan.device.path, plan.mode))


class FakeCryptoTool:
    def __init__(self, rec: Recorder) -> None:
        self.rec = rec
        self.format_rc = 0
        self.open_rc = 0
        self.secrets: List[str] = []

    def luks_format(self, partition: str, version: int, passphrase: str) -> CmdResult:
        self.rec.calls.append(("luks_format", partition, version))
        self.secrets.append(passphrase)
        return CmdResult(["cryptsetup", "luksFormat", partition], self.format_rc, "", "format error")

    def luks_open(self, partition: str, name: str, passphrase: str) -> CmdResult:
        self.rec.calls.append(("luks_open", partition, name))
        self.secrets.append(passphrase)
        return CmdResult(["cryptsetup", "open", partition, name], self.open_rc, "", "open error")

    def uuid(self, device: str) -> str:
        return f"uuid-of-{device.rsplit('/', 1)[-1]}"


class FakeVolumeTool:
    def __init__(self, rec: Recorder, group_bytes: Optional[int] = 50 * GiB) -> None:
        self.rec = rec
        self.group_bytes = group_bytes

    def create_physical_volume(self, device: str) -> None:
        self.rec.calls.append(("pvcreate", device))

    def create_group(self, name: str, device: str) -> None:
        self.rec.calls.append(("vgcreate", name, device))

    def group_size(self, name: str) -> Optional[int]:
        return self.group_bytes

    def create_volume(self, group: str, name: str, size_bytes: Optional[int]) -> None:
        self.rec.calls.append(("lvcreate", group, name, size_bytes))


class FakeFilesystemTool:
    def __init__(self, rec: Recorder) -> None:
        self.rec = rec

    def make_fat32(self, device: str) -> None:
        self.rec.calls.append(("mkfs.fat", device))

    def make_ext4(self, device: str, label: Optional[str] = None) -> None:
        self.rec.calls.append(("mkfs.ext4", device))

    def make_swap(self, device: str) -> None:
        self.rec.calls.append(("mkswap", device))


class FakeMountTool:
    def __init__(self, rec: Recorder) -> None:
        self.rec = rec

    def make_dir(self, path: str) -> None:
        self.rec.calls.append(("mkdir", path))

    def mount(self, device: str, mountpoint: str) -> None:
        self.rec.calls.append(("mount", device, mountpoint))

    def swapon(self, device: str) -> None:
        self.rec.calls.append(("swapon", device))

    def swapoff(self, device: str) -> None:
        self.rec.calls.append(("swapoff", device))

    def unmount(self, mountpoint: str) -> None:
        self.rec.calls.append(("umount", mountpoint))


class FakePackageTool:
    def __init__(self, rec: Recorder) -> None:
        self.rec = rec

    def install_base(self, target_root: str, packages: Sequence[str]) -> None:
        self.rec.calls.append(("pacstrap", target_root, tuple(packages)))

    def generate_fstab(self, target_root: str) -> str:
        self.rec.calls.append(("genfstab", target_root))
        return "UUID=abcd / ext4 rw 0 1\n"


class FakeTargetTool:
    def __init__(self, rec: Recorder) -> None:
        self.rec = rec
        self.files: Dict[str, str] = {}
        self.modes: Dict[str, int] = {}

    def run(self, target_root: str, argv: Sequence[str]) -> CmdResult:
        self.rec.calls.append(("chroot", tuple(argv)))
        return CmdResult(["arch-chroot", target_root, *argv], 0, "", "")

    def read_file(self, target_root: str, path: str) -> str:
        return self.files.get(path, "")

    def write_file(self, target_root: str, path: str, content: str, *, mode: Optional[int] = None) -> None:
        self.rec.calls.append(("write", path))
        self.files[path] = content
        if mode is not None:
            self.modes[path] = mode


def make_toolset(*, dry_run: bool = True, **kwargs) -> Toolset:
    rec = Recorder()
    ts = Toolset(
        partition=FakePartitionTool(rec, **kwargs),
        crypto=FakeCryptoTool(rec),
        volume=FakeVolumeTool(rec),
        filesystem=FakeFilesystemTool(rec),
        mount=FakeMountTool(rec),
        package=FakePackageTool(rec),
        target=FakeTargetTool(rec),
        dry_run=dry_run,
    )
    return ts


def recorder(ts: Toolset) -> Recorder:
    return ts.partition.rec


def make_context(
    mode: EncryptionMode,
    *,
    capacity: int = 64 * GiB,
    raw: Optional[dict] = None,
    confirmed: bool = True,
    passphrase: Optional[str] = "correct horse",
) -> ProvisioningContext:
    config = InstallConfig(raw=raw or {"target_root": "/mnt"})
    return ProvisioningContext(
        config=config,
        mode=mode,
        device=BlockDeviceSpec("/dev/sda", capacity),
        passphrase=Passphrase(passphrase) if (passphrase and mode.encrypted) else None,
        confirmed=confirmed,
    )


@pytest.fixture
def tools() -> Toolset:
    return make_toolset()


@pytest.fixture
def toolset_factory():
    return make_toolset


@pytest.fixture
def context_factory():
    return make_context


@pytest.fixture
def rec(tools) -> Recorder:
    return recorder(tools)
