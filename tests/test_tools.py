import dataclasses

import pytest

from blackstrap.errors import ConfigurationError
from blackstrap.lib import tools as tools_mod
from blackstrap.lib.command import CmdResult
from blackstrap.lib.units import GiB
from blackstrap.models import BlockDeviceSpec, EncryptionMode, PartitionRole
from blackstrap.planner import plan_partitions


def _capture(monkeypatch, stdout=""):
    calls = []

    def fake_run(argv, **kwargs):
        calls.append((list(argv), kwargs))
        return CmdResult(list(argv), 0, stdout, "")

    monkeypatch.setattr(tools_mod, "run_cmd", fake_run)
    return calls


def test_sgdisk_layout(monkeypatch):
    calls = _capture(monkeypatch)
    plan = plan_partitions(BlockDeviceSpec("/dev/sda", 64 * GiB), EncryptionMode.FULL_DISK)
    tools_mod.SystemPartitionTool().apply(plan)

    argvs = [c[0] for c in calls]
    assert argvs[0] == ["sgdisk", "--zap-all", "/dev/sda"]
    assert argvs[1][:3] == ["sgdisk", "--new=1:0:+512M", "--typecode=1:ef00"]
    assert argvs[2][:3] == ["sgdisk", "--new=2:0:+1024M", "--typecode=2:8309"]
    assert argvs[3][:2] == ["sgdisk", "--new=3:0:0"]
    assert argvs[-1] == ["partprobe", "/dev/sda"]


def test_sgdisk_refuses_sizes_it_would_truncate(monkeypatch):
    calls = _capture(monkeypatch)
    plan = plan_partitions(BlockDeviceSpec("/dev/sda", 64 * GiB), EncryptionMode.NONE)
    swap = plan.by_role(PartitionRole.SWAP)
    parts = tuple(dataclasses.replace(p, size_bytes=4_000_000) if p is swap else p for p in plan.partitions)

    with pytest.raises(ConfigurationError, match="whole MiB"):
        tools_mod.SystemPartitionTool().apply(dataclasses.replace(plan, partitions=parts))
    assert calls == []


def test_luks_commands_pass_secret_on_stdin(monkeypatch):
    calls = _capture(monkeypatch)
    crypto = tools_mod.SystemCryptoTool()
    crypto.luks_format("/dev/sda2", 1, "pw")
    crypto.luks_open("/dev/sda2", "cryptboot", "pw")

    (fmt_argv, fmt_kw), (open_argv, open_kw) = calls
    assert fmt_argv == ["cryptsetup", "luksFormat", "--batch-mode", "--type", "luks1", "/dev/sda2", "-"]
    assert fmt_kw["input_text"] == "pw" and fmt_kw["check"] is False
    assert open_argv == ["cryptsetup", "open", "--key-file", "-", "/dev/sda2", "cryptboot"]
    assert "pw" not in fmt_argv + open_argv


def test_lvcreate_policies(monkeypatch):
    calls = _capture(monkeypatch)
    vol = tools_mod.SystemVolumeTool()
    vol.create_volume("vg0", "swap", 4 * GiB)
    vol.create_volume("vg0", "root", None)

    assert calls[0][0] == ["lvcreate", "-L", f"{4 * GiB}b", "vg0", "-n", "swap"]
    assert calls[1][0] == ["lvcreate", "-l", "100%FREE", "vg0", "-n", "root"]


def test_group_size(monkeypatch):
    _capture(monkeypatch, stdout="  53687091200\n")
    assert tools_mod.SystemVolumeTool().group_size("vg0") == 53687091200
    assert tools_mod.SystemVolumeTool(dry_run=True).group_size("vg0") is None


def test_target_files(tmp_path):
    target = tools_mod.SystemTargetTool()
    target.write_file(str(tmp_path), "/etc/hostname", "box\n", mode=0o644)
    assert (tmp_path / "etc" / "hostname").read_text(encoding="utf-8") == "box\n"
    assert target.read_file(str(tmp_path), "/etc/hostname") == "box\n"


def test_target_files_in_dry_run(tmp_path):
    target = tools_mod.SystemTargetTool(dry_run=True)
    target.write_file(str(tmp_path), "/etc/hostname", "box\n")
    assert not (tmp_path / "etc").exists()
    assert target.read_file(str(tmp_path), "/etc/locale.gen") == ""


def test_system_toolset_propagates_dry_run():
    ts = tools_mod.system_toolset(dry_run=True)
    assert ts.dry_run
    assert ts.crypto.dry_run and ts.mount.dry_run and ts.target.dry_run
