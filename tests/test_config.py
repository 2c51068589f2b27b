import pytest

from blackstrap.config import InstallConfig, load_install_config
from blackstrap.errors import ConfigurationError
from blackstrap.lib.units import GiB
from blackstrap.models import EncryptionMode


def test_defaults():
    cfg = InstallConfig(raw={})
    assert cfg.device is None
    assert cfg.target_root == "/mnt"
    assert cfg.mode is EncryptionMode.STANDARD
    assert cfg.root_mapped_name == "cryptlvm"
    assert cfg.volume_group == "vg0"
    assert cfg.swap_bytes == 4 * GiB
    assert cfg.min_root_bytes == 10 * GiB
    assert cfg.integrity_db_dir == "/var/lib/boot-checksums"
    assert not cfg.finalize_unmount


def test_load_yaml_profile(tmp_path):
    p = tmp_path / "install.yaml"
    p.write_text(
        "device: /dev/nvme0n1\n"
        "encryption:\n"
        "  encrypt_boot: true\n"
        "  root_mapped_name: cryptroot\n"
        "sizes:\n"
        "  swap: 8GiB\n"
        "system:\n"
        "  hostname: box\n",
        encoding="utf-8",
    )
    cfg = load_install_config(str(p))

    assert cfg.device == "/dev/nvme0n1"
    assert cfg.mode is EncryptionMode.FULL_DISK
    assert cfg.root_mapped_name == "cryptroot"
    assert cfg.swap_bytes == 8 * GiB
    assert cfg.hostname == "box"


def test_load_rejects_non_yaml_and_non_mapping(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_install_config(str(tmp_path / "missing.yaml"))

    txt = tmp_path / "install.txt"
    txt.write_text("device: /dev/sda\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_install_config(str(txt))

    lst = tmp_path / "install.yaml"
    lst.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_install_config(str(lst))


def test_bad_size_is_a_configuration_error():
    with pytest.raises(ConfigurationError, match="sizes.swap"):
        InstallConfig(raw={"sizes": {"swap": "lots"}}).swap_bytes


def test_overrides_layer_on_top():
    base = InstallConfig(raw={"device": "/dev/sda", "encryption": {"enabled": True}})
    cfg = base.with_overrides(device=None, target_root="/target", enabled=False, encrypt_boot=None)

    assert cfg.device == "/dev/sda"
    assert cfg.target_root == "/target"
    assert cfg.mode is EncryptionMode.NONE
    assert base.mode is EncryptionMode.STANDARD


def test_conflicting_flags():
    cfg = InstallConfig(raw={}).with_overrides(enabled=False, encrypt_boot=True)
    with pytest.raises(ConfigurationError):
        cfg.mode


def test_packages_follow_mode():
    cfg = InstallConfig(raw={})
    assert "cryptsetup" in cfg.packages_for(EncryptionMode.STANDARD)
    assert "lvm2" in cfg.packages_for(EncryptionMode.FULL_DISK)
    plain = cfg.packages_for(EncryptionMode.NONE)
    assert "cryptsetup" not in plain
    assert "grub" in plain
    assert len(plain) == len(set(plain))
    assert "python-yaml" in cfg.packages_for(EncryptionMode.STANDARD)
    assert "python-yaml" not in cfg.packages_for(EncryptionMode.FULL_DISK)
    assert "python" not in plain
