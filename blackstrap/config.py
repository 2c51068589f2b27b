from __future__ import annotations

import copy
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from .encryption import DEFAULT_ROOT_MAPPED_NAME
from .errors import ConfigurationError
from .lib.units import parse_size
from .models import EncryptionMode
from .planner import DEFAULT_SWAP_SIZE, MIN_ROOT_SIZE
from .volumes import DEFAULT_GROUP_NAME

DEFAULT_TARGET_ROOT = "/mnt"
DEFAULT_INTEGRITY_DB_DIR = "/var/lib/boot-checksums"

BASE_PACKAGES = ["base", "linux", "linux-firmware", "sudo", "networkmanager"]
BOOTLOADER_PACKAGES = ["grub", "efibootmgr", "dosfstools"]
ENCRYPTION_PACKAGES = ["lvm2", "cryptsetup"]
# runtime for the boot-integrity tool copied into Standard installs
INTEGRITY_PACKAGES = ["python", "python-yaml"]


@dataclass(frozen=True)
class InstallConfig:
    """Install profile.

    Example ``install.yaml``::

        device: /dev/nvme0n1
        target_root: /mnt
        encryption:
          enabled: true
          encrypt_boot: false
          root_mapped_name: cryptlvm
          volume_group: vg0
        sizes:
          swap: 8GiB
          min_root: 10GiB
        packages: [base, linux, linux-firmware, sudo, networkmanager]
        system:
          hostname: archbox
          timezone: Europe/Berlin
          locale: en_US.UTF-8
        finalize_unmount: false
    """

    raw: Dict[str, Any]

    def _section(self, name: str) -> Dict[str, Any]:
        return self.raw.get(name) or {}

    @property
    def device(self) -> Optional[str]:
        dev = self.raw.get("device")
        return str(dev) if dev else None

    @property
    def target_root(self) -> str:
        return str(self.raw.get("target_root") or DEFAULT_TARGET_ROOT)

    @property
    def use_encryption(self) -> bool:
        return bool(self._section("encryption").get("enabled", True))

    @property
    def encrypt_boot(self) -> bool:
        return bool(self._section("encryption").get("encrypt_boot", False))

    @property
    def mode(self) -> EncryptionMode:
        return EncryptionMode.from_flags(use_encryption=self.use_encryption, encrypt_boot=self.encrypt_boot)

    @property
    def root_mapped_name(self) -> str:
        return str(self._section("encryption").get("root_mapped_name") or DEFAULT_ROOT_MAPPED_NAME)

    @property
    def volume_group(self) -> str:
        return str(self._section("encryption").get("volume_group") or DEFAULT_GROUP_NAME)

    @property
    def swap_bytes(self) -> int:
        return _size(self._section("sizes").get("swap"), DEFAULT_SWAP_SIZE, "sizes.swap")

    @property
    def min_root_bytes(self) -> int:
        return _size(self._section("sizes").get("min_root"), MIN_ROOT_SIZE, "sizes.min_root")

    @property
    def base_packages(self) -> List[str]:
        return [str(p) for p in (self.raw.get("packages") or BASE_PACKAGES)]

    def packages_for(self, mode: EncryptionMode) -> List[str]:
        """Everything pacstrap installs for ``mode`` on top of the base set."""

        pkgs = list(self.base_packages)
        extra = BOOTLOADER_PACKAGES + (ENCRYPTION_PACKAGES if mode.encrypted else [])
        if mode is EncryptionMode.STANDARD:
            extra = extra + INTEGRITY_PACKAGES
        for p in extra:
            if p not in pkgs:
                pkgs.append(p)
        return pkgs

    @property
    def hostname(self) -> str:
        return str(self._section("system").get("hostname") or "archlinux")

    @property
    def timezone(self) -> str:
        return str(self._section("system").get("timezone") or "UTC")

    @property
    def locale(self) -> str:
        return str(self._section("system").get("locale") or "en_US.UTF-8")

    @property
    def integrity_db_dir(self) -> str:
        return str(self._section("integrity").get("db_dir") or DEFAULT_INTEGRITY_DB_DIR)

    @property
    def finalize_unmount(self) -> bool:
        return bool(self.raw.get("finalize_unmount", False))

    def with_overrides(self, **overrides: Any) -> "InstallConfig":
        """Return a copy with command-line values layered on top (``None`` means not given)."""

        raw = copy.deepcopy(self.raw)
        for key, value in overrides.items():
            if value is None:
                continue
            if key in {"enabled", "encrypt_boot"}:
                raw.setdefault("encryption", {})[key] = value
            else:
                raw[key] = value
        return InstallConfig(raw=raw)


def _size(value: Any, default: int, key: str) -> int:
    if value is None:
        return default
    try:
        return parse_size(value)
    except ValueError as e:
        raise ConfigurationError(f"{key}: {e}") from e


def load_install_config(path: str) -> InstallConfig:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(path)

    if p.suffix.lower() not in {".yaml", ".yml"}:
        raise ConfigurationError("install config must be YAML")

    try:
        import yaml  # type: ignore
    except ImportError as e:
        raise RuntimeError("PyYAML is required to read the install config") from e

    raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ConfigurationError(f"{path} must contain a mapping/object")

    return InstallConfig(raw=raw)
