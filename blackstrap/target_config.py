"""Configuration applied inside the freshly installed target.

Edits are computed as plain text transforms (easy to test) and written through
the target tool; commands run inside the target via arch-chroot.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Callable, List, Mapping, Optional

import boot_integrity
from boot_integrity.engine import IntegrityEngine, IntegrityPaths
from boot_integrity.hook import HOOK_PATH, render_hook

from .encryption import BOOT_MAPPED_NAME
from .errors import ConfigurationError
from .lib.tools import Toolset
from .models import EncryptionMode, PartitionRole
from .pipeline import ProvisioningContext

logger = logging.getLogger(__name__)

BASE_HOOKS = ["base", "udev", "autodetect", "modconf", "kms", "keyboard", "keymap", "consolefont", "block"]
ENCRYPTED_HOOKS = [*BASE_HOOKS, "encrypt", "lvm2", "filesystems", "fsck"]
PLAIN_HOOKS = [*BASE_HOOKS, "filesystems", "fsck"]

EFI_DIRECTORY = "/boot/EFI"
BOOTLOADER_ID = "grub_uefi"

INTEGRITY_LIB_DIR = "/usr/local/lib/boot-integrity"
INTEGRITY_COMMAND_PATH = "/usr/local/bin/boot-integrity"


def mkinitcpio_hooks(mode: EncryptionMode) -> List[str]:
    return list(ENCRYPTED_HOOKS if mode.encrypted else PLAIN_HOOKS)


def _set_line(text: str, pattern: str, line: str) -> str:
    """Replace the first line matching ``pattern`` (commented or not) or append ``line``."""

    rx = re.compile(pattern, re.MULTILINE)
    if rx.search(text):
        return rx.sub(lambda _m: line, text, count=1)
    if text and not text.endswith("\n"):
        text += "\n"
    return text + line + "\n"


def set_mkinitcpio_hooks(conf: str, hooks: List[str]) -> str:
    return _set_line(conf, r"^HOOKS=.*$", f"HOOKS=({' '.join(hooks)})")


def set_grub_defaults(conf: str, *, cryptdevice: Optional[str] = None, enable_cryptodisk: bool = False) -> str:
    if cryptdevice:
        conf = _set_line(conf, r"^GRUB_CMDLINE_LINUX=.*$", f'GRUB_CMDLINE_LINUX="cryptdevice={cryptdevice}"')
    if enable_cryptodisk:
        conf = _set_line(conf, r"^#?\s*GRUB_ENABLE_CRYPTODISK=.*$", "GRUB_ENABLE_CRYPTODISK=y")
    return conf


def enable_locale(locale_gen: str, locale: str) -> str:
    """Uncomment ``locale`` in locale.gen, or add it when the file does not list it."""

    rx = re.compile(rf"^#\s*({re.escape(locale)}\s.*)$", re.MULTILINE)
    if rx.search(locale_gen):
        return rx.sub(lambda m: m.group(1), locale_gen, count=1)
    if re.search(rf"^{re.escape(locale)}\s", locale_gen, re.MULTILINE):
        return locale_gen
    charset = locale.split(".", 1)[1] if "." in locale else "UTF-8"
    if locale_gen and not locale_gen.endswith("\n"):
        locale_gen += "\n"
    return locale_gen + f"{locale} {charset}\n"


def hosts_file(hostname: str) -> str:
    return (
        "127.0.0.1   localhost\n"
        "::1         localhost\n"
        f"127.0.1.1   {hostname}.localdomain {hostname}\n"
    )


def crypttab_line(boot_uuid: str) -> str:
    return f"{BOOT_MAPPED_NAME} UUID={boot_uuid} none luks"


def grub_install_argv(mode: EncryptionMode) -> List[str]:
    argv = [
        "grub-install",
        "--target=x86_64-efi",
        f"--efi-directory={EFI_DIRECTORY}",
        f"--bootloader-id={BOOTLOADER_ID}",
        "--recheck",
    ]
    if mode is EncryptionMode.FULL_DISK:
        argv.append("--modules=part_gpt part_msdos luks cryptodisk")
    return argv


def _append(tools: Toolset, target: str, path: str, content: str) -> None:
    existing = tools.target.read_file(target, path)
    if existing and not existing.endswith("\n"):
        existing += "\n"
    tools.target.write_file(target, path, existing + content)


def _edit(tools: Toolset, target: str, path: str, transform: Callable[[str], str]) -> None:
    tools.target.write_file(target, path, transform(tools.target.read_file(target, path)))


def configure_target(ctx: ProvisioningContext, tools: Toolset) -> None:
    cfg = ctx.config
    target = ctx.target_root
    run = tools.target.run

    fstab = tools.package.generate_fstab(target)
    _append(tools, target, "/etc/fstab", fstab)

    run(target, ["ln", "-sf", f"/usr/share/zoneinfo/{cfg.timezone}", "/etc/localtime"])
    run(target, ["hwclock", "--systohc"])

    _edit(tools, target, "/etc/locale.gen", lambda t: enable_locale(t, cfg.locale))
    run(target, ["locale-gen"])
    tools.target.write_file(target, "/etc/locale.conf", f"LANG={cfg.locale}\n")

    tools.target.write_file(target, "/etc/hostname", f"{cfg.hostname}\n")
    tools.target.write_file(target, "/etc/hosts", hosts_file(cfg.hostname))

    if ctx.mode.encrypted:
        hooks = mkinitcpio_hooks(ctx.mode)
        _edit(tools, target, "/etc/mkinitcpio.conf", lambda t: set_mkinitcpio_hooks(t, hooks))
    run(target, ["mkinitcpio", "-P"])

    if "networkmanager" in cfg.packages_for(ctx.mode):
        run(target, ["systemctl", "enable", "NetworkManager"])

    configure_bootloader(ctx, tools)

    if ctx.mode is EncryptionMode.STANDARD:
        ctx.integrity_seeded = seed_integrity(ctx, tools)


def configure_bootloader(ctx: ProvisioningContext, tools: Toolset) -> None:
    target = ctx.target_root
    plan = ctx.plan
    if plan is None:
        raise ConfigurationError("No partition plan on the context")

    if ctx.mode.encrypted:
        root_uuid = tools.crypto.uuid(plan.path_for(PartitionRole.LUKS_ROOT))
        cryptdevice = f"UUID={root_uuid}:{ctx.config.root_mapped_name}"
        full_disk = ctx.mode is EncryptionMode.FULL_DISK
        _edit(
            tools,
            target,
            "/etc/default/grub",
            lambda t: set_grub_defaults(t, cryptdevice=cryptdevice, enable_cryptodisk=full_disk),
        )
        if full_disk:
            boot_uuid = tools.crypto.uuid(plan.path_for(PartitionRole.LUKS_BOOT))
            _append(tools, target, "/etc/crypttab", crypttab_line(boot_uuid) + "\n")
            logger.warning("Encrypted /boot: the passphrase is asked twice at boot (GRUB, then the kernel)")

    tools.target.run(target, grub_install_argv(ctx.mode))
    tools.target.run(target, ["grub-mkconfig", "-o", "/boot/grub/grub.cfg"])


def integrity_launcher() -> str:
    return (
        "#!/bin/sh\n"
        f"PYTHONPATH={INTEGRITY_LIB_DIR} exec python3 -m boot_integrity.cli \"$@\"\n"
    )


def install_integrity_tool(ctx: ProvisioningContext, tools: Toolset) -> List[str]:
    """Copy the boot_integrity package into the target and put ``boot-integrity`` on PATH."""

    package_dir = Path(boot_integrity.__file__).parent
    written: List[str] = []
    for src in sorted(package_dir.glob("*.py")):
        dest = f"{INTEGRITY_LIB_DIR}/boot_integrity/{src.name}"
        tools.target.write_file(ctx.target_root, dest, src.read_text(encoding="utf-8"))
        written.append(dest)

    tools.target.write_file(ctx.target_root, INTEGRITY_COMMAND_PATH, integrity_launcher(), mode=0o755)
    written.append(INTEGRITY_COMMAND_PATH)
    logger.info("Installed boot-integrity into %s (%d files)", ctx.target_root, len(written))
    return written


def seed_integrity(
    ctx: ProvisioningContext,
    tools: Toolset,
    *,
    package_query: Optional[Callable[[str], Mapping[str, str]]] = None,
) -> bool:
    """Install the boot-integrity command and pacman reminder hook, then record the initial /boot baseline."""

    install_integrity_tool(ctx, tools)
    tools.target.write_file(ctx.target_root, HOOK_PATH, render_hook())

    if tools.dry_run:
        logger.info("DRY-RUN seed boot checksums under %s%s", ctx.target_root, ctx.config.integrity_db_dir)
        return False

    engine = IntegrityEngine(
        IntegrityPaths(sysroot=ctx.target_root, db_dir=ctx.config.integrity_db_dir),
        package_query=package_query,
    )
    report = engine.update()
    logger.info("Seeded boot checksums: %d files", report.file_count)
    return True
