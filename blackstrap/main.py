from __future__ import annotations

import argparse
import getpass
import logging
import os
import sys
from typing import Callable, List, Optional

from .config import InstallConfig, load_install_config
from .encryption import Passphrase, confirm_passphrase
from .errors import BlackstrapError, ConfigurationError, PassphraseError, StageFailed
from .lib.tools import Toolset, system_toolset
from .lib.units import format_bytes
from .logging_utils import DEFAULT_LOG_PATH, configure_logging
from .models import EncryptionMode, PartitionPlan
from .pipeline import ProvisioningContext, Step, run_pipeline
from .planner import plan_partitions
from .state_store import save_record
from .steps import (
    ConfigureTargetStep,
    CreateVolumesStep,
    FinalizeStep,
    FormatStep,
    InstallBaseStep,
    MountStep,
    OpenContainersStep,
    PartitionStep,
)
from .steps.step_10_partition import check_preconditions, probe_device

logger = logging.getLogger(__name__)

DEFAULT_STATE_PATH = "/var/lib/blackstrap/run.json"
PASSPHRASE_ENV = "BLACKSTRAP_PASSPHRASE"

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2


def build_steps() -> List[Step]:
    return [
        PartitionStep(),
        OpenContainersStep(),
        CreateVolumesStep(),
        FormatStep(),
        MountStep(),
        InstallBaseStep(),
        ConfigureTargetStep(),
        FinalizeStep(),
    ]


def read_passphrase(prompt: Callable[[str], str] = getpass.getpass) -> Passphrase:
    """Take the passphrase from the environment for unattended runs, otherwise prompt twice."""

    env_value = os.environ.get(PASSPHRASE_ENV)
    if env_value:
        return Passphrase(env_value)
    first = prompt("Encryption passphrase: ")
    second = prompt("Confirm passphrase: ")
    return confirm_passphrase(first, second)


def describe_plan(plan: PartitionPlan) -> str:
    lines = [f"Target: {plan.device.path} ({format_bytes(plan.device.capacity_bytes)}), mode: {plan.mode.value}"]
    for p in plan.partitions:
        luks = f" [LUKS{p.luks_version}]" if p.luks_version else ""
        lines.append(f"  {plan.device.partition_path(p.index)}  {format_bytes(p.allocated_bytes):>12}  {p.label}{luks}")
    if plan.mode.encrypted:
        lines.append(f"  LVM: swap {format_bytes(plan.swap_bytes)}, root takes the rest")
    if plan.mode is EncryptionMode.FULL_DISK:
        lines.append("  The passphrase will be asked twice at boot (GRUB, then the kernel).")
    elif plan.mode is EncryptionMode.STANDARD:
        lines.append("  /boot stays unencrypted; boot integrity checksums will be recorded.")
    return "\n".join(lines)


def confirm_destruction(device: str, *, assume_yes: bool, ask: Callable[[str], str] = input) -> bool:
    if assume_yes:
        return True
    answer = ask(f"WARNING: This will ERASE ALL DATA on {device}. Continue? (y/N) ")
    return answer.strip().lower() == "y"


def print_summary(ctx: ProvisioningContext) -> None:
    print(f"Installation finished ({ctx.mode.value}). Stages: {' -> '.join(ctx.history)}")
    if ctx.integrity_seeded:
        print("Boot integrity checksums recorded. On the installed system:")
        print("  sudo boot-integrity verify      - Check for modifications")
        print("  sudo boot-integrity verify -v   - Detailed check with checksums")
        print("  sudo boot-integrity update      - Update after legitimate changes")
        print("  boot-integrity info             - View checksum database info")


def write_run_record(ctx: ProvisioningContext, state_path: str) -> bool:
    try:
        save_record(state_path, ctx.to_record())
    except OSError as e:
        logger.error("Could not write run record to %s: %s", state_path, e)
        return False
    return True


def run(ctx: ProvisioningContext, *, tools: Toolset, state_path: str = DEFAULT_STATE_PATH) -> ProvisioningContext:
    """Run the provisioning pipeline and persist the run record, whatever the outcome.

    A record that cannot be written is logged and never replaces the pipeline's own error.
    """

    try:
        result = run_pipeline(ctx=ctx, steps=build_steps(), tools=tools)
        return result.context
    except StageFailed:
        logger.exception("Installer failed")
        raise
    finally:
        write_run_record(ctx, state_path)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="blackstrap", description="Provision an Arch Linux install onto a disk")
    p.add_argument("--config", default=None, help="Install profile (yaml)")
    p.add_argument("--device", default=None, help="Target block device, e.g. /dev/nvme0n1")
    p.add_argument("--target", default=None, help="Mount point for the new system (default: /mnt)")
    p.add_argument("--no-encryption", action="store_true", help="Plain partitions, no LUKS/LVM")
    p.add_argument("--encrypt-boot", action="store_true", help="Encrypt /boot too (LUKS1, unlocked by GRUB)")
    p.add_argument("--yes", action="store_true", help="Do not ask before wiping the device")
    p.add_argument("--dry-run", action="store_true", help="Log every command without running it")
    p.add_argument("--state", default=DEFAULT_STATE_PATH, help="Where to write the run record (json|yaml)")
    p.add_argument("--log", default=DEFAULT_LOG_PATH, help="Path to installer log")
    p.add_argument("--debug", action="store_true", help="Log tool output as well")
    return p


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    configure_logging(log_path=args.log, level=logging.DEBUG if args.debug else logging.INFO)

    try:
        config = load_install_config(args.config) if args.config else InstallConfig(raw={})
        config = config.with_overrides(
            device=args.device,
            target_root=args.target,
            enabled=False if args.no_encryption else None,
            encrypt_boot=True if args.encrypt_boot else None,
        )
        mode = config.mode
        if not config.device:
            raise ConfigurationError("No target device given (--device or 'device' in the profile)")

        tools = system_toolset(dry_run=args.dry_run)
        device = probe_device(config.device, tools)
        plan = plan_partitions(device, mode, swap_bytes=config.swap_bytes, min_root_bytes=config.min_root_bytes)
        print(describe_plan(plan))

        ctx = ProvisioningContext(
            config=config,
            mode=mode,
            device=device,
            passphrase=read_passphrase() if mode.encrypted else None,
            plan=plan,
        )
        check_preconditions(ctx, tools)
    except (ConfigurationError, PassphraseError, FileNotFoundError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_USAGE
    except BlackstrapError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_FAILED

    if not confirm_destruction(device.path, assume_yes=args.yes):
        print("Aborted; nothing was changed.")
        return EXIT_FAILED
    ctx.confirmed = True

    try:
        ctx = run(ctx, tools=tools, state_path=args.state)
    except StageFailed as e:
        print(f"ERROR: {e}", file=sys.stderr)
        print("Nothing was rolled back; inspect the device before retrying.", file=sys.stderr)
        return EXIT_FAILED
    except KeyboardInterrupt:
        return 130

    print_summary(ctx)
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
