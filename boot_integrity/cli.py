from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Callable, Optional

from .engine import DEFAULT_BOOT_DIR, DEFAULT_DB_DIR, IntegrityEngine, IntegrityPaths
from .errors import IntegrityError, NoBaseline, PrivilegeError

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAIL = 1

# swapped out in tests
geteuid: Callable[[], int] = os.geteuid


def _engine_from_args(args: argparse.Namespace) -> IntegrityEngine:
    return IntegrityEngine(IntegrityPaths(sysroot=args.sysroot, boot_dir=args.boot_dir, db_dir=args.db_dir))


# du -h style. This package is copied into installed systems on its own, so it
# cannot use the installer's unit helpers.
def _human(n: int) -> str:
    size = float(n)
    for unit in ("B", "K", "M", "G"):
        if size < 1024:
            return f"{size:.0f}{unit}" if unit == "B" else f"{size:.1f}{unit}"
        size /= 1024
    return f"{size:.1f}T"


def cmd_verify(args: argparse.Namespace) -> int:
    engine = _engine_from_args(args)
    report = engine.verify(verbose=bool(args.verbose))

    print("=== Boot Integrity Verification ===")
    print()
    print(f"Last updated: {report.last_updated}")
    print(f"Files tracked: {report.tracked}")
    print(f"Current files: {report.current}")
    print()

    if report.passed:
        print("[PASS] INTEGRITY CHECK PASSED")
        if report.verified:
            print()
            print("=== Verified Files ===")
            for e in report.verified:
                print(f"  {e.digest}  {e.path}")
        return EXIT_OK

    print("[FAIL] INTEGRITY CHECK FAILED")
    print()
    for title, marker, paths in (
        ("Added files:", "+", report.added),
        ("Removed files:", "-", report.removed),
        ("Modified files:", "~", report.modified),
    ):
        if not paths:
            continue
        print(title)
        for p in paths:
            print(f"  {marker} {p}")
        print()
    print("WARNING: Changes detected")
    print("If legitimate: sudo boot-integrity update")
    return EXIT_FAIL


def cmd_update(args: argparse.Namespace) -> int:
    if geteuid() != 0:
        raise PrivilegeError("Must run as root")

    engine = _engine_from_args(args)
    print("=== Updating Boot Checksums ===")
    print()
    report = engine.update()
    if report.backed_up:
        print(f"[OK] Backed up previous database to {engine.store.backup_path}")
    print(f"Files: {report.file_count}")
    print("[OK] Checksums updated")
    print("Verify: sudo boot-integrity verify")
    return EXIT_OK


def cmd_info(args: argparse.Namespace) -> int:
    engine = _engine_from_args(args)
    info = engine.info()

    print("=== Boot Integrity Info ===")
    print()
    print("Database:")
    print(f"  Files: {info.tracked}")
    print(f"  Updated: {info.last_updated}")
    if info.metadata:
        print()
        print("Metadata:")
        for key, value in info.metadata.items():
            if isinstance(value, dict):
                print(f"  {key}:")
                for k, v in value.items():
                    print(f"    {k} {v}")
            else:
                print(f"  {key}: {value}")
    if info.backup_path:
        print()
        print(f"Backup: {info.backup_path} ({info.backup_entries} files)")
    print()
    print(f"Current: {info.live_files} files, {_human(info.live_bytes)}")
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="boot-integrity", description="Detect changes to an unencrypted /boot")
    p.add_argument("--sysroot", default="/", help="Root of the system to check (default: /)")
    p.add_argument("--boot-dir", default=DEFAULT_BOOT_DIR, help=f"Directory to track (default: {DEFAULT_BOOT_DIR})")
    p.add_argument("--db-dir", default=DEFAULT_DB_DIR, help=f"Checksum database directory (default: {DEFAULT_DB_DIR})")
    p.add_argument("--debug", action="store_true", help="Verbose logging to stderr")

    sub = p.add_subparsers(dest="subcmd", required=True)

    sp = sub.add_parser("verify", help="Compare /boot against the stored checksums")
    sp.add_argument("-v", "--verbose", action="store_true", help="List verified files and digests on PASS")
    sp.set_defaults(func=cmd_verify)

    sp = sub.add_parser("update", help="Record the current /boot as the new baseline (root only)")
    sp.set_defaults(func=cmd_update)

    sp = sub.add_parser("info", help="Show database details")
    sp.set_defaults(func=cmd_info)

    return p


def main(argv: Optional[list[str]] = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        return int(args.func(args))
    except NoBaseline as e:
        print(f"ERROR: {e}", file=sys.stderr)
        print("Create one with: sudo boot-integrity update", file=sys.stderr)
        return EXIT_FAIL
    except IntegrityError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_FAIL
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
