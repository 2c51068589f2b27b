import hashlib
import os
import stat

import pytest

from boot_integrity.errors import ManifestFormatError, NoBaseline
from boot_integrity.manifest import ChecksumEntry, ChecksumManifest, diff_manifests
from boot_integrity.store import ChecksumStore, sha256_file


@pytest.fixture
def boot(tmp_path):
    root = tmp_path / "boot"
    (root / "EFI" / "grub_uefi").mkdir(parents=True)
    (root / "vmlinuz-linux").write_bytes(b"kernel image")
    (root / "initramfs-linux.img").write_bytes(b"initramfs" * 10000)
    (root / "EFI" / "grub_uefi" / "grubx64.efi").write_bytes(b"efi")
    return root


def test_scan_is_deterministic(boot, tmp_path):
    a = ChecksumStore.scan(boot, sysroot=tmp_path)
    b = ChecksumStore.scan(boot, sysroot=tmp_path)
    assert a == b
    assert a.serialize() == b.serialize()
    assert a.paths == sorted(a.paths)
    assert a.paths[0] == "/boot/EFI/grub_uefi/grubx64.efi"


def test_scan_matches_sha256sum_digests(boot, tmp_path):
    m = ChecksumStore.scan(boot, sysroot=tmp_path)
    assert m.digests["/boot/vmlinuz-linux"] == hashlib.sha256(b"kernel image").hexdigest()
    assert m.digests["/boot/initramfs-linux.img"] == sha256_file(boot / "initramfs-linux.img")


def test_scan_skips_symlinks(boot, tmp_path):
    os.symlink(boot / "vmlinuz-linux", boot / "vmlinuz-link")
    assert "/boot/vmlinuz-link" not in ChecksumStore.scan(boot, sysroot=tmp_path).digests


def test_save_load_round_trip(boot, tmp_path):
    store = ChecksumStore(tmp_path / "db")
    scanned = ChecksumStore.scan(boot, sysroot=tmp_path)
    store.save(scanned)

    assert store.load() == scanned
    assert stat.S_IMODE(os.stat(store.manifest_path).st_mode) == 0o600
    for line in store.manifest_path.read_text(encoding="utf-8").splitlines():
        digest, path = line.split("  ", 1)
        assert len(digest) == 64 and path.startswith("/boot/")


def test_load_without_baseline(tmp_path):
    with pytest.raises(NoBaseline):
        ChecksumStore(tmp_path / "db").load()


def test_save_keeps_exactly_one_backup(boot, tmp_path):
    store = ChecksumStore(tmp_path / "db")
    first = ChecksumStore.scan(boot, sysroot=tmp_path)
    store.save(first)
    assert not store.backup_exists()

    (boot / "vmlinuz-linux").write_bytes(b"new kernel")
    store.save(ChecksumStore.scan(boot, sysroot=tmp_path))
    store.save(ChecksumStore.scan(boot, sysroot=tmp_path))

    backup = store.load_backup()
    assert backup is not None
    assert backup.digests["/boot/vmlinuz-linux"] == store.load().digests["/boot/vmlinuz-linux"]
    assert sorted(p.name for p in store.db_dir.iterdir()) == ["boot.sha256", "boot.sha256.backup"]


def test_metadata_is_yaml(boot, tmp_path):
    store = ChecksumStore(tmp_path / "db")
    m = ChecksumStore.scan(boot, sysroot=tmp_path)
    store.save(ChecksumManifest.build(m.entries, generated_at="2024-01-01 00:00:00 UTC", metadata={"files": 3}))

    assert store.load_metadata() == {"files": 3}
    assert store.metadata_path.read_text(encoding="utf-8") == "files: 3\n"


def test_malformed_manifest(tmp_path):
    store = ChecksumStore(tmp_path)
    store.manifest_path.write_text("not a checksum line\n", encoding="utf-8")
    with pytest.raises(ManifestFormatError):
        store.load()


def test_paths_with_spaces_survive():
    text = f"{'a' * 64}  /boot/EFI/Microsoft Boot/bootmgfw.efi\n"
    m = ChecksumManifest.parse(text)
    assert m.paths == ["/boot/EFI/Microsoft Boot/bootmgfw.efi"]
    assert m.serialize() == text


def test_diff_categories():
    old = ChecksumManifest.build(
        [ChecksumEntry("/boot/a", "1" * 64), ChecksumEntry("/boot/b", "2" * 64), ChecksumEntry("/boot/c", "3" * 64)]
    )
    new = ChecksumManifest.build(
        [ChecksumEntry("/boot/a", "1" * 64), ChecksumEntry("/boot/b", "9" * 64), ChecksumEntry("/boot/d", "3" * 64)]
    )
    d = diff_manifests(old, new)
    assert d.added == ("/boot/d",)
    assert d.removed == ("/boot/c",)
    assert d.modified == ("/boot/b",)
    assert diff_manifests(old, old).clean
