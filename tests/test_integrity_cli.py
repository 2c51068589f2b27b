import pytest

from boot_integrity import cli
from boot_integrity import exec as sysexec


@pytest.fixture
def sysroot(tmp_path, monkeypatch):
    monkeypatch.setattr(sysexec, "boot_package_versions", lambda sysroot: {"linux": "6.9.1-1"})
    monkeypatch.setattr(cli, "geteuid", lambda: 0)
    (tmp_path / "boot").mkdir()
    (tmp_path / "boot" / "vmlinuz-linux").write_bytes(b"kernel")
    return tmp_path


def _run(sysroot, *args):
    return cli.main(["--sysroot", str(sysroot), *args])


def test_verify_without_database(sysroot, capsys):
    assert _run(sysroot, "verify") == 1
    assert "No checksum database" in capsys.readouterr().err


def test_update_then_verify(sysroot, capsys):
    assert _run(sysroot, "update") == 0
    assert "Checksums updated" in capsys.readouterr().out

    assert _run(sysroot, "verify", "-v") == 0
    out = capsys.readouterr().out
    assert "[PASS]" in out
    assert "/boot/vmlinuz-linux" in out


def test_verify_reports_changes(sysroot, capsys):
    _run(sysroot, "update")
    (sysroot / "boot" / "vmlinuz-linux").write_bytes(b"tampered")
    (sysroot / "boot" / "extra").write_bytes(b"x")
    capsys.readouterr()

    assert _run(sysroot, "verify") == 1
    out = capsys.readouterr().out
    assert "[FAIL]" in out
    assert "  ~ /boot/vmlinuz-linux" in out
    assert "  + /boot/extra" in out
    assert "sudo boot-integrity update" in out


def test_update_requires_root(sysroot, monkeypatch, capsys):
    monkeypatch.setattr(cli, "geteuid", lambda: 1000)
    assert _run(sysroot, "update") == 1
    assert "root" in capsys.readouterr().err
    assert not (sysroot / "var").exists()


def test_info(sysroot, capsys):
    _run(sysroot, "update")
    _run(sysroot, "update")
    capsys.readouterr()

    assert _run(sysroot, "info") == 0
    out = capsys.readouterr().out
    assert "Files: 1" in out
    assert "boot.sha256.backup (1 files)" in out
    assert "Current: 1 files" in out


def test_unknown_subcommand_is_usage_error(sysroot):
    with pytest.raises(SystemExit) as exc:
        _run(sysroot, "frobnicate")
    assert exc.value.code == 2
