import logging
from types import SimpleNamespace

import pytest

from blackstrap.errors import ToolInvocationError
from blackstrap.lib import command


def test_dry_run_logs_and_skips(monkeypatch, caplog):
    monkeypatch.setattr(command.subprocess, "run", lambda *a, **k: pytest.fail("executed in dry run"))
    with caplog.at_level(logging.INFO):
        r = command.run_cmd(["sgdisk", "--zap-all", "/dev/sda"], dry_run=True)
    assert r.returncode == 0
    assert "CMD sgdisk --zap-all /dev/sda" in caplog.text


def test_failure_carries_tool_stderr(monkeypatch):
    monkeypatch.setattr(
        command.subprocess,
        "run",
        lambda *a, **k: SimpleNamespace(returncode=5, stdout="", stderr="Device sda3 is busy.\n"),
    )
    with pytest.raises(ToolInvocationError) as exc:
        command.run_cmd(["cryptsetup", "open", "/dev/sda3", "x"])
    assert exc.value.returncode == 5
    assert exc.value.stderr == "Device sda3 is busy."
    assert "Device sda3 is busy." in str(exc.value)


def test_unchecked_failure_returns_result(monkeypatch):
    monkeypatch.setattr(command.subprocess, "run", lambda *a, **k: SimpleNamespace(returncode=2, stdout="", stderr="no key"))
    assert command.run_cmd(["cryptsetup", "open"], check=False).returncode == 2


def test_missing_binary(monkeypatch):
    def boom(*a, **k):
        raise FileNotFoundError("sgdisk")

    monkeypatch.setattr(command.subprocess, "run", boom)
    with pytest.raises(ToolInvocationError) as exc:
        command.run_cmd(["sgdisk", "-p"])
    assert exc.value.returncode == 127


def test_stdin_is_never_logged(monkeypatch, caplog):
    seen = {}

    def fake_run(argv, **kwargs):
        seen.update(kwargs)
        return SimpleNamespace(returncode=0, stdout="", stderr="")

    monkeypatch.setattr(command.subprocess, "run", fake_run)
    with caplog.at_level(logging.DEBUG):
        command.run_cmd(["cryptsetup", "luksFormat", "/dev/sda3", "-"], input_text="topsecret")
    assert seen["input"] == "topsecret"
    assert "topsecret" not in caplog.text
