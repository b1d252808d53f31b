from __future__ import annotations

import logging

import pytest

from sdwebui_installer.lib.command import EXIT_NOT_FOUND, CommandError, as_user, run_cmd


def test_run_cmd_returns_output(procs):
    procs.on(["echo"], stdout="hi\n")
    r = run_cmd(["echo", "hi"])
    assert r.returncode == 0
    assert r.stdout == "hi\n"
    assert procs.calls == [["echo", "hi"]]


def test_run_cmd_merges_env(procs, monkeypatch):
    monkeypatch.setenv("KEEP_ME", "1")
    run_cmd(["true"], env={"EXTRA": "x"})
    env = procs.envs[-1]
    assert env["EXTRA"] == "x"
    assert env["KEEP_ME"] == "1"


def test_run_cmd_raises_on_failure(procs):
    procs.on(["false"], returncode=3)
    with pytest.raises(CommandError) as exc:
        run_cmd(["false"])
    assert exc.value.returncode == 3
    assert exc.value.argv == ["false"]


def test_run_cmd_no_check_returns_code(procs):
    procs.on(["false"], returncode=3)
    assert run_cmd(["false"], check=False).returncode == 3


def test_missing_executable_is_127(procs):
    procs.missing.add("nope")
    assert run_cmd(["nope"], check=False).returncode == EXIT_NOT_FOUND
    with pytest.raises(CommandError) as exc:
        run_cmd(["nope"])
    assert exc.value.returncode == EXIT_NOT_FOUND


def test_dry_run_does_not_execute(procs):
    r = run_cmd(["rm", "-rf", "/"], dry_run=True)
    assert r.returncode == 0
    assert procs.calls == []


def test_failure_message_quotes_argv(procs, caplog):
    procs.on(["git"], returncode=128)
    caplog.set_level(logging.INFO)
    with pytest.raises(CommandError) as exc:
        run_cmd(["git", "clone", "https://example.test/my repo"])
    assert str(exc.value).startswith("Command failed (128): git clone 'https://example.test/my repo'")
    assert "CMD git clone 'https://example.test/my repo'" in caplog.text


def test_as_user():
    assert as_user("sdwebui", ["pip", "install", "x"]) == ["runuser", "-u", "sdwebui", "--", "pip", "install", "x"]
    assert as_user(None, ["pip"]) == ["pip"]
