from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Callable, List, Optional, Sequence

import pytest

from sdwebui_installer.config import InstallerConfig
from sdwebui_installer.lib import command as command_mod
from sdwebui_installer.lib import hwdetect


def _without_runuser(argv: Sequence[str]) -> List[str]:
    argv = list(argv)
    if argv and argv[0] == "runuser" and "--" in argv:
        return argv[argv.index("--") + 1 :]
    return argv


class FakeProcesses:
    """Stands in for subprocess.run; records every call and answers from rules.

    Rules match on an argv prefix (after stripping a ``runuser -u X --``
    wrapper). The most recently added matching rule wins.
    """

    def __init__(self) -> None:
        self.calls: List[List[str]] = []
        self.envs: List[Optional[dict]] = []
        self._rules: list = []
        self.missing: set[str] = set()

    def on(
        self,
        prefix: Sequence[str],
        returncode: int = 0,
        stdout: str = "",
        effect: Optional[Callable[[List[str]], None]] = None,
    ) -> None:
        self._rules.append((list(prefix), returncode, stdout, effect))

    def __call__(self, argv, **kwargs):
        argv = list(argv)
        self.calls.append(argv)
        self.envs.append(kwargs.get("env"))
        if argv[0] in self.missing:
            raise FileNotFoundError(argv[0])
        inner = _without_runuser(argv)
        for prefix, rc, out, effect in reversed(self._rules):
            if inner[: len(prefix)] == prefix:
                if effect is not None:
                    effect(inner)
                return subprocess.CompletedProcess(argv, rc, stdout=out, stderr="")
        return subprocess.CompletedProcess(argv, 0, stdout="", stderr="")

    def ran(self, *prefix: str) -> bool:
        return any(_without_runuser(c)[: len(prefix)] == list(prefix) for c in self.calls)

    def count(self, *prefix: str) -> int:
        return sum(1 for c in self.calls if _without_runuser(c)[: len(prefix)] == list(prefix))


def _fake_clone(argv: List[str]) -> None:
    Path(argv[-1]).mkdir(parents=True, exist_ok=True)
    (Path(argv[-1]) / "webui.sh").write_text("#!/bin/bash\n", encoding="utf-8")


@pytest.fixture
def procs(monkeypatch) -> FakeProcesses:
    fake = FakeProcesses()
    fake.on(["git", "clone"], effect=_fake_clone)
    monkeypatch.setattr(command_mod.subprocess, "run", fake)
    return fake


@pytest.fixture
def gpu(monkeypatch):
    """Call with True/False to control whether nvidia-smi is on PATH."""

    def _set(present: bool) -> None:
        monkeypatch.setattr(
            hwdetect.shutil, "which", lambda name: "/usr/bin/nvidia-smi" if present and name == "nvidia-smi" else None
        )

    _set(False)
    return _set


@pytest.fixture
def make_cfg(tmp_path) -> Callable[..., InstallerConfig]:
    def _make(**kw) -> InstallerConfig:
        base = dict(
            install_dir=str(tmp_path / "opt" / "stable-diffusion-webui"),
            work_dir=str(tmp_path / "work"),
            unit_dir=str(tmp_path / "systemd"),
        )
        base.update(kw)
        return InstallerConfig(**base)

    return _make


@pytest.fixture(autouse=True)
def _reset_root_logging():
    yield
    root = logging.getLogger()
    for h in list(root.handlers):
        if isinstance(h, (logging.FileHandler, logging.StreamHandler)) and not type(h).__module__.startswith("_pytest"):
            root.removeHandler(h)
            h.close()
    for attr in ("_sdwebui_configured", "_sdwebui_log_path"):
        if hasattr(root, attr):
            delattr(root, attr)
