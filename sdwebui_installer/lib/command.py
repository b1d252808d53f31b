from __future__ import annotations

import logging
import os
import shlex
import subprocess
from dataclasses import dataclass
from typing import Mapping, Sequence

logger = logging.getLogger(__name__)

# Returned when the executable itself is missing, matching the shell convention.
EXIT_NOT_FOUND = 127


@dataclass(frozen=True)
class CmdResult:
    argv: list[str]
    returncode: int
    stdout: str
    stderr: str


class CommandError(RuntimeError):
    def __init__(self, argv: Sequence[str], returncode: int, stderr: str = ""):
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"Command failed ({returncode}): {_fmt_argv(self.argv)}\n{stderr}".rstrip())


def _fmt_argv(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(a) for a in argv)


def as_user(user: str | None, argv: Sequence[str]) -> list[str]:
    """Prefix argv so it runs as ``user`` (no-op when user is None)."""

    if not user:
        return list(argv)
    return ["runuser", "-u", user, "--", *argv]


def run_cmd(
    argv: Sequence[str],
    *,
    check: bool = True,
    env: Mapping[str, str] | None = None,
    cwd: str | None = None,
    stream: bool = False,
    dry_run: bool = False,
) -> CmdResult:
    """Run a command with consistent logging.

    - Always logs the command line; secrets must never be passed in argv.
    - Captures stdout/stderr unless ``stream`` is set, in which case output
      goes straight to the console (long-running tools).
    - dry_run logs but does not execute.
    - A missing executable is reported as return code 127.
    """

    argv_list = list(argv)
    logger.info("CMD %s", _fmt_argv(argv_list))

    if dry_run:
        return CmdResult(argv=argv_list, returncode=0, stdout="", stderr="")

    try:
        p = subprocess.run(
            argv_list,
            text=True,
            stdout=None if stream else subprocess.PIPE,
            stderr=None if stream else subprocess.PIPE,
            cwd=cwd,
            env=dict(os.environ, **(env or {})),
        )
    except FileNotFoundError:
        logger.debug("Executable not found: %s", argv_list[0])
        if check:
            raise CommandError(argv_list, EXIT_NOT_FOUND, f"{argv_list[0]}: command not found")
        return CmdResult(argv=argv_list, returncode=EXIT_NOT_FOUND, stdout="", stderr="")

    stdout = p.stdout or ""
    stderr = p.stderr or ""
    if stdout:
        logger.debug("STDOUT %s", stdout.strip())
    if stderr:
        logger.debug("STDERR %s", stderr.strip())

    if check and p.returncode != 0:
        raise CommandError(argv_list, p.returncode, stderr)

    return CmdResult(argv=argv_list, returncode=p.returncode, stdout=stdout, stderr=stderr)
