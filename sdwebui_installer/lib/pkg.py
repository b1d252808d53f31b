from __future__ import annotations

import logging
from typing import Sequence

from .command import run_cmd

logger = logging.getLogger(__name__)

# Keeps apt from stopping on debconf questions.
APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}


def apt_update(*, dry_run: bool = False) -> None:
    run_cmd(["apt-get", "update"], env=APT_ENV, dry_run=dry_run)


def apt_install(
    packages: Sequence[str],
    *,
    with_recommends: bool = False,
    dry_run: bool = False,
) -> None:
    if not packages:
        return
    argv = [
        "apt-get",
        "install",
        "-y",
    ]
    if not with_recommends:
        argv.append("--no-install-recommends")
    run_cmd([*argv, *packages], env=APT_ENV, dry_run=dry_run)


def apt_cleanup(*, dry_run: bool = False) -> None:
    """Drop orphaned packages and stale archives."""

    run_cmd(["apt-get", "-y", "autoremove"], env=APT_ENV, dry_run=dry_run)
    run_cmd(["apt-get", "-y", "autoclean"], env=APT_ENV, dry_run=dry_run)
