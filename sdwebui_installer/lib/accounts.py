from __future__ import annotations

import logging

from .command import run_cmd

logger = logging.getLogger(__name__)


def user_exists(username: str, *, dry_run: bool = False) -> bool:
    if dry_run:
        return False
    return run_cmd(["id", "-u", username], check=False).returncode == 0


def ensure_system_user(username: str, *, home: str | None = None, dry_run: bool = False) -> bool:
    """Create a system user with a same-named group. Returns True if it was created."""

    if user_exists(username, dry_run=dry_run):
        logger.info("User %s already exists", username)
        return False

    argv = ["useradd", "--system", "--user-group", "--create-home", "--shell", "/bin/bash"]
    if home:
        argv += ["--home-dir", home]
    run_cmd([*argv, username], dry_run=dry_run)
    logger.info("Created system user %s", username)
    return True


def chown_tree(path: str, user: str, group: str, *, dry_run: bool = False) -> None:
    run_cmd(["chown", "-R", f"{user}:{group}", path], dry_run=dry_run)


def chown_file(path: str, user: str, group: str, *, dry_run: bool = False) -> None:
    run_cmd(["chown", f"{user}:{group}", path], dry_run=dry_run)
