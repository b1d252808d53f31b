from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple

from .command import run_cmd

logger = logging.getLogger(__name__)

UNIT_DIR = "/etc/systemd/system"


@dataclass(frozen=True)
class ServiceUnit:
    name: str
    description: str
    user: str
    group: str
    working_directory: str
    exec_start: str
    environment: Tuple[Tuple[str, str], ...] = ()
    restart: str = "always"
    restart_sec: int = 5
    after: str = "network.target"
    wanted_by: str = "multi-user.target"

    @property
    def filename(self) -> str:
        return self.name if self.name.endswith(".service") else f"{self.name}.service"


def _quote_env(key: str, value: str) -> str:
    # Values with spaces must be quoted as a whole assignment.
    value = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{key}={value}"'


def render_unit(unit: ServiceUnit) -> str:
    lines = [
        "[Unit]",
        f"Description={unit.description}",
        f"After={unit.after}",
        "",
        "[Service]",
        "Type=simple",
        f"User={unit.user}",
        f"Group={unit.group}",
        f"WorkingDirectory={unit.working_directory}",
    ]
    lines += [f"Environment={_quote_env(k, v)}" for k, v in unit.environment]
    lines += [
        f"ExecStart={unit.exec_start}",
        f"Restart={unit.restart}",
        f"RestartSec={unit.restart_sec}",
        "",
        "[Install]",
        f"WantedBy={unit.wanted_by}",
        "",
    ]
    return "\n".join(lines)


def write_unit(unit: ServiceUnit, *, unit_dir: str = UNIT_DIR, dry_run: bool = False) -> Tuple[Path, bool]:
    """Write the unit file. Returns (path, changed); identical contents are left alone."""

    p = Path(unit_dir) / unit.filename
    contents = render_unit(unit)
    if p.exists() and p.read_text(encoding="utf-8") == contents:
        logger.info("Unit %s unchanged", p)
        return p, False
    if dry_run:
        logger.info("Would write %s", p)
        return p, True
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(contents, encoding="utf-8")
    p.chmod(0o644)
    logger.info("Wrote %s", p)
    return p, True


def daemon_reload(*, dry_run: bool = False) -> None:
    run_cmd(["systemctl", "daemon-reload"], dry_run=dry_run)


def enable_now(unit_name: str, *, dry_run: bool = False) -> None:
    run_cmd(["systemctl", "enable", "-q", "--now", unit_name], dry_run=dry_run)
