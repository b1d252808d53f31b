from __future__ import annotations

import logging
from typing import Any, Dict

from ..config import InstallerConfig
from ..lib.accounts import ensure_system_user
from ..lib.command import run_cmd
from ..lib.pkg import apt_install, apt_update
from ..pipeline import StepResult

logger = logging.getLogger(__name__)


class InstallDependenciesStep:
    step_id = "10_install_dependencies"

    def run(self, cfg: InstallerConfig, state: Dict[str, Any]) -> StepResult:
        dry_run = cfg.dry_run

        apt_update(dry_run=dry_run)
        apt_install(cfg.apt_packages, with_recommends=True, dry_run=dry_run)
        run_cmd(["git", "lfs", "install", "--system"], dry_run=dry_run)

        # webui.sh refuses to run as root, and the service runs unprivileged.
        created = ensure_system_user(cfg.service_user, dry_run=dry_run)

        state.setdefault("execution", {}).setdefault("decisions", {})["service_user"] = {
            "name": cfg.service_user,
            "created": created,
        }
        return StepResult.ok(f"{len(cfg.apt_packages)} packages")
