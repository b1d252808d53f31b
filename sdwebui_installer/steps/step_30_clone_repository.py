from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict

from ..config import InstallerConfig
from ..lib.accounts import chown_tree
from ..lib.command import run_cmd
from ..pipeline import StepResult

logger = logging.getLogger(__name__)


class CloneRepositoryStep:
    step_id = "30_clone_repository"

    def run(self, cfg: InstallerConfig, state: Dict[str, Any]) -> StepResult:
        dry_run = cfg.dry_run
        target = Path(cfg.install_dir)
        decisions = state.setdefault("execution", {}).setdefault("decisions", {})

        if target.is_dir():
            decisions["repository_cloned"] = False
            message = f"Repository already present at {target}"
        else:
            run_cmd(["git", "clone", cfg.repo_url, str(target)], dry_run=dry_run)
            decisions["repository_cloned"] = True
            message = f"Cloned {cfg.repo_url}"

        chown_tree(str(target), cfg.service_user, cfg.service_group, dry_run=dry_run)
        return StepResult.ok(message)
