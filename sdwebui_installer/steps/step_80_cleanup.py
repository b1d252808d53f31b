from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Any, Dict

from ..config import InstallerConfig
from ..lib.pkg import apt_cleanup
from ..pipeline import StepResult

logger = logging.getLogger(__name__)


class CleanupStep:
    step_id = "80_cleanup"

    def run(self, cfg: InstallerConfig, state: Dict[str, Any]) -> StepResult:
        apt_cleanup(dry_run=cfg.dry_run)

        work = Path(cfg.work_dir)
        if work.is_dir():
            if cfg.dry_run:
                logger.info("Would remove %s", work)
            else:
                shutil.rmtree(work)
        return StepResult.ok("Cleaned")
