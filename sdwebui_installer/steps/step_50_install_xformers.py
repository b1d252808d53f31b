from __future__ import annotations

import logging
import shlex
from typing import Any, Dict

from ..config import InstallerConfig
from ..lib.command import as_user, run_cmd
from ..lib.hwdetect import detect_nvidia_gpu
from ..pipeline import StepResult

logger = logging.getLogger(__name__)


class InstallXformersStep:
    step_id = "50_install_xformers"

    def run(self, cfg: InstallerConfig, state: Dict[str, Any]) -> StepResult:
        if not cfg.install_xformers:
            return StepResult.skipped("xformers not requested")

        # Checked at runtime; the driver step may have been skipped or the GPU not passed through.
        gpu = detect_nvidia_gpu(dry_run=cfg.dry_run)
        state["hardware"] = {"gpu": gpu}
        if not gpu["present"]:
            return StepResult.warning("No NVIDIA GPU detected inside the container; skipping xformers")

        script = (
            f"source {shlex.quote(cfg.venv_activate)} && "
            "pip install --upgrade pip && "
            "pip install xformers"
        )
        r = run_cmd(as_user(cfg.service_user, ["bash", "-lc", script]), check=False, stream=True, dry_run=cfg.dry_run)
        if r.returncode != 0:
            # Best-effort: the web UI runs without xformers.
            return StepResult.warning(f"xformers install failed (exit {r.returncode}); continuing without it")

        state.setdefault("execution", {}).setdefault("decisions", {})["xformers_installed"] = True
        return StepResult.ok("xformers installed")
