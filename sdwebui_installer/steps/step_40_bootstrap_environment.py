from __future__ import annotations

import logging
import shlex
from typing import Any, Dict

from ..config import InstallerConfig
from ..lib.command import as_user, run_cmd
from ..pipeline import StepResult

logger = logging.getLogger(__name__)

BOOTSTRAP_FLAGS = ("--exit", "--skip-torch-cuda-test")


class BootstrapEnvironmentStep:
    """First run of webui.sh: creates ./venv and installs torch + requirements.

    torch comes from the CPU wheel index via TORCH_COMMAND. This can take a
    long time and is not time-limited.
    """

    step_id = "40_bootstrap_environment"

    def run(self, cfg: InstallerConfig, state: Dict[str, Any]) -> StepResult:
        script = " ".join([shlex.quote(cfg.webui_script), *BOOTSTRAP_FLAGS])
        argv = as_user(cfg.service_user, ["bash", "-lc", f"cd {shlex.quote(cfg.install_dir)} && {script}"])

        logger.info("Bootstrapping webui (first run creates venv and installs torch)")
        r = run_cmd(
            argv,
            check=False,
            env=cfg.bootstrap_env,
            cwd=None if cfg.dry_run else cfg.install_dir,
            stream=True,
            dry_run=cfg.dry_run,
        )
        if r.returncode != 0:
            return StepResult.fatal(f"webui bootstrap failed (exit {r.returncode})", r.returncode)

        state.setdefault("execution", {}).setdefault("decisions", {})["torch_command"] = cfg.torch_command
        return StepResult.ok("Bootstrap complete")
