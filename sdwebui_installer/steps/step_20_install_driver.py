from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict

from ..config import InstallerConfig
from ..lib.command import run_cmd
from ..lib.hwdetect import probe_nvidia_driver
from ..lib.net import DownloadError, download_file
from ..pipeline import StepResult

logger = logging.getLogger(__name__)


class InstallDriverStep:
    """Userspace NVIDIA driver matching the host's kernel module version.

    The container shares the host kernel, so only the userspace part is
    installed (``--no-kernel-modules``). The versions must match exactly.
    """

    step_id = "20_install_driver"

    def run(self, cfg: InstallerConfig, state: Dict[str, Any]) -> StepResult:
        dry_run = cfg.dry_run
        installer = Path(cfg.work_dir) / cfg.driver_filename
        decisions = state.setdefault("execution", {}).setdefault("decisions", {})
        decisions["nvidia_driver_version"] = cfg.nvidia_driver_version

        try:
            try:
                download_file(cfg.driver_url, str(installer), timeout=cfg.download_timeout, dry_run=dry_run)
            except DownloadError as e:
                decisions["nvidia_driver_installed"] = False
                return StepResult.warning(f"Failed to download NVIDIA driver, skipping ({e})")

            if not dry_run:
                os.chmod(installer, 0o755)

            r = run_cmd([str(installer), *cfg.nvidia_installer_flags], check=False, dry_run=dry_run)
            if r.returncode != 0:
                return StepResult.fatal(
                    f"Failed to install NVIDIA driver {cfg.nvidia_driver_version} (exit {r.returncode}); "
                    "see /var/log/nvidia-installer.log",
                    r.returncode,
                )
        finally:
            installer.unlink(missing_ok=True)

        # The installer can exit 0 without a working driver (e.g. version mismatch with the host module).
        if not probe_nvidia_driver(dry_run=dry_run):
            return StepResult.fatal("NVIDIA driver installed but nvidia-smi failed; driver is not working")

        decisions["nvidia_driver_installed"] = True
        return StepResult.ok(f"NVIDIA driver {cfg.nvidia_driver_version} installed and working")
