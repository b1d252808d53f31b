from __future__ import annotations

import logging
from typing import Any, Dict

from ..config import InstallerConfig
from ..lib.systemd import ServiceUnit, daemon_reload, enable_now, write_unit
from ..pipeline import StepResult

logger = logging.getLogger(__name__)


def build_unit(cfg: InstallerConfig) -> ServiceUnit:
    """Service definition for the web UI. Only non-secret values go in here."""

    return ServiceUnit(
        name=cfg.service_name,
        description=cfg.service_description,
        user=cfg.service_user,
        group=cfg.service_group,
        working_directory=cfg.install_dir,
        environment=(("TORCH_COMMAND", cfg.torch_command),),
        exec_start=cfg.launch_command,
        restart="always",
        restart_sec=cfg.restart_sec,
    )


class RegisterServiceStep:
    step_id = "70_register_service"

    def run(self, cfg: InstallerConfig, state: Dict[str, Any]) -> StepResult:
        unit = build_unit(cfg)
        path, changed = write_unit(unit, unit_dir=cfg.unit_dir, dry_run=cfg.dry_run)

        daemon_reload(dry_run=cfg.dry_run)
        enable_now(unit.filename, dry_run=cfg.dry_run)

        state.setdefault("execution", {}).setdefault("decisions", {})["service"] = {
            "unit": str(path),
            "changed": changed,
            "listen": f"{cfg.listen_host}:{cfg.listen_port}",
        }
        return StepResult.ok(f"{unit.filename} enabled and started")
