from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict

from ..config import InstallerConfig
from ..lib.accounts import chown_file
from ..lib.command import CommandError
from ..lib.credential import Credential
from ..lib.net import DownloadError, download_file
from ..pipeline import StepResult

logger = logging.getLogger(__name__)


class FetchCheckpointStep:
    """Sample SD 1.5 checkpoint from Hugging Face.

    The model is gated: the token's account must have accepted its license.
    """

    step_id = "60_fetch_checkpoint"

    def __init__(self, credential: Credential):
        self._credential = credential

    def run(self, cfg: InstallerConfig, state: Dict[str, Any]) -> StepResult:
        models_dir = Path(cfg.models_dir)
        if not cfg.dry_run:
            try:
                models_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                return StepResult.warning(f"Cannot create {models_dir}: {e}")

        if not cfg.install_sample_ckpt:
            return StepResult.skipped("sample checkpoint not requested")

        dest = Path(cfg.checkpoint_path)
        decisions = state.setdefault("execution", {}).setdefault("decisions", {})
        if dest.is_file():
            decisions["checkpoint_downloaded"] = False
            return StepResult.skipped(f"Sample checkpoint already present: {dest.name}")

        if not self._credential:
            return StepResult.warning("HF token not provided; cannot download gated checkpoint, skipping")

        try:
            download_file(
                cfg.checkpoint_url,
                str(dest),
                headers=self._credential.bearer_header(),
                timeout=cfg.download_timeout,
                dry_run=cfg.dry_run,
            )
        except DownloadError as e:
            dest.unlink(missing_ok=True)
            return StepResult.warning(f"Failed to download checkpoint (token invalid or license not accepted): {e}")

        decisions["checkpoint_downloaded"] = True
        try:
            chown_file(str(dest), cfg.service_user, cfg.service_group, dry_run=cfg.dry_run)
        except CommandError as e:
            return StepResult.warning(f"Downloaded {dest.name} but could not hand it to {cfg.service_user}: {e}")
        return StepResult.ok(f"Downloaded {dest.name}")
