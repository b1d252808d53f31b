from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Any, Dict

from .command import run_cmd

logger = logging.getLogger(__name__)

NVIDIA_VENDOR_ID = "0x10de"


def _drm_vendor_ids() -> list[str]:
    drm = Path("/sys/class/drm")
    if not drm.exists():
        return []
    ids: list[str] = []
    for card in sorted(drm.glob("card[0-9]*")):
        try:
            ids.append((card / "device" / "vendor").read_text(encoding="utf-8").strip().lower())
        except OSError:
            continue
    return ids


def probe_nvidia_driver(*, dry_run: bool = False) -> bool:
    """True when ``nvidia-smi`` runs and exits 0 (driver loaded and talking to a GPU)."""

    r = run_cmd(["nvidia-smi"], check=False, dry_run=dry_run)
    return r.returncode == 0


def detect_nvidia_gpu(*, dry_run: bool = False) -> Dict[str, Any]:
    """Best-effort NVIDIA GPU detection inside the container.

    A GPU is "present" only when the userspace tool is on PATH and can list
    at least one device; DRM vendor IDs are recorded as supporting evidence.
    """

    gpu: Dict[str, Any] = {
        "present": False,
        "nvidia_smi": shutil.which("nvidia-smi"),
        "drm_nvidia": NVIDIA_VENDOR_ID in _drm_vendor_ids(),
        "devices": [],
    }

    if gpu["nvidia_smi"] is None and not dry_run:
        logger.info("GPU: nvidia-smi not on PATH")
        return gpu

    r = run_cmd(["nvidia-smi", "-L"], check=False, dry_run=dry_run)
    if r.returncode == 0:
        gpu["devices"] = [ln.strip() for ln in r.stdout.splitlines() if ln.strip()]
        gpu["present"] = True

    logger.info("GPU: present=%s devices=%d", gpu["present"], len(gpu["devices"]))
    return gpu
