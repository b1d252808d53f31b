from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Paths:
    state_default: str = "/var/lib/sdwebui-installer/state.json"
    log_default: str = "/var/log/sdwebui-installer.log"
    work_dir: str = "/var/tmp/sdwebui-installer"


PATHS = Paths()
