from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict

logger = logging.getLogger(__name__)


def _detect_format(path: Path) -> str:
    ext = path.suffix.lower().lstrip(".")
    if ext in {"json", "yaml", "yml"}:
        return ext
    # Default to JSON for unknown extensions.
    return "json"


def _yaml():
    try:
        import yaml  # type: ignore
    except Exception as e:  # pragma: no cover
        raise RuntimeError("YAML run report requested but PyYAML is not available; use a .json path") from e
    return yaml


def load_state(path: str) -> Dict[str, Any]:
    """Load the previous run report, or {} if there is none.

    A file that cannot be parsed into a mapping raises ValueError.
    """

    p = Path(path)
    if not p.exists():
        return {}

    if _detect_format(p) in {"yaml", "yml"}:
        yaml = _yaml()
        try:
            data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {p}: {e}") from e
    else:
        data = json.loads(p.read_text(encoding="utf-8"))

    if not isinstance(data, dict):
        raise ValueError(f"State file must be an object/dict, got {type(data)}")

    return data


def save_state(path: str, state: Dict[str, Any]) -> None:
    """Write the report next to its destination, then rename it into place."""

    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)

    if _detect_format(p) in {"yaml", "yml"}:
        text = _yaml().safe_dump(state, sort_keys=False) + "\n"
    else:
        text = json.dumps(state, indent=2, sort_keys=True, default=str) + "\n"

    tmp = p.with_name(p.name + ".tmp")
    try:
        tmp.write_text(text, encoding="utf-8")
        os.replace(tmp, p)
    finally:
        tmp.unlink(missing_ok=True)
    logger.debug("Run report written to %s", p)


def new_run_state(previous: Dict[str, Any]) -> Dict[str, Any]:
    """Start a fresh report for this run, keeping a short history of earlier outcomes."""

    history = list(previous.get("history") or [])
    prev_exe = previous.get("execution")
    if prev_exe:
        history.append({"steps": prev_exe.get("steps") or {}, "exit_code": prev_exe.get("exit_code")})

    return {
        "version": 1,
        "options": {},
        "hardware": {},
        "history": history[-5:],
        "execution": {
            "current_step": None,
            "steps": {},
            "decisions": {},
            "warnings": [],
            "errors": [],
        },
    }
