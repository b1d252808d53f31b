from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Sequence

from .config import InstallerConfig
from .lib.command import CommandError

logger = logging.getLogger(__name__)


class StepStatus(str, Enum):
    OK = "ok"
    SKIPPED = "skipped"
    WARNING = "warning"
    FATAL = "fatal"


@dataclass(frozen=True)
class StepResult:
    status: StepStatus
    message: str = ""
    exit_code: int = 0

    @classmethod
    def ok(cls, message: str = "") -> "StepResult":
        return cls(StepStatus.OK, message)

    @classmethod
    def skipped(cls, message: str) -> "StepResult":
        return cls(StepStatus.SKIPPED, message)

    @classmethod
    def warning(cls, message: str) -> "StepResult":
        return cls(StepStatus.WARNING, message)

    @classmethod
    def fatal(cls, message: str, exit_code: int = 1) -> "StepResult":
        if exit_code < 0:
            # killed by signal N -> 128+N
            exit_code = 128 - exit_code
        return cls(StepStatus.FATAL, message, exit_code or 1)

    @property
    def is_fatal(self) -> bool:
        return self.status is StepStatus.FATAL


class Step(Protocol):
    """A single provisioning step.

    ``state`` is the mutable run report; ``cfg`` is read-only.
    """

    step_id: str

    def run(self, cfg: InstallerConfig, state: Dict[str, Any]) -> StepResult:
        ...


@dataclass
class PipelineResult:
    state: Dict[str, Any]
    results: Dict[str, StepResult] = field(default_factory=dict)
    failed_step: Optional[str] = None

    @property
    def ran_steps(self) -> List[str]:
        return list(self.results)

    @property
    def exit_code(self) -> int:
        if self.failed_step is None:
            return 0
        return self.results[self.failed_step].exit_code


def _record(state: Dict[str, Any], step_id: str, result: StepResult) -> None:
    exe = state.setdefault("execution", {})
    exe.setdefault("steps", {})[step_id] = {"status": result.status.value, "message": result.message}
    if result.status is StepStatus.WARNING:
        exe.setdefault("warnings", []).append({"step": step_id, "reason": result.message})


def run_pipeline(
    *,
    cfg: InstallerConfig,
    state: Dict[str, Any],
    steps: Sequence[Step],
    start_at: Optional[str] = None,
    stop_after: Optional[str] = None,
) -> PipelineResult:
    """Run steps in order, stopping at the first fatal result."""

    ids = [s.step_id for s in steps]
    for name, value in (("start_at", start_at), ("stop_after", stop_after)):
        if value is not None and value not in ids:
            raise ValueError(f"Unknown step for {name}: {value} (known: {', '.join(ids)})")

    out = PipelineResult(state=state)
    started = start_at is None

    for step in steps:
        if not started:
            if step.step_id == start_at:
                started = True
            else:
                continue

        state.setdefault("execution", {})["current_step"] = step.step_id
        logger.info("Running step %s", step.step_id)
        try:
            result = step.run(cfg, state)
        except CommandError as e:
            result = StepResult.fatal(str(e), e.returncode)

        _record(state, step.step_id, result)
        out.results[step.step_id] = result

        if result.status is StepStatus.OK:
            logger.info("Step %s done%s", step.step_id, f": {result.message}" if result.message else "")
        elif result.status is StepStatus.SKIPPED:
            logger.info("Step %s skipped: %s", step.step_id, result.message)
        elif result.status is StepStatus.WARNING:
            logger.warning("Step %s: %s", step.step_id, result.message)
        else:
            logger.error("Step %s failed: %s", step.step_id, result.message)
            out.failed_step = step.step_id
            break

        if stop_after is not None and step.step_id == stop_after:
            logger.info("Stopping after %s", stop_after)
            break

    state.setdefault("execution", {})["current_step"] = None
    return out
