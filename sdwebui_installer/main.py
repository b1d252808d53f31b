from __future__ import annotations

import argparse
import logging
import os
from typing import Any, Dict, List, Mapping, Optional

from .config import ConfigError, InstallerConfig, load_config_file, resolve_config
from .lib.credential import Credential
from .lib.env import PATHS
from .logging_utils import DEFAULT_LOG_PATH, configure_logging
from .pipeline import PipelineResult, Step, run_pipeline
from .state_store import load_state, new_run_state, save_state
from .steps import (
    BootstrapEnvironmentStep,
    CleanupStep,
    CloneRepositoryStep,
    FetchCheckpointStep,
    InstallDependenciesStep,
    InstallDriverStep,
    InstallXformersStep,
    RegisterServiceStep,
)

logger = logging.getLogger(__name__)


DEFAULT_STATE_PATH = PATHS.state_default

EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130


def build_steps(credential: Credential) -> List[Step]:
    return [
        InstallDependenciesStep(),
        InstallDriverStep(),
        CloneRepositoryStep(),
        BootstrapEnvironmentStep(),
        InstallXformersStep(),
        FetchCheckpointStep(credential),
        RegisterServiceStep(),
        CleanupStep(),
    ]


def _options(cfg: InstallerConfig, credential: Credential) -> Dict[str, Any]:
    return {
        "install_xformers": cfg.install_xformers,
        "install_sample_ckpt": cfg.install_sample_ckpt,
        "hf_token_provided": bool(credential),
        "dry_run": cfg.dry_run,
        "install_dir": cfg.install_dir,
        "service_name": cfg.service_name,
    }


def run(
    cfg: InstallerConfig,
    credential: Credential,
    *,
    state_path: str = DEFAULT_STATE_PATH,
    start_at: Optional[str] = None,
    stop_after: Optional[str] = None,
    steps: Optional[List[Step]] = None,
) -> PipelineResult:
    """Run the provisioning sequence and write the run report."""

    try:
        previous = load_state(state_path)
    except (ValueError, OSError) as e:
        logger.warning("Ignoring unreadable run report %s: %s", state_path, e)
        previous = {}
    state = new_run_state(previous)
    state["options"] = _options(cfg, credential)

    try:
        result = run_pipeline(
            cfg=cfg,
            state=state,
            steps=steps if steps is not None else build_steps(credential),
            start_at=start_at,
            stop_after=stop_after,
        )
        state["execution"]["exit_code"] = result.exit_code
        if result.failed_step:
            state["execution"]["errors"].append(
                {"step": result.failed_step, "error": result.results[result.failed_step].message}
            )
        return result
    except Exception as e:
        logger.exception("Installer failed")
        state.setdefault("execution", {}).setdefault("errors", []).append(
            {
                "step": (state.get("execution") or {}).get("current_step"),
                "error": str(e),
            }
        )
        raise
    finally:
        save_state(state_path, state)


def main(argv: Optional[list[str]] = None, environ: Optional[Mapping[str, str]] = None) -> int:
    p = argparse.ArgumentParser(
        prog="sdwebui-installer",
        description="Install AUTOMATIC1111 Stable Diffusion Web UI in this container.",
        epilog="Environment: INSTALL_XFORMERS, INSTALL_SAMPLE_CKPT (y|n|ask), HF_TOKEN.",
    )
    p.add_argument("--config", default=None, help="YAML file overriding installer defaults")
    p.add_argument("--state", default=DEFAULT_STATE_PATH, help="Path to run report (json|yaml)")
    p.add_argument("--log", default=DEFAULT_LOG_PATH, help="Path to installer log")
    p.add_argument("--start-at", default=None, help="Start at step_id (e.g. 30_clone_repository)")
    p.add_argument("--stop-after", default=None, help="Stop after step_id")
    p.add_argument("--dry-run", action="store_true", help="Log commands and writes without executing them")
    p.add_argument("--non-interactive", action="store_true", help="Never prompt; 'ask' resolves to no")
    p.add_argument("-v", "--verbose", action="store_true", help="Show command output on the console")

    args = p.parse_args(argv)

    configure_logging(log_path=args.log, level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        overrides = load_config_file(args.config) if args.config else {}
        cfg, credential = resolve_config(
            os.environ if environ is None else environ,
            overrides=overrides,
            dry_run=bool(args.dry_run),
            interactive=not args.non_interactive,
        )
    except (ConfigError, FileNotFoundError) as e:
        logger.error("Configuration error: %s", e)
        return EXIT_CONFIG_ERROR
    except KeyboardInterrupt:
        logger.error("Interrupted")
        return EXIT_INTERRUPTED

    known = [s.step_id for s in build_steps(credential)]
    for flag, value in (("--start-at", args.start_at), ("--stop-after", args.stop_after)):
        if value is not None and value not in known:
            logger.error("Unknown step for %s: %s (known: %s)", flag, value, ", ".join(known))
            return EXIT_CONFIG_ERROR

    with credential:
        try:
            result = run(
                cfg,
                credential,
                state_path=args.state,
                start_at=args.start_at,
                stop_after=args.stop_after,
            )
        except KeyboardInterrupt:
            logger.error("Interrupted")
            return EXIT_INTERRUPTED

    if result.exit_code:
        logger.error("Installation aborted at %s", result.failed_step)
    else:
        logger.info("Installation finished; web UI on port %s", cfg.listen_port)
    return result.exit_code


if __name__ == "__main__":
    raise SystemExit(main())
