from __future__ import annotations

import dataclasses
import getpass
import logging
import shlex
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from .lib.credential import Credential
from .lib.env import PATHS

logger = logging.getLogger(__name__)

ENV_XFORMERS = "INSTALL_XFORMERS"
ENV_SAMPLE_CKPT = "INSTALL_SAMPLE_CKPT"
ENV_HF_TOKEN = "HF_TOKEN"

CPU_TORCH_COMMAND = "pip install torch torchvision torchaudio --index-url https://download.pytorch.org/whl/cpu"

XFORMERS_QUESTION = "Install xformers (GPU-only; requires NVIDIA/CUDA)?"
SAMPLE_CKPT_QUESTION = (
    "Download a sample Stable Diffusion checkpoint (requires a Hugging Face token for most models)?"
)


class ConfigError(ValueError):
    pass


class Toggle(str, Enum):
    YES = "y"
    NO = "n"
    ASK = "ask"


_TOGGLE_ALIASES = {
    "y": Toggle.YES,
    "yes": Toggle.YES,
    "n": Toggle.NO,
    "no": Toggle.NO,
    "ask": Toggle.ASK,
}


def parse_toggle(name: str, raw: Optional[str]) -> Toggle:
    """Parse a y/n/ask environment value; unset or empty means ask."""

    value = (raw or "").strip().lower()
    if not value:
        return Toggle.ASK
    try:
        return _TOGGLE_ALIASES[value]
    except KeyError:
        raise ConfigError(f"{name} must be one of y, n, ask (got {raw!r})") from None


@dataclass(frozen=True)
class InstallerConfig:
    """Everything the steps need, resolved once before the first step runs."""

    install_xformers: bool = False
    install_sample_ckpt: bool = False
    dry_run: bool = False

    install_dir: str = "/opt/stable-diffusion-webui"
    repo_url: str = "https://github.com/AUTOMATIC1111/stable-diffusion-webui"
    apt_packages: Tuple[str, ...] = (
        "wget",
        "git",
        "git-lfs",
        "python3",
        "python3-venv",
        "libgl1",
        "libglib2.0-0",
    )

    service_user: str = "sdwebui"
    service_group: str = "sdwebui"
    service_name: str = "sd-webui.service"
    service_description: str = "Stable Diffusion Web UI (AUTOMATIC1111)"
    listen_host: str = "0.0.0.0"
    listen_port: int = 7860
    launch_flags: Tuple[str, ...] = ("--skip-torch-cuda-test", "--api")
    restart_sec: int = 5
    torch_command: str = CPU_TORCH_COMMAND

    nvidia_driver_version: str = "580.76.05"
    nvidia_download_base: str = "https://us.download.nvidia.com/XFree86/Linux-x86_64"
    nvidia_installer_flags: Tuple[str, ...] = (
        "--silent",
        "--accept-license",
        "--no-kernel-modules",
        "--run-nvidia-xconfig",
        "--disable-nouveau",
    )

    checkpoint_url: str = (
        "https://huggingface.co/runwayml/stable-diffusion-v1-5/resolve/main/v1-5-pruned-emaonly.safetensors"
    )
    download_timeout: Tuple[float, float] = (30.0, 300.0)

    work_dir: str = PATHS.work_dir
    unit_dir: str = "/etc/systemd/system"

    @property
    def models_dir(self) -> str:
        return str(Path(self.install_dir) / "models" / "Stable-diffusion")

    @property
    def checkpoint_path(self) -> str:
        name = self.checkpoint_url.rstrip("/").rsplit("/", 1)[-1]
        return str(Path(self.models_dir) / name)

    @property
    def driver_filename(self) -> str:
        return f"NVIDIA-Linux-x86_64-{self.nvidia_driver_version}.run"

    @property
    def driver_url(self) -> str:
        return f"{self.nvidia_download_base.rstrip('/')}/{self.nvidia_driver_version}/{self.driver_filename}"

    @property
    def webui_script(self) -> str:
        return str(Path(self.install_dir) / "webui.sh")

    @property
    def venv_activate(self) -> str:
        return str(Path(self.install_dir) / "venv" / "bin" / "activate")

    @property
    def bootstrap_env(self) -> Dict[str, str]:
        return {
            "TORCH_COMMAND": self.torch_command,
            "PIP_ALLOW_EXTERNAL": "true",
            "PIP_ALLOW_UNVERIFIED": "true",
        }

    @property
    def launch_command(self) -> str:
        args = [self.webui_script, "--listen", self.listen_host, "--port", str(self.listen_port), *self.launch_flags]
        return "/bin/bash -lc " + shlex.quote(" ".join(args))


# Toggles and dry_run are not file-configurable; they come from env / CLI.
_RUNTIME_FIELDS = {"install_xformers", "install_sample_ckpt", "dry_run"}


def _file_fields() -> Dict[str, dataclasses.Field]:
    return {f.name: f for f in dataclasses.fields(InstallerConfig) if f.name not in _RUNTIME_FIELDS}


def _coerce(name: str, default: Any, value: Any) -> Any:
    if isinstance(default, tuple):
        if not isinstance(value, (list, tuple)):
            raise ConfigError(f"{name} must be a list")
        return tuple(value)
    if isinstance(default, bool):
        if not isinstance(value, bool):
            raise ConfigError(f"{name} must be true or false")
        return value
    if isinstance(default, int):
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ConfigError(f"{name} must be an integer (got {value!r})") from None
    if value is None or isinstance(value, (dict, list)):
        raise ConfigError(f"{name} must be a string")
    return str(value)


def load_config_file(path: str) -> Dict[str, Any]:
    """Read a YAML file of InstallerConfig overrides."""

    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(path)

    try:
        import yaml  # type: ignore
    except Exception as e:  # pragma: no cover
        raise RuntimeError("PyYAML is required to read the installer config file") from e

    raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Config file must be a mapping: {p}")

    fields = _file_fields()
    unknown = sorted(set(raw) - set(fields))
    if unknown:
        raise ConfigError(f"Unknown config keys in {p}: {', '.join(unknown)}")

    defaults = InstallerConfig()
    return {k: _coerce(k, getattr(defaults, k), v) for k, v in raw.items()}


def prompt_bool(question: str, default: bool = False, *, input_fn: Optional[Callable[[str], str]] = None) -> bool:
    """Ask a yes/no question once. Empty reply (or end of input) means ``default``."""

    input_fn = input_fn or input
    hint = "Y/n" if default else "y/N"
    try:
        reply = input_fn(f"{question} [{hint}]: ")
    except EOFError:
        reply = ""
    reply = reply.strip().lower()
    if not reply:
        return default
    return reply in {"y", "yes"}


def prompt_secret(label: str, *, secret_fn: Optional[Callable[[str], str]] = None) -> str:
    secret_fn = secret_fn or getpass.getpass
    try:
        return secret_fn(f"{label}: ")
    except EOFError:
        return ""


def _resolve_toggle(
    name: str,
    raw: Optional[str],
    question: str,
    *,
    interactive: bool,
    input_fn: Optional[Callable[[str], str]],
) -> bool:
    toggle = parse_toggle(name, raw)
    if toggle is Toggle.ASK:
        if not interactive:
            logger.info("%s=ask with prompts disabled; using default (no)", name)
            return False
        return prompt_bool(question, False, input_fn=input_fn)
    return toggle is Toggle.YES


def resolve_config(
    environ: Mapping[str, str],
    *,
    overrides: Optional[Mapping[str, Any]] = None,
    dry_run: bool = False,
    interactive: bool = True,
    input_fn: Optional[Callable[[str], str]] = None,
    secret_fn: Optional[Callable[[str], str]] = None,
) -> Tuple[InstallerConfig, Credential]:
    """Turn environment + prompts into an immutable config and a credential.

    This is the only place that looks at the environment. The credential is
    returned separately so it can be handed to the one step that needs it.
    """

    xformers = _resolve_toggle(
        ENV_XFORMERS, environ.get(ENV_XFORMERS), XFORMERS_QUESTION, interactive=interactive, input_fn=input_fn
    )
    sample_ckpt = _resolve_toggle(
        ENV_SAMPLE_CKPT, environ.get(ENV_SAMPLE_CKPT), SAMPLE_CKPT_QUESTION, interactive=interactive, input_fn=input_fn
    )

    credential = Credential(environ.get(ENV_HF_TOKEN))
    if sample_ckpt and not credential and interactive:
        print("No HF token provided. You can paste one now (input hidden). Press Enter to skip.")
        credential = Credential(prompt_secret(ENV_HF_TOKEN, secret_fn=secret_fn))

    cfg = InstallerConfig(
        install_xformers=xformers,
        install_sample_ckpt=sample_ckpt,
        dry_run=dry_run,
        **dict(overrides or {}),
    )
    logger.info(
        "Resolved options: xformers=%s sample_ckpt=%s token=%s dry_run=%s",
        cfg.install_xformers,
        cfg.install_sample_ckpt,
        "provided" if credential else "absent",
        cfg.dry_run,
    )
    return cfg, credential
