from __future__ import annotations

import pytest

from sdwebui_installer.config import (
    ConfigError,
    InstallerConfig,
    Toggle,
    load_config_file,
    parse_toggle,
    prompt_bool,
    resolve_config,
)


class Prompter:
    def __init__(self, *replies: str):
        self.replies = list(replies)
        self.questions: list[str] = []

    def __call__(self, question: str) -> str:
        self.questions.append(question)
        if not self.replies:
            raise EOFError
        return self.replies.pop(0)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("y", Toggle.YES),
        ("Y", Toggle.YES),
        ("yes", Toggle.YES),
        ("n", Toggle.NO),
        ("no", Toggle.NO),
        ("ask", Toggle.ASK),
        ("", Toggle.ASK),
        (None, Toggle.ASK),
    ],
)
def test_parse_toggle(raw, expected):
    assert parse_toggle("X", raw) is expected


def test_parse_toggle_rejects_unknown_values():
    with pytest.raises(ConfigError, match="INSTALL_XFORMERS"):
        parse_toggle("INSTALL_XFORMERS", "maybe")


@pytest.mark.parametrize("reply, expected", [("", False), ("y", True), ("YES", True), ("n", False), ("sure", False)])
def test_prompt_bool_defaults_to_no(reply, expected):
    p = Prompter(reply)
    assert prompt_bool("Install?", False, input_fn=p) is expected
    assert p.questions == ["Install? [y/N]: "]


def test_prompt_bool_end_of_input_uses_default():
    assert prompt_bool("Install?", True, input_fn=Prompter()) is True


@pytest.mark.parametrize("value, expected", [("y", True), ("n", False)])
def test_explicit_toggles_never_prompt(value, expected):
    p = Prompter()
    secret = Prompter()
    cfg, cred = resolve_config(
        {"INSTALL_XFORMERS": value, "INSTALL_SAMPLE_CKPT": "n"}, input_fn=p, secret_fn=secret
    )
    assert cfg.install_xformers is expected
    assert cfg.install_sample_ckpt is False
    assert p.questions == []
    assert secret.questions == []


def test_ask_prompts_exactly_once_per_toggle():
    p = Prompter("", "")
    cfg, cred = resolve_config({"INSTALL_XFORMERS": "ask", "INSTALL_SAMPLE_CKPT": "ask"}, input_fn=p)
    assert len(p.questions) == 2
    assert "xformers" in p.questions[0]
    assert "checkpoint" in p.questions[1]
    assert cfg.install_xformers is False
    assert cfg.install_sample_ckpt is False
    assert not cred


def test_unset_toggles_behave_like_ask():
    p = Prompter("y", "n")
    cfg, _ = resolve_config({}, input_fn=p)
    assert cfg.install_xformers is True
    assert cfg.install_sample_ckpt is False
    assert len(p.questions) == 2


def test_token_prompted_when_checkpoint_wanted_and_env_empty():
    secret = Prompter("  hf_abc  ")
    cfg, cred = resolve_config(
        {"INSTALL_XFORMERS": "n", "INSTALL_SAMPLE_CKPT": "y"}, input_fn=Prompter(), secret_fn=secret
    )
    assert cfg.install_sample_ckpt is True
    assert secret.questions == ["HF_TOKEN: "]
    assert cred.reveal() == "hf_abc"


def test_empty_token_reply_means_skip():
    cfg, cred = resolve_config(
        {"INSTALL_XFORMERS": "n", "INSTALL_SAMPLE_CKPT": "y"}, input_fn=Prompter(), secret_fn=Prompter("")
    )
    assert cfg.install_sample_ckpt is True
    assert not cred


def test_token_from_env_is_not_prompted():
    secret = Prompter()
    _, cred = resolve_config(
        {"INSTALL_XFORMERS": "n", "INSTALL_SAMPLE_CKPT": "y", "HF_TOKEN": "hf_env"}, secret_fn=secret
    )
    assert secret.questions == []
    assert cred.reveal() == "hf_env"


def test_token_not_prompted_when_checkpoint_declined():
    secret = Prompter()
    _, cred = resolve_config({"INSTALL_XFORMERS": "n", "INSTALL_SAMPLE_CKPT": "n"}, secret_fn=secret)
    assert secret.questions == []
    assert not cred


def test_non_interactive_resolves_ask_to_no():
    p = Prompter()
    cfg, _ = resolve_config({"INSTALL_SAMPLE_CKPT": "y"}, interactive=False, input_fn=p, secret_fn=p)
    assert cfg.install_xformers is False
    assert cfg.install_sample_ckpt is True
    assert p.questions == []


def test_config_is_frozen():
    cfg = InstallerConfig()
    with pytest.raises(AttributeError):
        cfg.install_dir = "/tmp/elsewhere"  # type: ignore[misc]


def test_derived_paths():
    cfg = InstallerConfig(install_dir="/srv/sd", nvidia_driver_version="1.2.3")
    assert cfg.checkpoint_path == "/srv/sd/models/Stable-diffusion/v1-5-pruned-emaonly.safetensors"
    assert cfg.driver_filename == "NVIDIA-Linux-x86_64-1.2.3.run"
    assert cfg.driver_url.endswith("/Linux-x86_64/1.2.3/NVIDIA-Linux-x86_64-1.2.3.run")
    assert cfg.venv_activate == "/srv/sd/venv/bin/activate"
    assert cfg.bootstrap_env["TORCH_COMMAND"].endswith("--index-url https://download.pytorch.org/whl/cpu")


def test_launch_command():
    cfg = InstallerConfig()
    assert cfg.launch_command == (
        "/bin/bash -lc '/opt/stable-diffusion-webui/webui.sh --listen 0.0.0.0 --port 7860 --skip-torch-cuda-test --api'"
    )


def test_load_config_file_overrides(tmp_path):
    p = tmp_path / "installer.yaml"
    p.write_text(
        "install_dir: /srv/sd\nlisten_port: '8080'\nlaunch_flags: [--api]\n",
        encoding="utf-8",
    )
    overrides = load_config_file(str(p))
    assert overrides == {"install_dir": "/srv/sd", "listen_port": 8080, "launch_flags": ("--api",)}

    cfg, _ = resolve_config({"INSTALL_XFORMERS": "n", "INSTALL_SAMPLE_CKPT": "n"}, overrides=overrides)
    assert cfg.install_dir == "/srv/sd"
    assert cfg.listen_port == 8080


def test_load_config_file_rejects_unknown_and_runtime_keys(tmp_path):
    p = tmp_path / "installer.yaml"
    p.write_text("install_xformers: true\nhf_token: secret\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="hf_token, install_xformers"):
        load_config_file(str(p))


def test_load_config_file_type_errors(tmp_path):
    p = tmp_path / "installer.yaml"
    p.write_text("listen_port: not-a-port\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="listen_port"):
        load_config_file(str(p))
