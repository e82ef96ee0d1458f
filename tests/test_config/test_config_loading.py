import os
from pathlib import Path

import pytest

import agentloop.config as config_module
from agentloop.config import Config
from agentloop.exceptions import ConfigurationError


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path: Path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(config_module, "DEFAULT_CONFIG_PATH", tmp_path / "missing-user-config.yaml")
    for key in list(os.environ):
        if key.startswith("AGENTLOOP_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)


def test_defaults_without_any_config_file():
    cfg = Config.load()

    assert cfg.model.model == "claude-3-7-sonnet-20250219"
    assert cfg.model.max_tokens == 1024
    assert cfg.workspace.path == "."
    assert "rm" not in cfg.tools.shell.allowed_commands
    assert cfg.tools.enabled[0] == "read_file"
    assert cfg.sources == []


def test_missing_api_key_is_reported_as_warning():
    cfg = Config.load()

    assert cfg.model.api_key == ""
    assert "Missing API key (set model.api_key or ANTHROPIC_API_KEY)" in cfg.warnings


def test_api_key_falls_back_to_anthropic_env(monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")

    cfg = Config.load()

    assert cfg.model.api_key == "sk-test"
    assert cfg.warnings == []


def test_layers_merge_in_precedence_order(monkeypatch, tmp_path: Path):
    user_cfg = tmp_path / "user.yaml"
    user_cfg.write_text("model:\n  model: user-model\n  max_tokens: 10\n", encoding="utf-8")
    monkeypatch.setattr(config_module, "DEFAULT_CONFIG_PATH", user_cfg)

    (tmp_path / ".agentloop.yaml").write_text("model:\n  model: local-model\n", encoding="utf-8")

    env_cfg = tmp_path / "env.yaml"
    env_cfg.write_text("tools:\n  shell:\n    max_output_chars: 99\n", encoding="utf-8")
    monkeypatch.setenv("AGENTLOOP_CONFIG", str(env_cfg))

    explicit = tmp_path / "explicit.yaml"
    explicit.write_text("model:\n  max_tokens: 2048\n", encoding="utf-8")

    cfg = Config.load(explicit)

    assert cfg.model.model == "local-model"
    assert cfg.model.max_tokens == 2048
    assert cfg.tools.shell.max_output_chars == 99
    assert len(cfg.sources) == 4


def test_environment_overrides_yaml(monkeypatch, tmp_path: Path):
    (tmp_path / ".agentloop.yaml").write_text("model:\n  model: yaml-model\n", encoding="utf-8")
    monkeypatch.setenv("AGENTLOOP_MODEL__MODEL", "env-model")
    monkeypatch.setenv("AGENTLOOP_SESSION__DIR", str(tmp_path / "sessions"))

    cfg = Config.load()

    assert cfg.model.model == "env-model"
    assert cfg.session.dir == str(tmp_path / "sessions")


def test_explicit_missing_config_raises(tmp_path: Path):
    with pytest.raises(ConfigurationError):
        Config.load(tmp_path / "nope.yaml")


def test_invalid_yaml_raises(tmp_path: Path):
    (tmp_path / ".agentloop.yaml").write_text("model: [unclosed\n", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        Config.load()


def test_non_mapping_yaml_raises(tmp_path: Path):
    (tmp_path / ".agentloop.yaml").write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        Config.load()


@pytest.mark.skipif(os.name == "nt", reason="POSIX permissions")
def test_group_writable_config_warns(tmp_path: Path):
    local = tmp_path / ".agentloop.yaml"
    local.write_text("model:\n  max_tokens: 5\n", encoding="utf-8")
    local.chmod(0o664)

    cfg = Config.load()

    assert any("group/other writable" in warning for warning in cfg.warnings)


def test_resolved_workspace_path_anchors_relative_to_runtime_base(tmp_path: Path):
    cfg = Config()
    cfg.workspace.path = "./project"

    assert cfg.resolved_workspace_path(tmp_path) == (tmp_path / "project").resolve()


def test_resolved_workspace_path_keeps_absolute_paths(tmp_path: Path):
    cfg = Config()
    cfg.workspace.path = str(tmp_path)

    assert cfg.resolved_workspace_path("/somewhere/else") == tmp_path.resolve()
