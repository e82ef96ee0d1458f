"""Configuration management for agentloop."""

import os
import stat
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, PrivateAttr
from pydantic_settings import BaseSettings, SettingsConfigDict

from agentloop.exceptions import ConfigurationError


# Paths
USER_CONFIG_DIR = Path("~/.config/agentloop").expanduser()
DEFAULT_CONFIG_PATH = USER_CONFIG_DIR / "config.yaml"
DEFAULT_SESSION_DIR = USER_CONFIG_DIR / "sessions" / "projects"
LOCAL_CONFIG_FILENAME = ".agentloop.yaml"
CONFIG_PATH_ENV = "AGENTLOOP_CONFIG"

DEFAULT_ALLOWED_COMMANDS = [
    "ls",
    "cat",
    "echo",
    "grep",
    "head",
    "tail",
    "wc",
    "pwd",
    "git",
    "pytest",
]


class ModelConfig(BaseModel):
    """Model configuration."""

    model: str = "claude-3-7-sonnet-20250219"
    max_tokens: int = 1024
    api_key: str = ""
    base_url: str = "https://api.anthropic.com"
    timeout: float = 120.0


class ShellToolConfig(BaseModel):
    """Shell tool configuration."""

    allowed_commands: list[str] = Field(default_factory=lambda: list(DEFAULT_ALLOWED_COMMANDS))
    max_output_chars: int = 8000
    timeout: float | None = None


class UrlFetchToolConfig(BaseModel):
    """URL fetch tool configuration."""

    timeout: float = 10.0
    max_chars: int = 100000


class WebSearchToolConfig(BaseModel):
    """Web search tool configuration."""

    base_url: str = "https://www.google.com/search"
    max_results: int = 5
    timeout: float = 10.0


class ToolsConfig(BaseModel):
    """Tools configuration."""

    enabled: list[str] = [
        "read_file",
        "list_files",
        "edit_file",
        "create_file",
        "run_shell_command",
        "git_status",
        "git_log",
        "git_add",
        "git_commit",
        "git_branch",
        "git_merge",
        "git_pull",
        "url_fetch",
        "web_search",
    ]
    shell: ShellToolConfig = Field(default_factory=ShellToolConfig)
    url_fetch: UrlFetchToolConfig = Field(default_factory=UrlFetchToolConfig)
    web_search: WebSearchToolConfig = Field(default_factory=WebSearchToolConfig)


class WorkspaceConfig(BaseModel):
    """Workspace root configuration."""

    path: str = "."


class SessionConfig(BaseModel):
    """Session snapshot configuration."""

    enabled: bool = True
    dir: str = str(DEFAULT_SESSION_DIR)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "WARNING"
    format: str = "console"


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge nested dictionaries, values from override win."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _read_yaml(path: Path) -> dict[str, Any]:
    """Read one YAML config layer."""
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")
    return data


def _is_group_or_other_writable(path: Path) -> bool:
    try:
        mode = path.stat().st_mode
    except OSError:
        return False
    return bool(mode & (stat.S_IWGRP | stat.S_IWOTH))


class Config(BaseSettings):
    """Main configuration for agentloop."""

    model: ModelConfig = Field(default_factory=ModelConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    workspace: WorkspaceConfig = Field(default_factory=WorkspaceConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_prefix="AGENTLOOP_",
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
    )

    _sources: list[str] = PrivateAttr(default_factory=list)
    _warnings: list[str] = PrivateAttr(default_factory=list)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # Environment beats YAML layers, which arrive as init kwargs.
        return env_settings, dotenv_settings, init_settings, file_secret_settings

    @property
    def sources(self) -> list[str]:
        """Config layers that contributed values, in merge order."""
        return list(self._sources)

    @property
    def warnings(self) -> list[str]:
        """Problems noticed while loading configuration."""
        return list(self._warnings)

    @classmethod
    def config_layers(cls, explicit_path: Path | str | None = None) -> list[tuple[str, Path]]:
        """Return candidate YAML layers in ascending precedence."""
        layers: list[tuple[str, Path]] = [
            (f"user:{DEFAULT_CONFIG_PATH}", DEFAULT_CONFIG_PATH),
            (LOCAL_CONFIG_FILENAME, Path.cwd() / LOCAL_CONFIG_FILENAME),
        ]
        env_path = os.environ.get(CONFIG_PATH_ENV, "").strip()
        if env_path:
            layers.append((f"{CONFIG_PATH_ENV}={env_path}", Path(env_path).expanduser()))
        if explicit_path:
            layers.append((f"--config {explicit_path}", Path(explicit_path).expanduser()))
        return layers

    @classmethod
    def from_yaml(cls, path: Path | str) -> "Config":
        """Load configuration from a single YAML file."""
        config_path = Path(path).expanduser()
        if not config_path.exists():
            raise ConfigurationError(f"Config file not found: {config_path}")
        return cls(**_read_yaml(config_path))

    @classmethod
    def load(cls, explicit_path: Path | str | None = None) -> "Config":
        """Load configuration by merging YAML layers, then env vars on top."""
        merged: dict[str, Any] = {}
        sources: list[str] = []
        warnings: list[str] = []

        if explicit_path and not Path(explicit_path).expanduser().exists():
            raise ConfigurationError(f"Config file not found: {explicit_path}")

        for label, path in cls.config_layers(explicit_path):
            if not path.is_file():
                continue
            data = _read_yaml(path)
            if _is_group_or_other_writable(path):
                warnings.append(f"Config file {path} is group/other writable")
            if data:
                merged = _deep_merge(merged, data)
                sources.append(label)

        config = cls(**merged)

        if not config.model.api_key:
            config.model.api_key = os.environ.get("ANTHROPIC_API_KEY", "").strip()
        if not config.model.api_key:
            warnings.append("Missing API key (set model.api_key or ANTHROPIC_API_KEY)")

        config._sources = sources
        config._warnings = warnings
        return config

    def resolved_workspace_path(self, runtime_base: Path | str | None = None) -> Path:
        """Resolve workspace path, anchoring relative paths to runtime base/cwd."""
        raw = Path(self.workspace.path).expanduser()
        if raw.is_absolute():
            return raw.resolve()
        anchor = Path(runtime_base).expanduser().resolve() if runtime_base is not None else Path.cwd().resolve()
        return (anchor / raw).resolve()


# Global config instance
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config.load()
    return _config


def set_config(config: Config) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
