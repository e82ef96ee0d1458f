"""First-run helpers: sample config file and configuration report."""

from pathlib import Path
from typing import Any

import yaml
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from agentloop.config import (
    DEFAULT_CONFIG_PATH,
    Config,
    LoggingConfig,
    ModelConfig,
    SessionConfig,
    ToolsConfig,
    WorkspaceConfig,
)


def sample_config() -> dict[str, Any]:
    """Default configuration as a YAML-ready mapping, without credentials."""
    return {
        "model": ModelConfig().model_dump(exclude={"api_key"}),
        "tools": ToolsConfig().model_dump(),
        "workspace": WorkspaceConfig().model_dump(),
        "session": SessionConfig().model_dump(),
        "logging": LoggingConfig().model_dump(),
    }


def write_sample_config(
    config_path: Path | str | None = None,
    console: Console | None = None,
) -> Path | None:
    """Write the sample config unless a file already exists there.

    Returns:
        The written path, or None when an existing file was left untouched
    """
    console = console or Console()
    target = Path(config_path or DEFAULT_CONFIG_PATH).expanduser()
    if target.exists():
        console.print(f"[yellow]Config already exists at {target}; leaving it unchanged.[/yellow]")
        return None

    target.parent.mkdir(parents=True, exist_ok=True)
    header = (
        "# agentloop configuration\n"
        "# The API key is read from ANTHROPIC_API_KEY unless model.api_key is set here.\n"
    )
    target.write_text(header + yaml.safe_dump(sample_config(), sort_keys=False), encoding="utf-8")
    target.chmod(0o600)

    console.print(
        Panel(
            "[bold green]Sample configuration written.[/bold green]\n"
            f"Edit [cyan]{target}[/cyan] to change model, tools and workspace.",
            border_style="green",
        )
    )
    return target


def print_config_report(config: Config, workspace: Path, console: Console | None = None) -> None:
    """Summarize the effective configuration (used by ``run --verbose``)."""
    console = console or Console(stderr=True)

    summary = Table(title="Configuration", show_header=False, box=None)
    summary.add_column("Setting", style="bold")
    summary.add_column("Value", overflow="fold")
    summary.add_row("Sources", ", ".join(config.sources) or "(defaults and environment only)")
    summary.add_row("Model", config.model.model)
    summary.add_row("Max tokens", str(config.model.max_tokens))
    summary.add_row("API key", "set" if config.model.api_key else "missing")
    summary.add_row("Workspace", str(workspace))
    summary.add_row("Tools", ", ".join(config.tools.enabled) or "(none)")
    summary.add_row("Allowed commands", ", ".join(config.tools.shell.allowed_commands) or "(none)")
    summary.add_row("Sessions", config.session.dir if config.session.enabled else "disabled")
    console.print(summary)
