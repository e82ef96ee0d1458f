"""Main entry point for agentloop."""

import asyncio
import sys
from pathlib import Path

import typer

from agentloop import __version__
from agentloop.agent import TurnController
from agentloop.cli import ConsoleUI, get_ui
from agentloop.config import Config, set_config
from agentloop.exceptions import AgentLoopError, ConfigurationError, SessionError
from agentloop.llm import InferenceGateway, create_gateway
from agentloop.logging import configure_logging, log
from agentloop.onboarding import print_config_report, write_sample_config
from agentloop.session import NullSessionSink, SessionSink, SessionStore
from agentloop.tools import SafetyBoundary, ToolRegistry, build_default_registry

MISSING_API_KEY = "Missing API key (set model.api_key or ANTHROPIC_API_KEY)"


def _build_session_sink(cfg: Config, ui: ConsoleUI, cwd: Path) -> SessionSink:
    if not cfg.session.enabled:
        return NullSessionSink()
    store = SessionStore.from_config(cfg, cwd=cwd)
    try:
        migrated = store.init_project_dir()
    except SessionError as e:
        ui.print_warning(f"Session snapshots disabled: {e}")
        return NullSessionSink()
    if migrated:
        log.info("Migrated legacy sessions", count=migrated, project_dir=str(store.project_dir))
    return store


async def _run_session(
    controller: TurnController,
    gateway: InferenceGateway,
    registry: ToolRegistry,
) -> None:
    try:
        await controller.run()
    finally:
        await registry.close()
        await gateway.close()


def main(
    config: str = "",
    model: str = "",
    max_tokens: int | None = None,
    verbose: bool = False,
) -> None:
    """Start an interactive agentloop session."""
    ui = get_ui()

    try:
        cfg = Config.load(config or None)
    except ConfigurationError as e:
        ui.print_error(str(e))
        sys.exit(1)

    # Apply CLI overrides
    if model:
        cfg.model.model = model
    if max_tokens is not None:
        cfg.model.max_tokens = max_tokens
    if verbose:
        cfg.logging.level = "DEBUG"

    set_config(cfg)
    configure_logging()

    for warning in cfg.warnings:
        if warning != MISSING_API_KEY:
            ui.print_warning(warning)
    if not cfg.model.api_key:
        ui.print_error(MISSING_API_KEY)
        sys.exit(1)

    boundary = SafetyBoundary.from_config(cfg, Path.cwd())
    if not boundary.workspace_root.is_dir():
        ui.print_error(f"Workspace is not a directory: {boundary.workspace_root}")
        sys.exit(1)
    if verbose:
        print_config_report(cfg, boundary.workspace_root)

    registry = build_default_registry(cfg, boundary, progress_callback=ui.print_tool_call)
    gateway = create_gateway(cfg)
    controller = TurnController(
        gateway,
        registry,
        model=cfg.model.model,
        max_tokens=cfg.model.max_tokens,
        read_input=ui.prompt,
        on_text=ui.print_message,
        session_sink=_build_session_sink(cfg, ui, boundary.workspace_root),
    )

    ui.print_welcome()
    try:
        asyncio.run(_run_session(controller, gateway, registry))
    except KeyboardInterrupt:
        log.info("Shutting down...")
        sys.exit(0)
    except AgentLoopError as e:
        ui.print_error(str(e))
        log.error("Fatal error", error=str(e))
        sys.exit(1)
    except Exception as e:
        ui.print_error(f"{e.__class__.__name__}: {e}")
        log.error("Fatal error", error=str(e), exc_info=True)
        sys.exit(1)


def version() -> None:
    """Show version information."""
    print(f"agentloop v{__version__}")


cli = typer.Typer(help="agentloop - a console agent driving a model with local tools")


@cli.callback(invoke_without_command=True)
def default(ctx: typer.Context) -> None:
    """Run an interactive session when no command is given."""
    if ctx.invoked_subcommand is None:
        main()


@cli.command()
def run(
    config: str = typer.Option("", "-c", "--config", help="Path to config file"),
    model: str = typer.Option("", "-m", "--model", help="Override model"),
    max_tokens: int | None = typer.Option(None, "--max-tokens", help="Override max tokens per turn"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Debug logging"),
) -> None:
    """Start an interactive session."""
    main(config, model, max_tokens, verbose)


@cli.command()
def init(
    path: str = typer.Option("", "--path", help="Where to write the config (default: user config)"),
) -> None:
    """Write a sample user config file."""
    write_sample_config(path or None)


@cli.command(name="version")
def version_command() -> None:
    """Show version information."""
    version()


if __name__ == "__main__":
    cli()
