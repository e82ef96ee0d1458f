"""Tools package for agentloop."""

from pathlib import Path

from agentloop.config import Config
from agentloop.logging import get_logger
from agentloop.tools.create import CreateFileTool
from agentloop.tools.edit import EditFileTool
from agentloop.tools.git import (
    GitAddTool,
    GitBranchTool,
    GitCommitTool,
    GitLogTool,
    GitMergeTool,
    GitPullTool,
    GitStatusTool,
)
from agentloop.tools.list_files import ListFilesTool
from agentloop.tools.read import ReadFileTool
from agentloop.tools.registry import ProgressCallback, Tool, ToolInput, ToolRegistry
from agentloop.tools.safety import SafetyBoundary
from agentloop.tools.shell import RunShellCommandTool
from agentloop.tools.web_fetch import UrlFetchTool
from agentloop.tools.web_search import WebSearchTool

log = get_logger(__name__)


def build_default_registry(
    config: Config,
    boundary: SafetyBoundary | None = None,
    progress_callback: ProgressCallback | None = None,
    runtime_base: Path | str | None = None,
) -> ToolRegistry:
    """Register every tool named in ``tools.enabled``, in that order."""
    if boundary is None:
        boundary = SafetyBoundary.from_config(config, runtime_base)
    shell_timeout = config.tools.shell.timeout
    fetch_cfg = config.tools.url_fetch
    search_cfg = config.tools.web_search

    registry = ToolRegistry(progress_callback=progress_callback)
    for tool_name in config.tools.enabled:
        if registry.has_tool(tool_name):
            continue
        if tool_name == "read_file":
            registry.register(ReadFileTool(boundary))
        elif tool_name == "list_files":
            registry.register(ListFilesTool(boundary))
        elif tool_name == "edit_file":
            registry.register(EditFileTool(boundary))
        elif tool_name == "create_file":
            registry.register(CreateFileTool(boundary))
        elif tool_name == "run_shell_command":
            registry.register(RunShellCommandTool(boundary, timeout=shell_timeout))
        elif tool_name == "git_status":
            registry.register(GitStatusTool(boundary, timeout=shell_timeout))
        elif tool_name == "git_log":
            registry.register(GitLogTool(boundary, timeout=shell_timeout))
        elif tool_name == "git_add":
            registry.register(GitAddTool(boundary, timeout=shell_timeout))
        elif tool_name == "git_commit":
            registry.register(GitCommitTool(boundary, timeout=shell_timeout))
        elif tool_name == "git_branch":
            registry.register(GitBranchTool(boundary, timeout=shell_timeout))
        elif tool_name == "git_merge":
            registry.register(GitMergeTool(boundary, timeout=shell_timeout))
        elif tool_name == "git_pull":
            registry.register(GitPullTool(boundary, timeout=shell_timeout))
        elif tool_name == "url_fetch":
            registry.register(
                UrlFetchTool(timeout=fetch_cfg.timeout, max_chars=fetch_cfg.max_chars)
            )
        elif tool_name == "web_search":
            registry.register(
                WebSearchTool(
                    base_url=search_cfg.base_url,
                    max_results=search_cfg.max_results,
                    timeout=search_cfg.timeout,
                )
            )
        else:
            log.warning("Unknown tool in tools.enabled", tool=tool_name)
    return registry


__all__ = [
    "Tool",
    "ToolInput",
    "ToolRegistry",
    "SafetyBoundary",
    "build_default_registry",
    "ReadFileTool",
    "ListFilesTool",
    "EditFileTool",
    "CreateFileTool",
    "RunShellCommandTool",
    "GitStatusTool",
    "GitLogTool",
    "GitAddTool",
    "GitCommitTool",
    "GitBranchTool",
    "GitMergeTool",
    "GitPullTool",
    "UrlFetchTool",
    "WebSearchTool",
]
