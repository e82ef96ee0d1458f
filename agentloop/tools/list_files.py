"""List tool for directory contents."""

import json

from pydantic import Field

from agentloop.exceptions import ToolExecutionError
from agentloop.tools.registry import Tool, ToolInput
from agentloop.tools.safety import SafetyBoundary


class ListFilesInput(ToolInput):
    path: str | None = Field(
        default=None,
        description=(
            "Optional relative path to list files from. "
            "Defaults to current directory if not provided."
        ),
    )


class ListFilesTool(Tool):
    """List the immediate children of a directory."""

    name = "list_files"
    description = (
        "List files and directories at a given path. If no path is provided, "
        "lists files in the current directory."
    )
    input_model = ListFilesInput

    def __init__(self, boundary: SafetyBoundary):
        self.boundary = boundary

    async def execute(self, args: ListFilesInput) -> str:
        target = self.boundary.resolve_path(args.path or ".", tool_name=self.name)
        if not target.exists():
            raise ToolExecutionError(self.name, f"Path not found: {args.path}")

        # A file (or anything that is not a directory) lists as empty.
        entries: list[str] = []
        if target.is_dir():
            for child in sorted(target.iterdir(), key=lambda p: p.name):
                entries.append(f"{child.name}/" if child.is_dir() else child.name)
        return json.dumps(entries)
