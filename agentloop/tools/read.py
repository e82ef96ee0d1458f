"""Read tool for reading file contents."""

from pydantic import Field

from agentloop.exceptions import ToolExecutionError
from agentloop.logging import get_logger
from agentloop.tools.registry import Tool, ToolInput
from agentloop.tools.safety import SafetyBoundary

log = get_logger(__name__)


class ReadFileInput(ToolInput):
    path: str = Field(
        min_length=1,
        description="The relative path of a file in the working directory.",
    )


class ReadFileTool(Tool):
    """Read file contents."""

    name = "read_file"
    description = (
        "Read the contents of a given relative file path. Use this when you want "
        "to see what's inside a file. Do not use this with directory names."
    )
    input_model = ReadFileInput

    def __init__(self, boundary: SafetyBoundary):
        self.boundary = boundary

    async def execute(self, args: ReadFileInput) -> str:
        file_path = self.boundary.resolve_path(args.path, tool_name=self.name)

        if not file_path.exists():
            raise ToolExecutionError(self.name, f"File not found: {args.path}")
        if not file_path.is_file():
            raise ToolExecutionError(self.name, f"Not a file: {args.path}")

        log.debug("Reading file", path=str(file_path))
        return file_path.read_text(encoding="utf-8")
