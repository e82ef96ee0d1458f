"""Create tool for writing new files."""

from pydantic import Field

from agentloop.exceptions import ToolExecutionError
from agentloop.logging import get_logger
from agentloop.tools.registry import Tool, ToolInput
from agentloop.tools.safety import SafetyBoundary

log = get_logger(__name__)


class CreateFileInput(ToolInput):
    path: str = Field(min_length=1, description="The path of the file to create")
    content: str = Field(default="", description="The text content to write into the new file")
    overwrite: bool = Field(
        default=False,
        description="If true and file exists, overwrite it. Default: false (error if exists).",
    )


class CreateFileTool(Tool):
    """Create a text file."""

    name = "create_file"
    description = (
        "Create a new text file with provided content. "
        "Fails if file exists unless overwrite=true."
    )
    input_model = CreateFileInput

    def __init__(self, boundary: SafetyBoundary):
        self.boundary = boundary

    async def execute(self, args: CreateFileInput) -> str:
        file_path = self.boundary.resolve_path(args.path, tool_name=self.name)

        exists = file_path.exists()
        if exists and not args.overwrite:
            raise ToolExecutionError(
                self.name,
                "file already exists (specify overwrite=true to replace)",
            )
        if exists and not file_path.is_file():
            raise ToolExecutionError(self.name, f"Not a file: {args.path}")

        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(args.content, encoding="utf-8")
        log.info("Wrote file", path=str(file_path), overwritten=exists)
        return "OVERWRITTEN" if exists else "CREATED"
