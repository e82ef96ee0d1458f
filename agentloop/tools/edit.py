"""Edit tool: search-and-replace within a text file."""

from pydantic import Field

from agentloop.exceptions import ToolExecutionError
from agentloop.logging import get_logger
from agentloop.tools.registry import Tool, ToolInput
from agentloop.tools.safety import SafetyBoundary

log = get_logger(__name__)


class EditFileInput(ToolInput):
    path: str = Field(min_length=1, description="The path to the file")
    old_str: str = Field(
        description="Text to search for - must match exactly and must only have one match exactly",
    )
    new_str: str = Field(description="Text to replace old_str with")


class EditFileTool(Tool):
    """Replace text in a file, or create it when old_str is empty."""

    name = "edit_file"
    description = (
        "Make edits to a text file.\n\n"
        "Replaces 'old_str' with 'new_str' in the given file. "
        "'old_str' and 'new_str' MUST be different from each other.\n\n"
        "If the file specified with path doesn't exist, it will be created."
    )
    input_model = EditFileInput

    def __init__(self, boundary: SafetyBoundary):
        self.boundary = boundary

    async def execute(self, args: EditFileInput) -> str:
        if args.old_str == args.new_str:
            raise ToolExecutionError(self.name, "invalid input parameters")

        file_path = self.boundary.resolve_path(args.path, tool_name=self.name)

        if not file_path.exists():
            if args.old_str != "":
                raise ToolExecutionError(self.name, "file does not exist and old_str not empty")
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_text(args.new_str, encoding="utf-8")
            log.info("Created file", path=str(file_path))
            return f"Successfully created file {args.path}"

        if not file_path.is_file():
            raise ToolExecutionError(self.name, f"Not a file: {args.path}")

        original = file_path.read_text(encoding="utf-8")
        if args.old_str == "":
            # Existing file with an empty search string: nothing to replace.
            return "OK"
        if args.old_str not in original:
            raise ToolExecutionError(self.name, "old_str not found in file")

        # Every occurrence is replaced, not just the first.
        file_path.write_text(original.replace(args.old_str, args.new_str), encoding="utf-8")
        log.info("Edited file", path=str(file_path), occurrences=original.count(args.old_str))
        return "OK"
