"""Shell tool for running whitelisted programs."""

from pydantic import Field

from agentloop.exceptions import ToolBlockedError
from agentloop.logging import get_logger
from agentloop.tools.process import run_process
from agentloop.tools.registry import Tool, ToolInput
from agentloop.tools.safety import SafetyBoundary

log = get_logger(__name__)

# Options that make a whitelisted program start other programs or write
# outside its arguments.
BLOCKED_OPTIONS: dict[str, frozenset[str]] = {
    "find": frozenset(
        {"-exec", "-execdir", "-ok", "-okdir", "-delete", "-fls", "-fprint", "-fprint0", "-fprintf"}
    ),
}


class RunShellCommandInput(ToolInput):
    cmd: str = Field(min_length=1, description="Whitelisted binary name to execute")
    args: str | None = Field(
        default=None,
        description="Optional space-separated arguments passed to the command",
    )


class RunShellCommandTool(Tool):
    """Execute a whitelisted program inside the workspace.

    Arguments are tokenized shell-style but never interpreted by a shell:
    no pipes, globbing, redirection or variable expansion.
    """

    name = "run_shell_command"
    description = (
        "Execute a whitelisted shell command (non-interactive) restricted to "
        "files under current working directory."
    )
    input_model = RunShellCommandInput

    def __init__(self, boundary: SafetyBoundary, timeout: float | None = None):
        self.boundary = boundary
        self.timeout = timeout

    async def execute(self, args: RunShellCommandInput) -> str:
        cmd = self.boundary.check_command(args.cmd, tool_name=self.name)
        argv = [cmd, *self.boundary.split_arguments(args.args, tool_name=self.name)]
        blocked = BLOCKED_OPTIONS.get(cmd, frozenset())
        for token in argv[1:]:
            if token in blocked:
                log.warning("Blocked command option", command=cmd, option=token)
                raise ToolBlockedError(self.name, f"option not allowed: {cmd} {token}")

        output = await run_process(
            argv,
            self.boundary,
            tool_name=self.name,
            timeout=self.timeout,
        )
        return self.boundary.truncate(output.combined) or "[no output]"
