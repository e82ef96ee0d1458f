"""Spawn whitelisted programs inside the workspace."""

import asyncio
from dataclasses import dataclass

from agentloop.exceptions import ToolExecutionError
from agentloop.logging import get_logger
from agentloop.tools.safety import SafetyBoundary

log = get_logger(__name__)


@dataclass
class ProcessOutput:
    """Captured output of a finished process."""

    returncode: int
    stdout: str
    stderr: str

    @property
    def combined(self) -> str:
        return self.stdout or self.stderr


async def run_process(
    argv: list[str],
    boundary: SafetyBoundary,
    tool_name: str,
    timeout: float | None = None,
    check_paths: bool = True,
) -> ProcessOutput:
    """Run *argv* after whitelist and containment checks.

    Never goes through a shell. Spawn failures, timeouts and non-zero exits
    raise ToolExecutionError carrying the (truncated) process output.
    """
    if not argv:
        raise ToolExecutionError(tool_name, "no command given")

    program = boundary.check_command(argv[0], tool_name=tool_name)
    if check_paths:
        boundary.check_arguments(argv[1:], tool_name=tool_name)

    log.info("Spawning process", tool=tool_name, argv=argv, cwd=str(boundary.workspace_root))
    try:
        process = await asyncio.create_subprocess_exec(
            program,
            *argv[1:],
            cwd=str(boundary.workspace_root),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as e:
        raise ToolExecutionError(tool_name, f"command not found: {program}") from e
    except OSError as e:
        raise ToolExecutionError(tool_name, f"failed to start {program}: {e}") from e

    try:
        if timeout:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        else:
            stdout, stderr = await process.communicate()
    except asyncio.TimeoutError as e:
        process.kill()
        await process.wait()
        raise ToolExecutionError(tool_name, f"command timed out after {timeout}s") from e
    except asyncio.CancelledError:
        process.kill()
        await process.wait()
        raise

    output = ProcessOutput(
        returncode=process.returncode if process.returncode is not None else -1,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )
    log.info("Process finished", tool=tool_name, returncode=output.returncode)

    if output.returncode != 0:
        detail = "\n".join(part for part in (output.stdout.strip(), output.stderr.strip()) if part)
        raise ToolExecutionError(
            tool_name,
            boundary.truncate(f"exit {output.returncode}: {detail}"),
        )
    return output
