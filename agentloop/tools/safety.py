"""Safety boundary shared by filesystem, git and shell tools."""

import os
import shlex
from dataclasses import dataclass, field
from pathlib import Path

from agentloop.config import DEFAULT_ALLOWED_COMMANDS, Config
from agentloop.exceptions import ToolBlockedError
from agentloop.logging import get_logger

log = get_logger(__name__)

TRUNCATION_MARKER = "...<truncated>"
DEFAULT_MAX_OUTPUT_CHARS = 8000


def _is_relative_to(path: Path, parent: Path) -> bool:
    """Return True if *path* is *parent* or lives below it."""
    try:
        path.relative_to(parent)
        return True
    except ValueError:
        return False


@dataclass(frozen=True)
class SafetyBoundary:
    """Executable whitelist, workspace containment and output bounds.

    Built once at startup and handed to every tool that touches the
    filesystem or spawns a process.
    """

    workspace_root: Path
    allowed_commands: frozenset[str] = field(
        default_factory=lambda: frozenset(DEFAULT_ALLOWED_COMMANDS)
    )
    max_output_chars: int = DEFAULT_MAX_OUTPUT_CHARS

    def __post_init__(self) -> None:
        root = Path(self.workspace_root).expanduser().resolve()
        object.__setattr__(self, "workspace_root", root)
        object.__setattr__(self, "allowed_commands", frozenset(self.allowed_commands))

    @classmethod
    def from_config(cls, config: Config, runtime_base: Path | str | None = None) -> "SafetyBoundary":
        """Build the boundary from loaded configuration."""
        shell_cfg = config.tools.shell
        return cls(
            workspace_root=config.resolved_workspace_path(runtime_base),
            allowed_commands=frozenset(
                str(item).strip() for item in shell_cfg.allowed_commands if str(item).strip()
            ),
            max_output_chars=max(1, int(shell_cfg.max_output_chars)),
        )

    def check_command(self, name: str, tool_name: str = "run_shell_command") -> str:
        """Reject executables outside the whitelist before anything spawns."""
        cleaned = str(name or "").strip()
        if not cleaned:
            raise ToolBlockedError(tool_name, "command not allowed: <empty>")
        if os.sep in cleaned or "/" in cleaned or cleaned not in self.allowed_commands:
            log.warning("Blocked command outside whitelist", command=cleaned)
            raise ToolBlockedError(tool_name, f"command not allowed: {cleaned}")
        return cleaned

    def looks_like_path(self, arg: str) -> bool:
        """Heuristic: contains a separator or names something that exists."""
        if not arg:
            return False
        if "/" in arg or os.sep in arg:
            return True
        if arg in (".", ".."):
            return True
        return (self.workspace_root / arg).exists()

    def resolve_path(self, arg: str, tool_name: str = "") -> Path:
        """Resolve *arg* against the workspace root, rejecting escapes.

        Symlinks are followed, so a link pointing outside the workspace is
        rejected just like an absolute path or a ``..`` traversal.
        """
        raw = Path(str(arg)).expanduser()
        candidate = raw if raw.is_absolute() else self.workspace_root / raw
        resolved = Path(os.path.realpath(candidate))
        if not _is_relative_to(resolved, self.workspace_root):
            log.warning("Blocked path outside workspace", path=str(arg), resolved=str(resolved))
            raise ToolBlockedError(tool_name, f"path escapes workspace: {arg}")
        return resolved

    def check_arguments(self, args: list[str], tool_name: str = "run_shell_command") -> None:
        """Containment check for every path-looking argument."""
        for arg in args:
            for value in self._path_candidates(arg):
                if self.looks_like_path(value):
                    self.resolve_path(value, tool_name=tool_name)

    @staticmethod
    def _path_candidates(arg: str) -> list[str]:
        """Values inside one argument token that may name a path."""
        if arg.startswith("--"):
            return [arg.split("=", 1)[1]] if "=" in arg else []
        if arg.startswith("-"):
            # -X<value> with the value attached
            return [arg[2:]] if len(arg) > 2 else []
        # A quoted token can hold several words, e.g. a nested command line.
        return arg.split() or [arg]

    @staticmethod
    def split_arguments(text: str | None, tool_name: str = "run_shell_command") -> list[str]:
        """Tokenize an argument string the way a POSIX shell would, minus expansion."""
        cleaned = str(text or "").strip()
        if not cleaned:
            return []
        try:
            return shlex.split(cleaned, posix=True)
        except ValueError as e:
            raise ToolBlockedError(tool_name, f"arguments are not parseable: {e}") from e

    def truncate(self, text: str) -> str:
        """Bound output size, appending a marker when clipped."""
        if len(text) <= self.max_output_chars:
            return text
        return text[: self.max_output_chars] + TRUNCATION_MARKER
