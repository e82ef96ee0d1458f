"""Console UI for agentloop."""

import atexit
import json
import os
import sys
from pathlib import Path
from typing import Any, TextIO

from agentloop.config import USER_CONFIG_DIR
from agentloop.logging import get_logger

log = get_logger(__name__)

RESET = "\033[0m"
BLUE = "\033[94m"
YELLOW = "\033[93m"
GREEN = "\033[92m"
RED = "\033[91m"
MAGENTA = "\033[95m"

HISTORY_FILE = USER_CONFIG_DIR / "history"


class ConsoleUI:
    """Line-oriented terminal UI: prompt, model text and tool notices."""

    def __init__(
        self,
        stream: TextIO | None = None,
        use_readline: bool = True,
        history_file: Path | None = None,
    ):
        self._stream = stream
        is_tty = bool(getattr(self.stream, "isatty", lambda: False)())
        self._ansi_enabled = is_tty and not bool(os.environ.get("NO_COLOR"))
        self._readline = None
        self._history_file = history_file or HISTORY_FILE
        if use_readline:
            self._setup_readline()

    @property
    def stream(self) -> TextIO:
        return self._stream or sys.stdout

    @property
    def ansi_enabled(self) -> bool:
        return self._ansi_enabled

    def _setup_readline(self) -> None:
        """Set up line editing and persistent input history."""
        try:
            import readline  # type: ignore
        except ImportError:
            return

        self._readline = readline
        try:
            if self._history_file.exists():
                readline.read_history_file(str(self._history_file))
            readline.set_history_length(1000)
            atexit.register(self._save_history)
        except OSError as e:
            log.debug("Readline setup failed", error=str(e))

    def _save_history(self) -> None:
        if self._readline is None:
            return
        try:
            self._history_file.parent.mkdir(parents=True, exist_ok=True)
            self._readline.write_history_file(str(self._history_file))
        except OSError as e:
            log.debug("Failed to save history", error=str(e))

    def _style(self, text: str, color: str) -> str:
        if not self._ansi_enabled:
            return text
        return f"{color}{text}{RESET}"

    def _write(self, line: str) -> None:
        print(line, file=self.stream, flush=True)

    def print_welcome(self) -> None:
        self._write("Chat with the model (ctrl-c or ctrl-d to quit)")

    def prompt_text(self) -> str:
        return f"{self._style('You', BLUE)}: "

    def prompt(self) -> str | None:
        """Read one line from the human; None once input is exhausted."""
        try:
            return input(self.prompt_text())
        except EOFError:
            self._write("")
            return None

    def print_message(self, text: str) -> None:
        self._write(f"{self._style('Model', YELLOW)}: {text}")

    def print_tool_call(self, tool_name: str, arguments: dict[str, Any]) -> None:
        """Progress notice for a tool that ran successfully."""
        rendered = json.dumps(arguments, ensure_ascii=False, default=str)
        self._write(f"{self._style('tool', GREEN)}: {tool_name}({rendered})")

    def print_error(self, error: str) -> None:
        self._write(f"{self._style('Error', RED)}: {error}")

    def print_warning(self, warning: str) -> None:
        self._write(f"{self._style('Warning', MAGENTA)}: {warning}")


# Global UI instance
_ui: ConsoleUI | None = None


def get_ui() -> ConsoleUI:
    """Get the global UI instance."""
    global _ui
    if _ui is None:
        _ui = ConsoleUI()
    return _ui


def set_ui(ui: ConsoleUI | None) -> None:
    """Set the global UI instance."""
    global _ui
    _ui = ui
