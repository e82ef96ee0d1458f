"""Tool registry and base tool class."""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, ValidationError

from agentloop.conversation import ToolInvocationRequest, ToolInvocationResult
from agentloop.exceptions import (
    ToolBlockedError,
    ToolNotFoundError,
    ToolValidationError,
)
from agentloop.logging import get_logger

log = get_logger(__name__)

ProgressCallback = Callable[[str, dict[str, Any]], None]


class ToolInput(BaseModel):
    """Base class for tool input models."""

    model_config = ConfigDict(extra="forbid")


def _format_location(loc: tuple[Any, ...]) -> str:
    return ".".join(str(part) for part in loc) or "input"


class Tool(ABC):
    """Base class for all tools."""

    name: str = ""
    description: str = ""
    input_model: type[ToolInput] = ToolInput

    @abstractmethod
    async def execute(self, args: Any) -> str:
        """Execute the tool.

        Args:
            args: Validated instance of ``input_model``

        Returns:
            Result text for the model

        Raises:
            ToolBlockedError, ToolExecutionError or any other exception;
            the registry turns all of them into failed results.
        """
        pass

    def input_schema(self) -> dict[str, Any]:
        """Flat object-of-strings projection of ``input_model``.

        Nested models, numbers, booleans and enums are all advertised as
        strings; validation coerces the strings back.
        """
        properties: dict[str, Any] = {}
        required: list[str] = []
        for field_name, field_info in self.input_model.model_fields.items():
            prop: dict[str, Any] = {"type": "string"}
            if field_info.description:
                prop["description"] = field_info.description
            properties[field_name] = prop
            if field_info.is_required():
                required.append(field_name)
        schema: dict[str, Any] = {
            "type": "object",
            "properties": properties,
            "additionalProperties": False,
        }
        if required:
            schema["required"] = required
        return schema

    def get_definition(self) -> dict[str, Any]:
        """Get the tool descriptor sent to the inference gateway."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema(),
        }

    def validate_arguments(self, arguments: Any) -> ToolInput:
        """Validate raw arguments against ``input_model``.

        Raises:
            ToolValidationError naming the first offending field
        """
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise ToolValidationError(self.name, "input", "expected an object")
        try:
            return self.input_model.model_validate(arguments)
        except ValidationError as e:
            errors = e.errors()
            first = errors[0] if errors else {"loc": (), "msg": str(e)}
            raise ToolValidationError(
                self.name,
                _format_location(tuple(first.get("loc", ()))),
                str(first.get("msg", "invalid value")),
            ) from e


class ToolRegistry:
    """Ordered registry of tools keyed by unique name."""

    def __init__(self, progress_callback: ProgressCallback | None = None):
        self._tools: dict[str, Tool] = {}
        self._progress_callback = progress_callback

    def set_progress_callback(self, callback: ProgressCallback | None) -> None:
        """Set the side channel notified after each successful tool run."""
        self._progress_callback = callback

    def register(self, tool: Tool) -> None:
        """Register a tool.

        Args:
            tool: Tool instance to register

        Raises:
            ValueError if the tool has no name or the name is taken
        """
        if not tool.name:
            raise ValueError("Tool must have a name")
        if tool.name in self._tools:
            raise ValueError(f"Tool already registered: {tool.name}")

        log.debug("Registering tool", tool=tool.name)
        self._tools[tool.name] = tool

    def has_tool(self, name: str) -> bool:
        """Return whether a tool name is currently registered."""
        return name in self._tools

    def get(self, name: str) -> Tool:
        """Get a tool by name.

        Raises:
            ToolNotFoundError if not found
        """
        if name not in self._tools:
            raise ToolNotFoundError(name)
        return self._tools[name]

    def list_tools(self) -> list[str]:
        """List registered tool names in registration order."""
        return list(self._tools)

    def get_definitions(self) -> list[dict[str, Any]]:
        """Get all tool descriptors in registration order."""
        return [tool.get_definition() for tool in self._tools.values()]

    async def close(self) -> None:
        """Release resources held by tools (HTTP clients)."""
        for tool in self._tools.values():
            close = getattr(tool, "close", None)
            if callable(close):
                await close()

    def _notify_progress(self, name: str, arguments: dict[str, Any]) -> None:
        if not callable(self._progress_callback):
            return
        try:
            self._progress_callback(name, arguments)
        except Exception as e:
            log.debug("Progress callback failed", tool=name, error=str(e))

    async def dispatch(self, request: ToolInvocationRequest) -> ToolInvocationResult:
        """Look up, validate and execute one invocation request.

        Every outcome becomes a ToolInvocationResult so the model can see
        the failure text and adapt. Only cancellation propagates.
        """
        name = request.name
        arguments = request.arguments if isinstance(request.arguments, dict) else {}

        def failed(message: str) -> ToolInvocationResult:
            return ToolInvocationResult(
                correlates_with=request.id,
                value=message,
                failed=True,
            )

        try:
            tool = self.get(name)
        except ToolNotFoundError as e:
            log.warning("Unknown tool requested", tool=name)
            return failed(str(e))

        try:
            args = tool.validate_arguments(request.arguments)
        except ToolValidationError as e:
            log.info("Rejected tool input", tool=name, field=e.field, reason=e.reason)
            return failed(str(e))

        try:
            log.info("Executing tool", tool=name, args=arguments)
            output = await tool.execute(args)
        except asyncio.CancelledError:
            raise
        except ToolBlockedError as e:
            log.warning("Tool blocked by safety boundary", tool=name, reason=e.reason)
            return failed(e.reason)
        except Exception as e:
            log.error("Tool execution failed", tool=name, error=str(e))
            return failed(str(e) or e.__class__.__name__)

        log.info("Tool executed", tool=name)
        self._notify_progress(name, arguments)
        return ToolInvocationResult(
            correlates_with=request.id,
            value=output if isinstance(output, str) else str(output),
            failed=False,
        )
