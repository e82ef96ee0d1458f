"""Custom exceptions for agentloop."""


class AgentLoopError(Exception):
    """Base exception for agentloop."""

    pass


class ConfigurationError(AgentLoopError):
    """Configuration-related errors."""

    pass


class ConversationError(AgentLoopError):
    """Conversation history would become inconsistent."""

    pass


class LLMError(AgentLoopError):
    """Inference gateway errors."""

    pass


class LLMAPIError(LLMError):
    """Inference API errors (rate limit, auth, unreachable, etc.)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ToolError(AgentLoopError):
    """Tool errors."""

    pass


class ToolExecutionError(ToolError):
    """Tool execution failed."""

    def __init__(self, tool_name: str, message: str):
        super().__init__(message)
        self.tool_name = tool_name


class ToolNotFoundError(ToolError):
    """Tool not found in registry."""

    def __init__(self, tool_name: str):
        super().__init__("tool not found")
        self.tool_name = tool_name


class ToolValidationError(ToolError):
    """Tool arguments rejected by the tool's input model."""

    def __init__(self, tool_name: str, field: str, reason: str):
        super().__init__(f"invalid input: {field}: {reason}")
        self.tool_name = tool_name
        self.field = field
        self.reason = reason


class ToolBlockedError(ToolError):
    """Tool execution blocked by the safety boundary."""

    def __init__(self, tool_name: str, reason: str):
        super().__init__(reason)
        self.tool_name = tool_name
        self.reason = reason


class SessionError(AgentLoopError):
    """Session persistence errors."""

    pass
