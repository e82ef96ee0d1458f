"""Turn controller: the human / model / tool event loop."""

import asyncio
from enum import Enum
from typing import Callable

from agentloop.conversation import (
    Conversation,
    ConversationEntry,
    Speaker,
    TextSegment,
    ToolInvocationRequest,
    ToolInvocationResult,
)
from agentloop.exceptions import ConversationError
from agentloop.llm import InferenceGateway
from agentloop.logging import get_logger
from agentloop.session import NullSessionSink, SessionSink, SessionSnapshot
from agentloop.tools.registry import ToolRegistry

log = get_logger(__name__)

ReadInput = Callable[[], str | None]
OnText = Callable[[str], None]


class TurnState(str, Enum):
    AWAITING_HUMAN_INPUT = "awaiting_human_input"
    INFERRING = "inferring"
    DISPATCHING_TOOLS = "dispatching_tools"
    STOPPED = "stopped"


class TurnController:
    """Drive a conversation between a human, a model and local tools.

    The gateway is stateless, so every inference replays the whole history.
    A model turn that requests tools is answered with one human-side entry
    holding every result, in request order, before inference resumes;
    human input is only read again once the model answers without tools.
    """

    def __init__(
        self,
        gateway: InferenceGateway,
        registry: ToolRegistry,
        *,
        model: str = "",
        max_tokens: int = 1024,
        read_input: ReadInput | None = None,
        on_text: OnText | None = None,
        session_sink: SessionSink | None = None,
    ):
        self.gateway = gateway
        self.registry = registry
        self.model = model
        self.max_tokens = max_tokens
        self.read_input = read_input
        self.on_text = on_text
        self.session_sink = session_sink or NullSessionSink()
        self.usage: dict[str, int] = {}
        self._history = Conversation()
        self._state = TurnState.AWAITING_HUMAN_INPUT

    @property
    def state(self) -> TurnState:
        return self._state

    @property
    def conversation(self) -> tuple[ConversationEntry, ...]:
        """Read-only copy of the history."""
        return self._history.entries

    def stop(self) -> None:
        self._state = TurnState.STOPPED

    def _append(self, entry: ConversationEntry) -> None:
        self._history.append(entry)
        self._flush_session()

    def _flush_session(self) -> None:
        snapshot = SessionSnapshot(
            model=self.model,
            max_tokens=self.max_tokens,
            messages=self._history.to_dicts(),
        )
        try:
            self.session_sink.write(snapshot)
        except Exception as e:
            # Persistence must never interrupt the conversation.
            log.debug("Session snapshot write failed", error=str(e))

    def _surface(self, text: str) -> None:
        if self.on_text is not None:
            self.on_text(text)

    def _track_usage(self, usage: dict[str, int]) -> None:
        for key, value in usage.items():
            self.usage[key] = self.usage.get(key, 0) + value

    async def run(self) -> None:
        """Read human input and answer it until input ends or the controller stops."""
        if self.read_input is None:
            raise ConversationError("TurnController.run() needs a read_input callable")

        self._state = TurnState.AWAITING_HUMAN_INPUT
        try:
            while self._state is not TurnState.STOPPED:
                try:
                    text = await asyncio.to_thread(self.read_input)
                except (EOFError, KeyboardInterrupt):
                    log.info("Input closed")
                    break
                if text is None:
                    log.info("Input closed")
                    break
                await self.submit(text)
        finally:
            self._state = TurnState.STOPPED

    async def submit(self, text: str) -> list[str]:
        """Run one human prompt through to a tool-free model turn.

        Returns:
            Model text segments surfaced while answering, in order
        """
        if self._state is TurnState.STOPPED:
            raise ConversationError("Turn controller is stopped")
        if not text or not text.strip():
            return []

        self._append(ConversationEntry.human_text(text))
        surfaced: list[str] = []
        while True:
            entry = await self.infer_once()
            if entry is None:
                break
            pending = await self._scan(entry, surfaced)
            if not pending:
                break
            # Results go back before any new human input is read.
            self._append(ConversationEntry(speaker=Speaker.HUMAN, segments=tuple(pending)))

        self._state = TurnState.AWAITING_HUMAN_INPUT
        return surfaced

    async def _scan(
        self,
        entry: ConversationEntry,
        surfaced: list[str],
    ) -> list[ToolInvocationResult]:
        """Surface text and dispatch tool requests in segment order."""
        pending: list[ToolInvocationResult] = []
        for segment in entry.segments:
            match segment:
                case TextSegment(value=value):
                    surfaced.append(value)
                    self._surface(value)
                case ToolInvocationRequest():
                    self._state = TurnState.DISPATCHING_TOOLS
                    pending.append(await self.registry.dispatch(segment))
                case ToolInvocationResult():
                    log.warning("Ignoring tool result sent by the model", correlates_with=segment.correlates_with)
        return pending

    async def infer_once(self) -> ConversationEntry | None:
        """Send the full history once and record the model's turn.

        Returns:
            The appended model entry, or None when the model returned no content

        Raises:
            Whatever the gateway raises; the controller is then STOPPED
        """
        self._state = TurnState.INFERRING
        try:
            response = await self.gateway.complete(
                self._history.entries,
                self.registry.get_definitions(),
            )
        except BaseException:
            self._state = TurnState.STOPPED
            raise

        self._track_usage(response.usage)
        if not response.segments:
            log.warning("Model returned no content", stop_reason=response.stop_reason)
            self._state = TurnState.AWAITING_HUMAN_INPUT
            return None

        entry = ConversationEntry(speaker=Speaker.MODEL, segments=tuple(response.segments))
        self._append(entry)
        return entry
