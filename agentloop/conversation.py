"""Conversation history: speakers, content segments and the append-only log."""

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from agentloop.exceptions import ConversationError


class Speaker(str, Enum):
    """Who produced a conversation entry."""

    HUMAN = "user"
    MODEL = "assistant"


@dataclass(frozen=True)
class TextSegment:
    """Plain text."""

    value: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": "text", "text": self.value}


@dataclass(frozen=True)
class ToolInvocationRequest:
    """A model request to run a named tool."""

    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "tool_use",
            "id": self.id,
            "name": self.name,
            "input": dict(self.arguments),
        }


@dataclass(frozen=True)
class ToolInvocationResult:
    """The outcome of one tool invocation, correlated to its request id."""

    correlates_with: str
    value: str
    failed: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "tool_result",
            "tool_use_id": self.correlates_with,
            "content": [{"type": "text", "text": self.value}],
            "is_error": self.failed,
        }


ContentSegment = Union[TextSegment, ToolInvocationRequest, ToolInvocationResult]


def segment_from_dict(block: dict[str, Any]) -> ContentSegment | None:
    """Parse one wire content block; unknown block types yield None."""
    block_type = block.get("type")
    if block_type == "text":
        return TextSegment(value=str(block.get("text", "")))
    if block_type == "tool_use":
        arguments = block.get("input") or {}
        if not isinstance(arguments, dict):
            arguments = {"raw": arguments}
        return ToolInvocationRequest(
            id=str(block.get("id", "")),
            name=str(block.get("name", "")),
            arguments=arguments,
        )
    if block_type == "tool_result":
        content = block.get("content", "")
        if isinstance(content, list):
            content = "".join(
                str(part.get("text", ""))
                for part in content
                if isinstance(part, dict) and part.get("type") == "text"
            )
        return ToolInvocationResult(
            correlates_with=str(block.get("tool_use_id", "")),
            value=str(content),
            failed=bool(block.get("is_error", False)),
        )
    return None


@dataclass(frozen=True)
class ConversationEntry:
    """One turn's worth of content from either the human or the model."""

    speaker: Speaker
    segments: tuple[ContentSegment, ...] = ()

    def __post_init__(self) -> None:
        # Accept any sequence but store an immutable tuple.
        object.__setattr__(self, "segments", tuple(self.segments))

    @classmethod
    def human_text(cls, text: str) -> "ConversationEntry":
        return cls(speaker=Speaker.HUMAN, segments=(TextSegment(text),))

    def text_segments(self) -> list[TextSegment]:
        return [s for s in self.segments if isinstance(s, TextSegment)]

    def tool_requests(self) -> list[ToolInvocationRequest]:
        return [s for s in self.segments if isinstance(s, ToolInvocationRequest)]

    def tool_results(self) -> list[ToolInvocationResult]:
        return [s for s in self.segments if isinstance(s, ToolInvocationResult)]

    def to_dict(self) -> dict[str, Any]:
        """Wire/snapshot form: ``{"role": ..., "content": [blocks]}``."""
        return {
            "role": self.speaker.value,
            "content": [segment.to_dict() for segment in self.segments],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConversationEntry":
        speaker = Speaker(data.get("role", Speaker.HUMAN.value))
        content = data.get("content", [])
        if isinstance(content, str):
            return cls(speaker=speaker, segments=(TextSegment(content),))
        segments = [
            segment
            for block in content
            if isinstance(block, dict) and (segment := segment_from_dict(block)) is not None
        ]
        return cls(speaker=speaker, segments=tuple(segments))


class Conversation:
    """Append-only, ordered conversation history.

    Entries are never edited or removed. ``entries`` hands out a tuple copy so
    callers (the inference gateway in particular) can never mutate the log.
    """

    def __init__(self, entries: list[ConversationEntry] | None = None):
        self._entries: list[ConversationEntry] = []
        for entry in entries or []:
            self.append(entry)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ConversationEntry]:
        return iter(tuple(self._entries))

    @property
    def entries(self) -> tuple[ConversationEntry, ...]:
        return tuple(self._entries)

    def last(self) -> ConversationEntry | None:
        return self._entries[-1] if self._entries else None

    def append(self, entry: ConversationEntry) -> ConversationEntry:
        """Append an entry, enforcing tool result correlation."""
        results = entry.tool_results()
        if results:
            self._check_correlation(entry, results)
        self._entries.append(entry)
        return entry

    def _check_correlation(
        self,
        entry: ConversationEntry,
        results: list[ToolInvocationResult],
    ) -> None:
        if entry.speaker is not Speaker.HUMAN:
            raise ConversationError("Tool results must be sent by the human side")
        previous = self.last()
        if previous is None or previous.speaker is not Speaker.MODEL:
            raise ConversationError("Tool results must follow a model entry")
        expected = [request.id for request in previous.tool_requests()]
        actual = [result.correlates_with for result in results]
        if actual != expected:
            raise ConversationError(
                f"Tool results {actual} do not match requests {expected}"
            )

    def to_dicts(self) -> list[dict[str, Any]]:
        return [entry.to_dict() for entry in self._entries]
