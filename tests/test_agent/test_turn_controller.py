import json
from pathlib import Path

import pytest

from agentloop.agent import TurnController, TurnState
from agentloop.conversation import (
    ConversationEntry,
    Speaker,
    TextSegment,
    ToolInvocationRequest,
)
from agentloop.exceptions import ConversationError, LLMAPIError
from agentloop.llm import InferenceGateway, InferenceResponse
from agentloop.session import SessionSink, SessionSnapshot
from agentloop.tools.list_files import ListFilesTool
from agentloop.tools.read import ReadFileTool
from agentloop.tools.registry import ToolRegistry
from agentloop.tools.safety import SafetyBoundary
from agentloop.tools.shell import RunShellCommandTool


class ScriptedGateway(InferenceGateway):
    """Replays canned model turns and records what it was sent."""

    def __init__(self, turns: list[list]):
        self.turns = list(turns)
        self.calls: list[tuple[tuple[ConversationEntry, ...], list[dict]]] = []

    async def complete(self, conversation, tools) -> InferenceResponse:
        self.calls.append((conversation, tools))
        if not self.turns:
            raise AssertionError("gateway called more often than scripted")
        return InferenceResponse(segments=self.turns.pop(0), model="fake", usage={"output_tokens": 1})


class FailingGateway(InferenceGateway):
    async def complete(self, conversation, tools) -> InferenceResponse:
        raise LLMAPIError("Inference API error 500: boom", status_code=500)


class RecordingSink(SessionSink):
    def __init__(self):
        self.snapshots: list[SessionSnapshot] = []

    def write(self, snapshot: SessionSnapshot):
        self.snapshots.append(snapshot)
        return None


class BrokenSink(SessionSink):
    def __init__(self):
        self.attempts = 0

    def write(self, snapshot: SessionSnapshot):
        self.attempts += 1
        raise OSError("disk full")


def _text(value: str) -> TextSegment:
    return TextSegment(value)


def _call(request_id: str, name: str, **arguments) -> ToolInvocationRequest:
    return ToolInvocationRequest(id=request_id, name=name, arguments=arguments)


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    (tmp_path / "a.txt").write_text("alpha contents", encoding="utf-8")
    (tmp_path / "sub").mkdir()
    return tmp_path


@pytest.fixture
def registry(workspace: Path) -> ToolRegistry:
    boundary = SafetyBoundary(workspace_root=workspace, allowed_commands=frozenset({"echo"}))
    registry = ToolRegistry()
    registry.register(ListFilesTool(boundary))
    registry.register(ReadFileTool(boundary))
    registry.register(RunShellCommandTool(boundary))
    return registry


@pytest.mark.asyncio
async def test_list_then_read_scenario(registry: ToolRegistry):
    gateway = ScriptedGateway(
        [
            [_call("t1", "list_files")],
            [_call("t2", "read_file", path="a.txt")],
            [_text("a.txt says: alpha contents")],
        ]
    )
    surfaced: list[str] = []
    controller = TurnController(gateway, registry, model="fake", on_text=surfaced.append)

    texts = await controller.submit("list files then read the first one")

    assert texts == ["a.txt says: alpha contents"]
    assert surfaced == texts
    assert controller.state is TurnState.AWAITING_HUMAN_INPUT

    history = controller.conversation
    assert [entry.speaker for entry in history] == [
        Speaker.HUMAN,
        Speaker.MODEL,
        Speaker.HUMAN,
        Speaker.MODEL,
        Speaker.HUMAN,
        Speaker.MODEL,
    ]
    listing = history[2].tool_results()[0]
    assert listing.correlates_with == "t1"
    assert listing.failed is False
    assert json.loads(listing.value) == ["a.txt", "sub/"]
    read = history[4].tool_results()[0]
    assert read.correlates_with == "t2"
    assert read.value == "alpha contents"


@pytest.mark.asyncio
async def test_every_inference_replays_full_history(registry: ToolRegistry):
    gateway = ScriptedGateway(
        [
            [_call("t1", "list_files")],
            [_text("done")],
            [_text("second answer")],
        ]
    )
    controller = TurnController(gateway, registry)

    await controller.submit("first")
    await controller.submit("second")

    final = controller.conversation
    for conversation, tools in gateway.calls:
        assert conversation == final[: len(conversation)]
        assert [tool["name"] for tool in tools] == ["list_files", "read_file", "run_shell_command"]
    assert [len(conversation) for conversation, _ in gateway.calls] == [1, 3, 5]


@pytest.mark.asyncio
async def test_results_follow_request_order_one_to_one(registry: ToolRegistry):
    gateway = ScriptedGateway(
        [
            [
                _text("checking"),
                _call("t1", "read_file", path="a.txt"),
                _call("t2", "missing_tool"),
                _call("t3", "read_file", path="../escape.txt"),
                _call("t4", "read_file"),
            ],
            [_text("ok")],
        ]
    )
    controller = TurnController(gateway, registry)

    await controller.submit("go")

    results = controller.conversation[2].tool_results()
    assert [r.correlates_with for r in results] == ["t1", "t2", "t3", "t4"]
    assert [r.failed for r in results] == [False, True, True, True]
    assert results[1].value == "tool not found"
    assert results[2].value == "path escapes workspace: ../escape.txt"
    assert results[3].value.startswith("invalid input: path:")


@pytest.mark.asyncio
async def test_no_tool_turn_appends_no_synthetic_entry(registry: ToolRegistry):
    gateway = ScriptedGateway([[_text("just chatting")]])
    controller = TurnController(gateway, registry)

    await controller.submit("hello")

    assert len(controller.conversation) == 2
    assert controller.conversation[-1].speaker is Speaker.MODEL
    assert len(gateway.calls) == 1


@pytest.mark.asyncio
async def test_rm_request_is_rejected_and_loop_continues(registry: ToolRegistry):
    gateway = ScriptedGateway(
        [
            [_call("t1", "run_shell_command", cmd="rm", args="-rf .")],
            [_text("I am not allowed to delete files.")],
        ]
    )
    controller = TurnController(gateway, registry)

    texts = await controller.submit("clean up")

    result = controller.conversation[2].tool_results()[0]
    assert result.failed is True
    assert result.value == "command not allowed: rm"
    assert texts == ["I am not allowed to delete files."]


@pytest.mark.asyncio
async def test_blank_input_does_not_touch_history(registry: ToolRegistry):
    gateway = ScriptedGateway([])
    sink = RecordingSink()
    controller = TurnController(gateway, registry, session_sink=sink)

    assert await controller.submit("   ") == []

    assert controller.conversation == ()
    assert gateway.calls == []
    assert sink.snapshots == []


@pytest.mark.asyncio
async def test_empty_model_response_is_a_noop_turn(registry: ToolRegistry):
    gateway = ScriptedGateway([[]])
    controller = TurnController(gateway, registry)

    texts = await controller.submit("hello?")

    assert texts == []
    assert len(controller.conversation) == 1
    assert controller.state is TurnState.AWAITING_HUMAN_INPUT


@pytest.mark.asyncio
async def test_gateway_failure_stops_and_propagates(registry: ToolRegistry):
    controller = TurnController(FailingGateway(), registry)

    with pytest.raises(LLMAPIError):
        await controller.submit("hello")

    assert controller.state is TurnState.STOPPED
    assert len(controller.conversation) == 1
    with pytest.raises(ConversationError):
        await controller.submit("again")


@pytest.mark.asyncio
async def test_session_sink_receives_snapshot_after_every_append(registry: ToolRegistry):
    gateway = ScriptedGateway([[_call("t1", "list_files")], [_text("done")]])
    sink = RecordingSink()
    controller = TurnController(gateway, registry, model="fake-model", max_tokens=77, session_sink=sink)

    await controller.submit("go")

    assert [len(s.messages) for s in sink.snapshots] == [1, 2, 3, 4]
    last = sink.snapshots[-1].to_dict()
    assert last["model"] == "fake-model"
    assert last["maxTokens"] == 77
    assert last["messages"][2]["content"][0]["tool_use_id"] == "t1"


@pytest.mark.asyncio
async def test_session_sink_failures_are_swallowed(registry: ToolRegistry):
    gateway = ScriptedGateway([[_text("still here")]])
    sink = BrokenSink()
    controller = TurnController(gateway, registry, session_sink=sink)

    texts = await controller.submit("hello")

    assert texts == ["still here"]
    assert sink.attempts == 2


@pytest.mark.asyncio
async def test_text_and_tools_are_handled_in_segment_order(registry: ToolRegistry):
    events: list[str] = []
    registry.set_progress_callback(lambda name, args: events.append(f"tool:{name}"))
    gateway = ScriptedGateway(
        [
            [_text("before"), _call("t1", "list_files"), _text("after")],
            [_text("final")],
        ]
    )
    controller = TurnController(gateway, registry, on_text=lambda text: events.append(f"text:{text}"))

    await controller.submit("go")

    assert events == ["text:before", "tool:list_files", "text:after", "text:final"]


@pytest.mark.asyncio
async def test_run_reads_until_input_ends(registry: ToolRegistry):
    lines = iter(["hello", "", "bye", None])
    gateway = ScriptedGateway([[_text("hi there")], [_text("goodbye")]])
    surfaced: list[str] = []
    controller = TurnController(
        gateway,
        registry,
        read_input=lambda: next(lines),
        on_text=surfaced.append,
    )

    await controller.run()

    assert surfaced == ["hi there", "goodbye"]
    assert controller.state is TurnState.STOPPED
    assert len(controller.conversation) == 4


@pytest.mark.asyncio
async def test_run_stops_cleanly_on_keyboard_interrupt(registry: ToolRegistry):
    def interrupt():
        raise KeyboardInterrupt

    controller = TurnController(ScriptedGateway([]), registry, read_input=interrupt)

    await controller.run()

    assert controller.state is TurnState.STOPPED
    assert controller.conversation == ()


@pytest.mark.asyncio
async def test_run_propagates_gateway_failure(registry: ToolRegistry):
    controller = TurnController(FailingGateway(), registry, read_input=lambda: "hello")

    with pytest.raises(LLMAPIError):
        await controller.run()

    assert controller.state is TurnState.STOPPED
