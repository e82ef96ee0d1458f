import json
from pathlib import Path

import pytest

from agentloop.conversation import ToolInvocationRequest
from agentloop.exceptions import ToolBlockedError
from agentloop.tools.list_files import ListFilesInput, ListFilesTool
from agentloop.tools.registry import ToolRegistry
from agentloop.tools.safety import SafetyBoundary


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    (tmp_path / "b.txt").write_text("b", encoding="utf-8")
    (tmp_path / "a.txt").write_text("a", encoding="utf-8")
    (tmp_path / "sub").mkdir()
    (tmp_path / "sub" / "inner.md").write_text("inner", encoding="utf-8")
    return tmp_path


@pytest.mark.asyncio
async def test_list_files_defaults_to_workspace_root(workspace: Path):
    tool = ListFilesTool(SafetyBoundary(workspace_root=workspace))

    result = await tool.execute(ListFilesInput())

    assert json.loads(result) == ["a.txt", "b.txt", "sub/"]


@pytest.mark.asyncio
async def test_list_files_lists_subdirectory(workspace: Path):
    tool = ListFilesTool(SafetyBoundary(workspace_root=workspace))

    result = await tool.execute(ListFilesInput(path="sub"))

    assert json.loads(result) == ["inner.md"]


@pytest.mark.asyncio
async def test_list_files_on_a_file_returns_empty_list(workspace: Path):
    tool = ListFilesTool(SafetyBoundary(workspace_root=workspace))

    result = await tool.execute(ListFilesInput(path="a.txt"))

    assert json.loads(result) == []


@pytest.mark.asyncio
async def test_list_files_rejects_parent_directory(workspace: Path):
    tool = ListFilesTool(SafetyBoundary(workspace_root=workspace / "sub"))

    with pytest.raises(ToolBlockedError):
        await tool.execute(ListFilesInput(path=".."))


@pytest.mark.asyncio
async def test_list_files_missing_path_fails(workspace: Path):
    registry = ToolRegistry()
    registry.register(ListFilesTool(SafetyBoundary(workspace_root=workspace)))

    result = await registry.dispatch(
        ToolInvocationRequest(id="t1", name="list_files", arguments={"path": "nope"})
    )

    assert result.failed is True
    assert result.value == "Path not found: nope"
