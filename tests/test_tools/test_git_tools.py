import shutil
import subprocess
from pathlib import Path

import pytest

from agentloop.conversation import ToolInvocationRequest
from agentloop.exceptions import ToolBlockedError, ToolExecutionError
from agentloop.tools.git import (
    GitAddInput,
    GitAddTool,
    GitBranchInput,
    GitBranchTool,
    GitCommitInput,
    GitCommitTool,
    GitLogInput,
    GitLogTool,
    GitMergeTool,
    GitStatusInput,
    GitStatusTool,
)
from agentloop.tools.registry import ToolRegistry
from agentloop.tools.safety import SafetyBoundary

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


@pytest.fixture
def repo(tmp_path: Path, monkeypatch) -> Path:
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test User")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "test@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test User")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "test@example.com")
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("HOME", str(tmp_path))
    workdir = tmp_path / "repo"
    workdir.mkdir()
    subprocess.run(["git", "init", "-q"], cwd=workdir, check=True)
    return workdir


@pytest.fixture
def boundary(repo: Path) -> SafetyBoundary:
    return SafetyBoundary(workspace_root=repo, allowed_commands=frozenset({"git"}))


@pytest.mark.asyncio
async def test_add_commit_and_log(repo: Path, boundary: SafetyBoundary):
    (repo / "a.txt").write_text("a", encoding="utf-8")

    porcelain = await GitStatusTool(boundary).execute(GitStatusInput(porcelain=True))
    assert "?? a.txt" in porcelain

    added = await GitAddTool(boundary).execute(GitAddInput(paths="a.txt"))
    assert added == "Successfully added: a.txt"

    committed = await GitCommitTool(boundary).execute(GitCommitInput(message="first commit"))
    assert "first commit" in committed

    log_output = await GitLogTool(boundary).execute(GitLogInput(limit=1, oneline=True))
    assert log_output.endswith("first commit")


@pytest.mark.asyncio
async def test_add_rejects_paths_outside_workspace(boundary: SafetyBoundary):
    with pytest.raises(ToolBlockedError):
        await GitAddTool(boundary).execute(GitAddInput(paths="ok.txt ../outside.txt"))


@pytest.mark.asyncio
async def test_commit_with_nothing_staged_fails(boundary: SafetyBoundary):
    with pytest.raises(ToolExecutionError) as excinfo:
        await GitCommitTool(boundary).execute(GitCommitInput(message="empty"))

    assert str(excinfo.value).startswith("exit ")


@pytest.mark.asyncio
async def test_branch_create_checkout_and_list(repo: Path, boundary: SafetyBoundary):
    (repo / "a.txt").write_text("a", encoding="utf-8")
    await GitAddTool(boundary).execute(GitAddInput(paths="."))
    await GitCommitTool(boundary).execute(GitCommitInput(message="base"))
    branch_tool = GitBranchTool(boundary)

    assert await branch_tool.execute(GitBranchInput(action="create", name="feature")) == "Created branch feature"
    assert await branch_tool.execute(GitBranchInput(action="checkout", name="feature")) == "Checked out feature"

    listing = await branch_tool.execute(GitBranchInput())
    assert "* feature" in listing


@pytest.mark.asyncio
async def test_branch_requires_name_for_create(boundary: SafetyBoundary):
    with pytest.raises(ToolExecutionError) as excinfo:
        await GitBranchTool(boundary).execute(GitBranchInput(action="create"))

    assert str(excinfo.value) == "name required for create"


@pytest.mark.asyncio
async def test_git_inputs_reject_option_injection(boundary: SafetyBoundary):
    registry = ToolRegistry()
    registry.register(GitBranchTool(boundary))
    registry.register(GitMergeTool(boundary))
    registry.register(GitCommitTool(boundary))

    branch = await registry.dispatch(
        ToolInvocationRequest(id="1", name="git_branch", arguments={"action": "create", "name": "-D"})
    )
    merge = await registry.dispatch(
        ToolInvocationRequest(id="2", name="git_merge", arguments={"source": "--abort"})
    )
    commit = await registry.dispatch(
        ToolInvocationRequest(id="3", name="git_commit", arguments={"message": "   "})
    )

    assert branch.failed and branch.value.startswith("invalid input: name:")
    assert merge.failed and merge.value.startswith("invalid input: source:")
    assert commit.failed and commit.value.startswith("invalid input: message:")
