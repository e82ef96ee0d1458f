"""Git tools: status, log, add, commit, branch, merge, pull."""

from typing import Literal

from pydantic import Field, field_validator

from agentloop.exceptions import ToolExecutionError
from agentloop.tools.process import run_process
from agentloop.tools.registry import Tool, ToolInput
from agentloop.tools.safety import SafetyBoundary


def _reject_option_like(value: str | None) -> str | None:
    if value and value.startswith("-"):
        raise ValueError("must not start with '-'")
    return value


class GitTool(Tool):
    """Shared plumbing for tools that shell out to git."""

    def __init__(self, boundary: SafetyBoundary, timeout: float | None = None):
        self.boundary = boundary
        self.timeout = timeout

    async def _git(self, *args: str, check_paths: bool = False) -> str:
        output = await run_process(
            ["git", *args],
            self.boundary,
            tool_name=self.name,
            timeout=self.timeout,
            check_paths=check_paths,
        )
        return self.boundary.truncate(output.stdout.strip())


class GitStatusInput(ToolInput):
    porcelain: bool = Field(default=False, description="Use --porcelain for parseable output (true/false)")


class GitStatusTool(GitTool):
    name = "git_status"
    description = "Show git working tree status. Optional porcelain mode for parseable output."
    input_model = GitStatusInput

    async def execute(self, args: GitStatusInput) -> str:
        git_args = ["status"]
        if args.porcelain:
            git_args.append("--porcelain")
        return await self._git(*git_args)


class GitLogInput(ToolInput):
    limit: int | None = Field(default=None, ge=1, description="Maximum number of commits to show")
    oneline: bool = Field(default=False, description="Use --oneline format (true/false)")


class GitLogTool(GitTool):
    name = "git_log"
    description = "Show recent git commits with optional limit and oneline format."
    input_model = GitLogInput

    async def execute(self, args: GitLogInput) -> str:
        git_args = ["log"]
        if args.limit:
            git_args += ["-n", str(args.limit)]
        if args.oneline:
            git_args.append("--oneline")
        else:
            git_args += ["--pretty=format:%h %ad %an %s", "--date=short"]
        return await self._git(*git_args)


class GitAddInput(ToolInput):
    paths: str = Field(
        min_length=1,
        description=(
            "Space-separated paths to add to the git staging area "
            '(e.g. "file1.py file2.py" or "." for all)'
        ),
    )


class GitAddTool(GitTool):
    name = "git_add"
    description = "Add file(s) to the git staging area in preparation for commit."
    input_model = GitAddInput

    async def execute(self, args: GitAddInput) -> str:
        path_list = args.paths.split()
        if not path_list:
            raise ToolExecutionError(self.name, "No paths specified")
        for path in path_list:
            self.boundary.resolve_path(path, tool_name=self.name)
        out = await self._git("add", "--", *path_list)
        return out or f"Successfully added: {args.paths}"


class GitCommitInput(ToolInput):
    message: str = Field(min_length=1, description="The commit message")

    @field_validator("message")
    @classmethod
    def check_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Commit message cannot be empty")
        return value


class GitCommitTool(GitTool):
    name = "git_commit"
    description = "Commit staged changes to the git repository with the specified message."
    input_model = GitCommitInput

    async def execute(self, args: GitCommitInput) -> str:
        out = await self._git("commit", "-m", args.message)
        return out or f"Successfully committed with message: {args.message}"


class GitBranchInput(ToolInput):
    action: Literal["list", "create", "checkout"] = Field(
        default="list",
        description="One of: list | create | checkout",
    )
    name: str | None = Field(default=None, description="Branch name (required for create/checkout)")

    @field_validator("name")
    @classmethod
    def check_name(cls, value: str | None) -> str | None:
        return _reject_option_like(value)


class GitBranchTool(GitTool):
    name = "git_branch"
    description = "List, create, or checkout branches. action: list | create | checkout."
    input_model = GitBranchInput

    async def execute(self, args: GitBranchInput) -> str:
        if args.action == "list":
            return await self._git("branch")
        if not args.name:
            raise ToolExecutionError(self.name, f"name required for {args.action}")
        if args.action == "create":
            await self._git("branch", args.name)
            return f"Created branch {args.name}"
        await self._git("checkout", args.name)
        return f"Checked out {args.name}"


class GitMergeInput(ToolInput):
    source: str = Field(min_length=1, description="Branch to merge into the current branch")
    no_ff: bool = Field(default=False, description="Always create a merge commit (true/false)")

    @field_validator("source")
    @classmethod
    def check_source(cls, value: str) -> str:
        return _reject_option_like(value)


class GitMergeTool(GitTool):
    name = "git_merge"
    description = (
        "Merge a branch into the current branch. "
        "Optionally force a merge commit with no_ff=true."
    )
    input_model = GitMergeInput

    async def execute(self, args: GitMergeInput) -> str:
        git_args = ["merge"]
        if args.no_ff:
            git_args.append("--no-ff")
        git_args.append(args.source)
        return await self._git(*git_args) or "Merge completed"


class GitPullInput(ToolInput):
    remote: str | None = Field(default=None, description="Remote name (default origin)")
    branch: str | None = Field(default=None, description="Branch to pull")

    @field_validator("remote", "branch")
    @classmethod
    def check_refs(cls, value: str | None) -> str | None:
        return _reject_option_like(value)


class GitPullTool(GitTool):
    name = "git_pull"
    description = "Pull latest changes from a remote (default origin) and optional branch."
    input_model = GitPullInput

    async def execute(self, args: GitPullInput) -> str:
        git_args = ["pull"]
        if args.remote:
            git_args.append(args.remote)
        if args.branch:
            git_args.append(args.branch)
        return await self._git(*git_args) or "Pull completed"
