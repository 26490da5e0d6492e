"""Git tool group."""

import shlex
from collections.abc import Callable

from pydantic import BaseModel, Field
from rich.text import Text

from termai.models.session import Session
from termai.tools.base import Tool, ToolOutput
from termai.tools.registry import ToolGroup
from termai.tools.shell import ShellExecutor
from termai.utils.logging import get_logger

logger = get_logger(__name__)


class GitStatusInput(BaseModel):
    path: str | None = Field(None, description="Optional path to limit the status to")


class GitDiffInput(BaseModel):
    path: str | None = Field(None, description="Optional path to diff")
    staged: bool = Field(False, description="Show staged changes instead of unstaged ones")


class GitLogInput(BaseModel):
    limit: int = Field(10, ge=1, le=200, description="Number of commits to show")


class GitAddInput(BaseModel):
    files: list[str] = Field(..., min_length=1, description="Files to add to the staging area")


class GitCommitInput(BaseModel):
    message: str = Field(..., min_length=1, description="Commit message")


class GitRemoteInput(BaseModel):
    remote: str | None = Field(None, description="Remote repository name")
    branch: str | None = Field(None, description="Branch name")


class GitBranchInput(BaseModel):
    name: str | None = Field(None, description="Branch to create or delete; omit to list branches")
    delete: bool = Field(False, description="Delete the named branch instead of creating it")


def git_status_args(params: GitStatusInput) -> list[str]:
    args = ["git", "status"]
    if params.path:
        args.extend(["--", params.path])
    return args


def git_diff_args(params: GitDiffInput) -> list[str]:
    args = ["git", "diff"]
    if params.staged:
        args.append("--staged")
    if params.path:
        args.extend(["--", params.path])
    return args


def git_log_args(params: GitLogInput) -> list[str]:
    return ["git", "log", "--oneline", "-n", str(params.limit)]


def git_add_args(params: GitAddInput) -> list[str]:
    return ["git", "add", "--", *params.files]


def git_commit_args(params: GitCommitInput) -> list[str]:
    return ["git", "commit", "-m", params.message]


def git_push_args(params: GitRemoteInput) -> list[str]:
    return ["git", "push", *[part for part in (params.remote, params.branch) if part]]


def git_pull_args(params: GitRemoteInput) -> list[str]:
    return ["git", "pull", *[part for part in (params.remote, params.branch) if part]]


def git_branch_args(params: GitBranchInput) -> list[str]:
    if not params.name:
        return ["git", "branch", "--list"]
    if params.delete:
        return ["git", "branch", "-d", params.name]
    return ["git", "branch", params.name]


def _is_write(params: BaseModel) -> bool:
    return not isinstance(params, GitBranchInput) or params.name is not None


def _make_git_tool(
    executor: ShellExecutor,
    name: str,
    description: str,
    input_schema_class: type[BaseModel],
    build_args: Callable,
    usage_hint: str,
    writes: bool,
) -> Tool:
    async def handler(params: BaseModel, session: Session) -> ToolOutput:
        command = shlex.join(build_args(params))
        if writes and _is_write(params) and not session.auto_approve:
            if not await session.confirm(f"Run `{command}`?"):
                logger.info(f"User declined git command: {command}")
                return ToolOutput(error="User declined to run this command.")

        result = await executor.execute(command)
        # git reports progress on stderr even when it succeeds
        if result.success:
            return ToolOutput(data=result.stdout + result.stderr)
        return ToolOutput(data=result.stdout, error=result.stderr or f"git exited with code {result.exit_code}")

    def render(params: BaseModel, session: Session) -> None:
        session.console.print(Text.assemble(("$ ", "bold yellow"), (shlex.join(build_args(params)), "yellow")))

    return Tool(
        name=name,
        description=description,
        input_schema_class=input_schema_class,
        handler=handler,
        render=render,
        usage_hint=usage_hint,
    )


def create_git_tools(executor: ShellExecutor) -> ToolGroup:
    """Build the git tool group backed by ``executor``."""
    definitions = [
        ("git_status", "Show the working tree status", GitStatusInput, git_status_args,
         "Run git_status before staging or committing to see what changed.", False),
        ("git_diff", "Show changes in the working tree or staging area", GitDiffInput, git_diff_args,
         "Use git_diff to inspect changes before writing a commit message.", False),
        ("git_log", "Show recent commits", GitLogInput, git_log_args,
         "Use git_log to look at recent history.", False),
        ("git_add", "Add files to the staging area", GitAddInput, git_add_args,
         "Run git_status first to see which files need staging, then git_add them.", True),
        ("git_commit", "Commit staged changes", GitCommitInput, git_commit_args,
         "Inspect changes with git_status or git_diff, then commit with a concise message.", True),
        ("git_push", "Push commits to a remote repository", GitRemoteInput, git_push_args,
         "Ensure all changes are committed with git_commit before pushing.", True),
        ("git_pull", "Pull changes from a remote repository", GitRemoteInput, git_pull_args,
         "Check git_status first to make sure the working tree is clean.", True),
        ("git_branch", "List, create or delete branches", GitBranchInput, git_branch_args,
         "List branches without arguments first, then create or delete as needed.", True),
    ]
    return ToolGroup(
        "git",
        [
            _make_git_tool(executor, name, description, schema, build_args, hint, writes)
            for name, description, schema, build_args, hint, writes in definitions
        ],
    )
