"""Extra context placed in the system prompt: piped input, git state and aliases."""

from typing import TextIO

from termai.tools.shell import ShellExecutor
from termai.utils.logging import get_logger

logger = get_logger(__name__)

MAX_DIFF_CHARS = 20_000
CONTEXT_COMMAND_TIMEOUT = 10.0


def read_piped_input(stream: TextIO | None) -> str:
    """Read everything piped into the process, or nothing when stdin is a terminal."""
    if stream is None or stream.isatty():
        return ""
    content = stream.read()
    logger.debug(f"Read {len(content)} characters of piped input")
    return content


async def _run(executor: ShellExecutor, command: str) -> str | None:
    try:
        result = await executor.execute(command)
    except OSError as e:
        logger.debug(f"Could not run {command!r} for prompt context: {e}")
        return None
    return result.stdout if result.success else None


async def get_git_info(executor: ShellExecutor) -> str:
    """Status and diff of the current repository, or "" outside a git work tree."""
    inside = await _run(executor, "git rev-parse --is-inside-work-tree")
    if inside is None or inside.strip() != "true":
        return ""

    status = await _run(executor, "git status --porcelain") or ""
    diff = await _run(executor, "git diff") or ""
    if len(diff) > MAX_DIFF_CHARS:
        diff = f"{diff[:MAX_DIFF_CHARS]}\n... (diff truncated)"

    sections = []
    if status.strip():
        sections.append(f"Git Status:\n{status.rstrip()}")
    if diff.strip():
        sections.append(f"Git Diff:\n{diff.rstrip()}")
    return "\n\n".join(sections)


async def get_user_aliases(executor: ShellExecutor) -> str:
    aliases = await _run(executor, "alias")
    return aliases.strip() if aliases else ""


class PromptContext:
    """Collects the per-turn context appended to the system prompt.

    Piped input is fixed for the process. Git state and aliases are read
    again on every turn since commands run by the assistant change them.
    """

    def __init__(self, executor: ShellExecutor | None = None, piped_input: str = "", include_git: bool = True):
        self.executor = executor or ShellExecutor(timeout=CONTEXT_COMMAND_TIMEOUT)
        self.piped_input = piped_input
        self.include_git = include_git

    async def collect(self) -> str:
        sections = []
        if self.piped_input.strip():
            sections.append(f"PIPED INPUT:\n{self.piped_input.strip()}")

        if self.include_git:
            git_info = await get_git_info(self.executor)
            if git_info:
                sections.append(git_info)

        aliases = await get_user_aliases(self.executor)
        if aliases:
            sections.append(f"USER ALIASES:\n{aliases}")

        context = "\n\n".join(sections)
        if context:
            logger.debug(f"Prompt context: {len(context)} characters")
        return context
