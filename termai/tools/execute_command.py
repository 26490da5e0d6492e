"""Shell command execution tool."""

from pydantic import BaseModel, Field
from rich.text import Text

from termai.models.session import Session
from termai.tools.base import Tool, ToolOutput
from termai.tools.shell import TIMEOUT_EXIT_CODE, CommandResult, ShellExecutor, is_mutating
from termai.utils.logging import get_logger

logger = get_logger(__name__)

CONFIRM_MUTATING = "This command may modify your system. Do you want to proceed?"
CONFIRM_SUDO = "Command failed. Retry with sudo?"
DECLINED_MESSAGE = "User declined to run this command."


class ExecuteCommandInput(BaseModel):
    """Input schema for the execute_command tool."""

    command: str = Field(
        ...,
        min_length=1,
        description="The terminal command to execute with the user's shell, preferably on a single line",
    )


def _to_output(result: CommandResult) -> ToolOutput:
    if result.success:
        return ToolOutput(data=result.stdout, error=result.stderr or None)
    return ToolOutput(data=result.stdout, error=result.stderr or f"Command exited with code {result.exit_code}")


def create_execute_command_tool(executor: ShellExecutor) -> Tool:
    async def execute_command_handler(params: ExecuteCommandInput, session: Session) -> ToolOutput:
        command = params.command

        if is_mutating(command) and not session.auto_approve:
            if not await session.confirm(CONFIRM_MUTATING):
                logger.info(f"User declined command: {command}")
                return ToolOutput(error=DECLINED_MESSAGE)

        result = await executor.execute(command)
        if result.success:
            return _to_output(result)

        logger.error(f"Command failed with exit code {result.exit_code}: {result.stderr.strip()}")
        can_escalate = (
            result.exit_code != TIMEOUT_EXIT_CODE
            and not command.lstrip().startswith("sudo ")
            and not session.auto_approve
        )
        if can_escalate and await session.confirm(CONFIRM_SUDO):
            return _to_output(await executor.execute(command, requires_sudo=True))

        return _to_output(result)

    def render_execute_command(params: ExecuteCommandInput, session: Session) -> None:
        session.console.print(Text.assemble(("$ ", "bold yellow"), (params.command, "yellow")))

    return Tool(
        name="execute_command",
        description="Execute a terminal command and return its output",
        input_schema_class=ExecuteCommandInput,
        handler=execute_command_handler,
        render=render_execute_command,
        usage_hint=(
            "use the `execute_command` tool to run terminal commands on the user's machine. "
            "If the user asks a question unrelated to the terminal, answer it directly."
        ),
    )
