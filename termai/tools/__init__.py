"""Tools the assistant can call."""

from termai.models.session import Session
from termai.tools.base import Tool, ToolOutput
from termai.tools.execute_command import create_execute_command_tool
from termai.tools.git import create_git_tools
from termai.tools.registry import ToolGroup, ToolRegistry
from termai.tools.shell import ShellExecutor


def build_default_registry(session: Session, executor: ShellExecutor | None = None) -> ToolRegistry:
    """Registry with execute_command in the default group plus the git group."""
    executor = executor or ShellExecutor()
    registry = ToolRegistry(session)
    registry.register_tool(create_execute_command_tool(executor))
    registry.add_group(create_git_tools(executor))
    return registry


__all__ = [
    "ShellExecutor",
    "Tool",
    "ToolGroup",
    "ToolOutput",
    "ToolRegistry",
    "build_default_registry",
    "create_execute_command_tool",
    "create_git_tools",
]
