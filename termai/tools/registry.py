"""Registry resolving model tool calls to handlers."""

import asyncio
import inspect
import json
from typing import Any

from pydantic import BaseModel, ValidationError

from termai.errors import DuplicateToolError, UnknownToolError
from termai.models.llm import ToolDefinition
from termai.models.messages import ToolCallRequest, ToolCallResponse
from termai.models.session import Session
from termai.tools.base import Tool, ToolOutput
from termai.utils.logging import get_logger

logger = get_logger(__name__)


class ToolGroup:
    """A named set of tools that can be added to a registry as a unit."""

    def __init__(self, name: str, tools: list[Tool] | None = None):
        self.name = name
        self._tools: dict[str, Tool] = {}
        self._registry: "ToolRegistry | None" = None
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        """Register a tool.

        Raises:
            DuplicateToolError: If the name is taken in this group or, once
                the group belongs to a registry, in any other group
        """
        if tool.name in self._tools:
            raise DuplicateToolError(tool.name)
        if self._registry is not None:
            self._registry.ensure_available(tool.name)
        self._tools[tool.name] = tool

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    @property
    def tools(self) -> list[Tool]:
        return list(self._tools.values())

    def __contains__(self, name: str) -> bool:
        return name in self._tools


class ToolRegistry:
    """Flattened view over several tool groups bound to one session.

    Names are unique across all groups: a collision fails at registration
    time instead of letting one group silently shadow another.
    """

    def __init__(self, session: Session, groups: list[ToolGroup] | None = None):
        self.session = session
        self._default_group = ToolGroup("default")
        self._default_group._registry = self
        self._groups: list[ToolGroup] = [self._default_group]
        for group in groups or []:
            self.add_group(group)

    def ensure_available(self, name: str) -> None:
        if self.get_tool(name) is not None:
            raise DuplicateToolError(name)

    def register_tool(self, tool: Tool) -> None:
        """Register a single tool in the default group."""
        self._default_group.register(tool)

    def add_group(self, group: ToolGroup) -> None:
        """Compose another group into the registry."""
        for tool in group.tools:
            self.ensure_available(tool.name)
        group._registry = self
        self._groups.append(group)
        logger.debug(f"Added tool group {group.name} with {len(group.tools)} tools")

    def get_tool(self, name: str) -> Tool | None:
        for group in self._groups:
            tool = group.get(name)
            if tool is not None:
                return tool
        return None

    def get_tool_names(self) -> list[str]:
        return [tool.name for group in self._groups for tool in group.tools]

    def get_declarations(self) -> list[ToolDefinition]:
        """Snapshot of every tool declaration for a completion request."""
        return [tool.definition for group in self._groups for tool in group.tools]

    def get_usage_prompt(self) -> str:
        """Usage hints for the system prompt."""
        return "\n".join(
            f"Here is how to use the {tool.name} tool: {tool.usage_hint.strip()}"
            for group in self._groups
            for tool in group.tools
            if tool.usage_hint
        )

    def render(self, call: ToolCallRequest) -> None:
        """Show the user what a tool call is about to do."""
        tool = self.get_tool(call.name)
        if tool is None:
            logger.warning(f"Cannot render unknown tool: {call.name}")
            return
        if tool.render is None:
            logger.warning(f"No render registered for tool: {call.name}")
            return

        try:
            tool.render(tool.parse_input(call.arguments), self.session)
        except ValidationError:
            logger.warning(f"Skipping render for {call.name}: invalid arguments {call.arguments}")
        except Exception as e:
            logger.warning(f"Render for tool {call.name} failed: {e}")

    async def dispatch(self, call: ToolCallRequest) -> ToolCallResponse:
        """Execute one tool call.

        Never raises for tool problems: unknown tools, invalid arguments and
        handler exceptions all come back as a response with ``error`` set.
        """
        tool = self.get_tool(call.name)
        if tool is None:
            error = UnknownToolError(call.name)
            logger.error(str(error))
            return ToolCallResponse(name=call.name, error=str(error), call_id=call.call_id)

        logger.debug(f"Executing tool: {call.name} with input: {call.arguments}")
        try:
            params = tool.parse_input(call.arguments)
            if inspect.iscoroutinefunction(tool.handler):
                output = await tool.handler(params, self.session)
            else:
                output = await asyncio.to_thread(tool.handler, params, self.session)
        except ValidationError as e:
            logger.error(f"Invalid arguments for tool {call.name}: {e}")
            return ToolCallResponse(
                name=call.name, error=f"Invalid arguments for {call.name}: {e}", call_id=call.call_id
            )
        except Exception as e:
            logger.error(f"Error executing tool {call.name}: {e}")
            return ToolCallResponse(name=call.name, error=str(e) or e.__class__.__name__, call_id=call.call_id)

        result, error = _normalize_output(output)
        logger.debug(f"Tool {call.name} finished: {result[:100]}")
        return ToolCallResponse(name=call.name, result=result, error=error, call_id=call.call_id)

    async def dispatch_all(self, calls: list[ToolCallRequest]) -> list[ToolCallResponse]:
        """Run every call concurrently; responses keep the request order."""
        return list(await asyncio.gather(*(self.dispatch(call) for call in calls)))


def _normalize_output(output: Any) -> tuple[str, str | None]:
    if isinstance(output, ToolOutput):
        return output.data, output.error or None
    if isinstance(output, str):
        return output, None
    if isinstance(output, BaseModel):
        return output.model_dump_json(), None
    return json.dumps(output, default=str), None
