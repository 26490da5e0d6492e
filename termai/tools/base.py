"""Base types and definitions for tools."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from termai.models.llm import ToolDefinition
from termai.models.session import Session


@dataclass
class ToolOutput:
    """Handler result split into normal output and error text."""

    data: str = ""
    error: str | None = None


ToolHandler = Callable[[BaseModel, Session], Awaitable[ToolOutput | str] | ToolOutput | str]
ToolRender = Callable[[BaseModel, Session], None]


@dataclass
class Tool:
    """A capability the model may invoke."""

    name: str
    description: str
    input_schema_class: type[BaseModel]
    handler: ToolHandler
    render: ToolRender | None = None
    usage_hint: str = ""

    def get_json_schema(self) -> dict[str, Any]:
        """Get JSON schema for this tool's input."""
        schema = self.input_schema_class.model_json_schema()
        schema.pop("title", None)
        return schema

    def parse_input(self, raw_input: dict[str, Any]) -> BaseModel:
        """Parse and validate tool input."""
        return self.input_schema_class.model_validate(raw_input)

    @property
    def definition(self) -> ToolDefinition:
        return ToolDefinition(name=self.name, description=self.description, parameters=self.get_json_schema())
