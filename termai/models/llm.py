"""LLM-related data models and types (provider-agnostic)."""

from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

from termai.models.messages import ToolCallRequest


class ToolDefinition(BaseModel):
    """Declaration of a tool as sent to a provider."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    parameters: dict[str, Any]


@dataclass
class CompletionOptions:
    """Per-request options for a streaming completion."""

    tools: list[ToolDefinition] = field(default_factory=list)
    tool_call: Literal["auto", "none"] = "auto"


@dataclass
class TokenUsage:
    """Token usage for one completion request."""

    input_tokens: int = 0
    output_tokens: int = 0
    model: str = ""

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        return TokenUsage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
            model=other.model or self.model,
        )


@dataclass
class CompletionResult:
    """Result of one streaming completion."""

    content: str = ""
    tool_calls: list[ToolCallRequest] = field(default_factory=list)
    usage: TokenUsage | None = None

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)
