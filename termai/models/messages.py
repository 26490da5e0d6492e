"""Conversation message types.

A message is a tagged union discriminated on ``role``. Code that consumes
messages matches on the concrete class and ends with ``assert_never`` so that
adding a role is caught by the type checker at every site.
"""

import json
from typing import Annotated, Any, Literal, assert_never

from pydantic import BaseModel, Field, TypeAdapter


class ToolCallRequest(BaseModel):
    """A single tool invocation requested by the model."""

    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    call_id: str


class ToolCallResponse(BaseModel):
    """Outcome of executing one tool call."""

    name: str
    result: str = ""
    error: str | None = None
    call_id: str


class SystemMessage(BaseModel):
    """System prompt."""

    role: Literal["system"] = "system"
    content: str


class UserMessage(BaseModel):
    """A turn typed by the user."""

    role: Literal["user"] = "user"
    content: str


class AssistantMessage(BaseModel):
    """A plain-text answer from the model."""

    role: Literal["assistant"] = "assistant"
    content: str


class ToolCallMessage(BaseModel):
    """A batch of tool calls issued by the model."""

    role: Literal["tool_call"] = "tool_call"
    calls: list[ToolCallRequest]


class ToolMessage(BaseModel):
    """Results for the preceding tool call batch, in request order."""

    role: Literal["tool"] = "tool"
    results: list[ToolCallResponse]


Message = Annotated[
    SystemMessage | UserMessage | AssistantMessage | ToolCallMessage | ToolMessage,
    Field(discriminator="role"),
]

message_adapter: TypeAdapter[Message] = TypeAdapter(Message)


def parse_message(data: dict[str, Any]) -> Message:
    """Validate a raw dict into the matching message class."""
    return message_adapter.validate_python(data)


def message_text(message: Message) -> str:
    """Serialize a message to the text used for token estimation and storage."""
    match message:
        case SystemMessage() | UserMessage() | AssistantMessage():
            return message.content
        case ToolCallMessage():
            return json.dumps([call.model_dump() for call in message.calls])
        case ToolMessage():
            return json.dumps([result.model_dump() for result in message.results])
        case _:
            assert_never(message)


def find_unpaired_tool_calls(messages: list[Message]) -> list[int]:
    """Return indexes of tool_call messages not followed by a matching tool message."""
    unpaired = []
    for index, message in enumerate(messages):
        if not isinstance(message, ToolCallMessage):
            continue
        following = messages[index + 1] if index + 1 < len(messages) else None
        if not isinstance(following, ToolMessage) or [r.call_id for r in following.results] != [
            c.call_id for c in message.calls
        ]:
            unpaired.append(index)
    return unpaired
