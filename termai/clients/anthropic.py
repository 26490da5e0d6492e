"""Anthropic Messages API adapter."""

from typing import Any, assert_never

from anthropic import APIConnectionError, APIStatusError, AsyncAnthropic

from termai.clients.base import ProviderAdapter, TokenSink, parse_tool_arguments, tool_result_text
from termai.config import ClientConfig
from termai.errors import ProviderError
from termai.models.llm import CompletionOptions, CompletionResult, TokenUsage, ToolDefinition
from termai.models.messages import (
    AssistantMessage,
    Message,
    SystemMessage,
    ToolCallMessage,
    ToolCallRequest,
    ToolMessage,
    UserMessage,
)
from termai.models.session import CancellationToken
from termai.utils.logging import get_logger

logger = get_logger(__name__)


class AnthropicAdapter(ProviderAdapter):
    """Streams completions from Claude models."""

    name = "anthropic"

    def __init__(
        self,
        model: str,
        api_key: str | None = None,
        endpoint: str | None = None,
        config: ClientConfig | None = None,
        client: AsyncAnthropic | None = None,
    ):
        super().__init__(model, config)
        self._owns_client = client is None
        if client is None:
            if not api_key:
                raise ProviderError(self.name, "API key is required. Set TERMAI_API_KEY or ANTHROPIC_API_KEY.")
            client = AsyncAnthropic(api_key=api_key, base_url=endpoint, timeout=self.config.timeout)
        self.client = client

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.close()

    def map_messages(self, messages: list[Message]) -> tuple[str, list[dict[str, Any]]]:
        """Split out the system prompt and convert the rest to Anthropic turns.

        Consecutive turns with the same role are merged because the API
        requires strictly alternating user and assistant turns.
        """
        system_parts: list[str] = []
        turns: list[dict[str, Any]] = []

        def append(role: str, blocks: list[dict[str, Any]]) -> None:
            if turns and turns[-1]["role"] == role:
                turns[-1]["content"].extend(blocks)
            else:
                turns.append({"role": role, "content": blocks})

        for message in messages:
            match message:
                case SystemMessage():
                    system_parts.append(message.content)
                case UserMessage():
                    append("user", [{"type": "text", "text": message.content}])
                case AssistantMessage():
                    if message.content:
                        append("assistant", [{"type": "text", "text": message.content}])
                case ToolCallMessage():
                    append(
                        "assistant",
                        [
                            {"type": "tool_use", "id": call.call_id, "name": call.name, "input": call.arguments}
                            for call in message.calls
                        ],
                    )
                case ToolMessage():
                    append(
                        "user",
                        [
                            {
                                "type": "tool_result",
                                "tool_use_id": result.call_id,
                                "content": tool_result_text(result.result, result.error),
                                "is_error": bool(result.error),
                            }
                            for result in message.results
                        ],
                    )
                case _:
                    assert_never(message)

        return "\n\n".join(system_parts), turns

    def map_tools(self, tools: list[ToolDefinition]) -> list[dict[str, Any]]:
        return [{"name": tool.name, "description": tool.description, "input_schema": tool.parameters} for tool in tools]

    async def _stream(
        self,
        messages: list[Message],
        on_token: TokenSink,
        options: CompletionOptions,
        cancel: CancellationToken | None,
    ) -> CompletionResult:
        system_prompt, turns = self.map_messages(messages)

        request_params: dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
            "messages": turns,
            "stream": True,
        }
        if system_prompt:
            request_params["system"] = system_prompt
        if options.tools:
            request_params["tools"] = self.map_tools(options.tools)
            request_params["tool_choice"] = {"type": options.tool_call}

        logger.debug(f"Making Anthropic API call with model: {self.model}")
        stream = await self._until_cancelled(
            self._open_with_retries(lambda: self.client.messages.create(**request_params)), cancel
        )

        content = ""
        tool_blocks: dict[int, dict[str, Any]] = {}
        input_tokens = 0
        output_tokens = 0

        try:
            async for event in self._iterate_until_cancelled(stream, cancel):
                if event.type == "message_start":
                    input_tokens = event.message.usage.input_tokens or 0
                elif event.type == "content_block_start":
                    block = event.content_block
                    if block.type == "tool_use":
                        tool_blocks[event.index] = {"id": block.id, "name": block.name, "json": ""}
                elif event.type == "content_block_delta":
                    delta = event.delta
                    if delta.type == "text_delta" and delta.text:
                        on_token(delta.text)
                        content += delta.text
                    elif delta.type == "input_json_delta" and event.index in tool_blocks:
                        tool_blocks[event.index]["json"] += delta.partial_json
                elif event.type == "message_delta":
                    if event.usage is not None:
                        output_tokens = event.usage.output_tokens or 0
        finally:
            await stream.close()

        tool_calls = [
            ToolCallRequest(name=block["name"], arguments=parse_tool_arguments(block["json"]), call_id=block["id"])
            for _, block in sorted(tool_blocks.items())
        ]

        usage = None
        if input_tokens or output_tokens:
            usage = TokenUsage(input_tokens=input_tokens, output_tokens=output_tokens, model=self.model)

        return CompletionResult(content=content, tool_calls=tool_calls, usage=usage)

    def _is_retryable(self, error: Exception) -> bool:
        if isinstance(error, APIConnectionError):
            return True
        return isinstance(error, APIStatusError) and (error.status_code == 429 or error.status_code >= 500)

    def _describe_error(self, error: Exception) -> str:
        if isinstance(error, APIStatusError):
            return f"{error.status_code} {error.message}"
        return super()._describe_error(error)
