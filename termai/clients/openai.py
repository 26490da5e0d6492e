"""OpenAI chat completions adapter (also used for OpenAI-compatible endpoints)."""

import json
from typing import Any, assert_never

from openai import APIConnectionError, APIStatusError, AsyncOpenAI

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


class OpenAIAdapter(ProviderAdapter):
    """Streams completions from the OpenAI chat completions API."""

    name = "openai"

    def __init__(
        self,
        model: str,
        api_key: str | None = None,
        endpoint: str | None = None,
        config: ClientConfig | None = None,
        client: AsyncOpenAI | None = None,
    ):
        super().__init__(model, config)
        self._owns_client = client is None
        if client is None:
            if not api_key:
                raise ProviderError(self.name, "API key is required. Set TERMAI_API_KEY or OPENAI_API_KEY.")
            client = AsyncOpenAI(api_key=api_key, base_url=endpoint, timeout=self.config.timeout)
        self.client = client

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.close()

    def map_messages(self, messages: list[Message]) -> list[dict[str, Any]]:
        """Convert canonical messages to chat completion messages.

        A tool result batch becomes one ``tool`` message per call.
        """
        mapped: list[dict[str, Any]] = []
        for message in messages:
            match message:
                case SystemMessage():
                    mapped.append({"role": "system", "content": message.content})
                case UserMessage():
                    mapped.append({"role": "user", "content": message.content})
                case AssistantMessage():
                    mapped.append({"role": "assistant", "content": message.content})
                case ToolCallMessage():
                    mapped.append(
                        {
                            "role": "assistant",
                            "content": None,
                            "tool_calls": [
                                {
                                    "id": call.call_id,
                                    "type": "function",
                                    "function": {"name": call.name, "arguments": json.dumps(call.arguments)},
                                }
                                for call in message.calls
                            ],
                        }
                    )
                case ToolMessage():
                    mapped.extend(
                        {
                            "role": "tool",
                            "tool_call_id": result.call_id,
                            "content": tool_result_text(result.result, result.error),
                        }
                        for result in message.results
                    )
                case _:
                    assert_never(message)
        return mapped

    def map_tools(self, tools: list[ToolDefinition]) -> list[dict[str, Any]]:
        return [
            {
                "type": "function",
                "function": {"name": tool.name, "description": tool.description, "parameters": tool.parameters},
            }
            for tool in tools
        ]

    async def _stream(
        self,
        messages: list[Message],
        on_token: TokenSink,
        options: CompletionOptions,
        cancel: CancellationToken | None,
    ) -> CompletionResult:
        request_params: dict[str, Any] = {
            "model": self.model,
            "messages": self.map_messages(messages),
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
            "stream": True,
            "stream_options": {"include_usage": True},
        }
        if options.tools:
            request_params["tools"] = self.map_tools(options.tools)
            request_params["tool_choice"] = options.tool_call

        logger.debug(f"Making OpenAI API call with model: {self.model}")
        stream = await self._until_cancelled(
            self._open_with_retries(lambda: self.client.chat.completions.create(**request_params)), cancel
        )

        content = ""
        # Tool calls arrive as fragments keyed by index: id and name first, then argument text.
        collected: dict[int, dict[str, str]] = {}
        usage = None

        try:
            async for chunk in self._iterate_until_cancelled(stream, cancel):
                if getattr(chunk, "usage", None):
                    usage = TokenUsage(
                        input_tokens=chunk.usage.prompt_tokens or 0,
                        output_tokens=chunk.usage.completion_tokens or 0,
                        model=self.model,
                    )

                delta = chunk.choices[0].delta if chunk.choices else None
                if delta is None:
                    continue

                if delta.content:
                    on_token(delta.content)
                    content += delta.content

                for fragment in delta.tool_calls or []:
                    entry = collected.setdefault(fragment.index, {"id": "", "name": "", "arguments": ""})
                    if fragment.id:
                        entry["id"] = fragment.id
                    if fragment.function is not None:
                        if fragment.function.name:
                            entry["name"] += fragment.function.name
                        if fragment.function.arguments:
                            entry["arguments"] += fragment.function.arguments
        finally:
            await stream.close()

        tool_calls = [
            ToolCallRequest(
                name=entry["name"],
                arguments=parse_tool_arguments(entry["arguments"]),
                call_id=entry["id"] or f"call_{index}",
            )
            for index, entry in sorted(collected.items())
            if entry["name"]
        ]

        return CompletionResult(content=content, tool_calls=tool_calls, usage=usage)

    def _is_retryable(self, error: Exception) -> bool:
        if isinstance(error, APIConnectionError):
            return True
        return isinstance(error, APIStatusError) and (error.status_code == 429 or error.status_code >= 500)

    def _describe_error(self, error: Exception) -> str:
        if isinstance(error, APIStatusError):
            return f"{error.status_code} {error.message}"
        return super()._describe_error(error)
