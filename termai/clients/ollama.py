"""Ollama adapter speaking the native /api/chat NDJSON stream."""

import json
from typing import Any, assert_never

import httpx

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
from termai.utils.ids import new_id
from termai.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_OLLAMA_ENDPOINT = "http://localhost:11434"


class OllamaAdapter(ProviderAdapter):
    """Streams completions from a local Ollama server."""

    name = "ollama"

    def __init__(
        self,
        model: str,
        endpoint: str | None = None,
        config: ClientConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        super().__init__(model, config)
        self.endpoint = (endpoint or DEFAULT_OLLAMA_ENDPOINT).rstrip("/")
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(timeout=self.config.timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self.http_client.aclose()

    def map_messages(self, messages: list[Message]) -> list[dict[str, Any]]:
        mapped: list[dict[str, Any]] = []
        for message in messages:
            match message:
                case SystemMessage() | UserMessage() | AssistantMessage():
                    mapped.append({"role": message.role, "content": message.content})
                case ToolCallMessage():
                    mapped.append(
                        {
                            "role": "assistant",
                            "content": "",
                            "tool_calls": [
                                {"function": {"name": call.name, "arguments": call.arguments}}
                                for call in message.calls
                            ],
                        }
                    )
                case ToolMessage():
                    mapped.extend(
                        {
                            "role": "tool",
                            "tool_name": result.name,
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

    async def _send(self, request: httpx.Request) -> httpx.Response:
        response = await self.http_client.send(request, stream=True)
        if response.status_code >= 400:
            await response.aread()
            await response.aclose()
            response.raise_for_status()
        return response

    async def _stream(
        self,
        messages: list[Message],
        on_token: TokenSink,
        options: CompletionOptions,
        cancel: CancellationToken | None,
    ) -> CompletionResult:
        body: dict[str, Any] = {
            "model": self.model,
            "messages": self.map_messages(messages),
            "stream": True,
            "options": {"temperature": self.config.temperature, "num_predict": self.config.max_tokens},
        }
        # Ollama has no tool_choice; "none" is expressed by not offering tools.
        if options.tools and options.tool_call == "auto":
            body["tools"] = self.map_tools(options.tools)

        url = f"{self.endpoint}/api/chat"
        logger.debug(f"Sending request to Ollama API at {url} using model {self.model}")
        request = self.http_client.build_request("POST", url, json=body)
        response = await self._until_cancelled(self._open_with_retries(lambda: self._send(request)), cancel)

        content = ""
        tool_calls: list[ToolCallRequest] = []
        usage = None

        try:
            async for line in self._iterate_until_cancelled(response.aiter_lines(), cancel):
                if not line.strip():
                    continue

                try:
                    chunk = json.loads(line)
                except json.JSONDecodeError:
                    logger.warning(f"Skipping malformed Ollama stream line: {line[:200]!r}")
                    continue

                if chunk.get("error"):
                    raise ProviderError(self.name, str(chunk["error"]))

                message = chunk.get("message") or {}
                text = message.get("content") or ""
                if text:
                    on_token(text)
                    content += text

                for call in message.get("tool_calls") or []:
                    function = call.get("function") or {}
                    if not function.get("name"):
                        continue
                    tool_calls.append(
                        ToolCallRequest(
                            name=function["name"],
                            arguments=parse_tool_arguments(function.get("arguments")),
                            call_id=call.get("id") or f"call_{new_id()}",
                        )
                    )

                if chunk.get("done") and ("prompt_eval_count" in chunk or "eval_count" in chunk):
                    usage = TokenUsage(
                        input_tokens=chunk.get("prompt_eval_count", 0),
                        output_tokens=chunk.get("eval_count", 0),
                        model=self.model,
                    )
        finally:
            await response.aclose()

        return CompletionResult(content=content, tool_calls=tool_calls, usage=usage)

    def _is_retryable(self, error: Exception) -> bool:
        if isinstance(error, httpx.TransportError):
            return True
        return isinstance(error, httpx.HTTPStatusError) and (
            error.response.status_code == 429 or error.response.status_code >= 500
        )

    def _describe_error(self, error: Exception) -> str:
        if isinstance(error, httpx.HTTPStatusError):
            return f"{error.response.status_code} {error.response.text[:200]}"
        if isinstance(error, httpx.ConnectError):
            return f"Cannot connect to Ollama at {self.endpoint}. Is `ollama serve` running?"
        return super()._describe_error(error)
