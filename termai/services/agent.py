"""Agent orchestrator driving the streaming tool-calling loop."""

from dataclasses import dataclass, field
from typing import Literal

from rich.status import Status

from termai.clients.base import ProviderAdapter, TokenSink
from termai.config import AgentConfig
from termai.models.catalog import get_model_limits
from termai.models.llm import CompletionOptions, TokenUsage
from termai.models.messages import (
    AssistantMessage,
    Message,
    SystemMessage,
    ToolCallMessage,
    ToolCallRequest,
    ToolMessage,
)
from termai.models.session import CancellationToken, Session
from termai.prompts import build_system_prompt
from termai.services.context import PromptContext
from termai.services.tokens import truncate_history
from termai.tools.registry import ToolRegistry
from termai.utils.ids import new_id
from termai.utils.logging import get_logger

logger = get_logger(__name__)

MAX_CYCLES_MESSAGE = (
    "I have used the maximum number of tool calls allowed for a single request "
    "without reaching an answer. How would you like me to proceed?"
)

StopReason = Literal["end_turn", "max_cycles"]


@dataclass
class AgentRunResult:
    """Outcome of resolving one user turn."""

    history: list[Message]
    content: str
    usage: TokenUsage
    cycles: int
    stop_reason: StopReason
    new_messages: list[Message] = field(default_factory=list)


def ensure_unique_call_ids(calls: list[ToolCallRequest]) -> list[ToolCallRequest]:
    """Give every call in a round a distinct, non-empty call id."""
    seen: set[str] = set()
    unique = []
    for call in calls:
        call_id = call.call_id or f"call_{new_id()}"
        while call_id in seen:
            call_id = f"{call.call_id}_{new_id()}"
        if call_id != call.call_id:
            logger.warning(f"Reassigned duplicate or empty call id {call.call_id!r} to {call_id!r}")
            call = call.model_copy(update={"call_id": call_id})
        seen.add(call_id)
        unique.append(call)
    return unique


class AgentOrchestrator:
    """Runs completion rounds until the model answers without calling tools."""

    def __init__(
        self,
        provider: ProviderAdapter,
        registry: ToolRegistry,
        session: Session,
        config: AgentConfig | None = None,
        context: PromptContext | None = None,
    ):
        """Initialize the orchestrator.

        Args:
            provider: Adapter for the active LLM backend
            registry: Tools the model may call
            session: Per-run state shared with tool handlers
            config: Loop settings (defaults to ``AgentConfig()``)
            context: Source of extra system prompt context, gathered once per turn
        """
        self.provider = provider
        self.registry = registry
        self.session = session
        self.config = config or AgentConfig()
        self.context = context

    def system_prompt(self, context: str = "") -> str:
        return build_system_prompt(self.registry.get_usage_prompt(), self.config.system_prompt, context)

    def compose(self, history: list[Message], context: str = "") -> list[Message]:
        """System prompt followed by the part of ``history`` that fits the model's input limit."""
        limits = get_model_limits(self.provider.model)
        conversation = [message for message in history if not isinstance(message, SystemMessage)]
        return [
            SystemMessage(content=self.system_prompt(context)),
            *truncate_history(conversation, limits.max_input_tokens, self.provider.model),
        ]

    async def run(
        self,
        history: list[Message],
        on_token: TokenSink,
        status: Status | None = None,
        cancel: CancellationToken | None = None,
    ) -> AgentRunResult:
        """Resolve the turn at the end of ``history``.

        Args:
            history: Conversation so far, ending with the new user message
            on_token: Receives each streamed text token
            status: Thinking indicator, stopped as soon as output starts
            cancel: Cooperative cancellation signal for the streaming request

        Returns:
            The extended history together with usage and loop metadata

        Raises:
            ProviderError: If a completion request fails
            CompletionCancelled: If ``cancel`` fires during a request
        """
        working = list(history)
        start = len(working)
        usage = TokenUsage(model=self.provider.model)
        cycles = 0
        max_cycles = self.config.max_cycles
        context = await self.context.collect() if self.context is not None else ""

        logger.info(
            f"Starting agent run with {len(working)} messages, "
            f"{len(self.registry.get_tool_names())} tools, max_cycles: {max_cycles}"
        )

        def stop_status() -> None:
            if status is not None:
                status.stop()

        def sink(token: str) -> None:
            stop_status()
            on_token(token)

        try:
            while True:
                cycles += 1
                logger.debug(f"Agent cycle {cycles}/{max_cycles}")
                if status is not None:
                    status.start()

                declarations = self.registry.get_declarations()
                options = CompletionOptions(tools=declarations, tool_call="auto" if declarations else "none")
                result = await self.provider.generate_streaming_completion(
                    self.compose(working, context), sink, options, cancel
                )

                if result.usage is not None:
                    usage = usage + result.usage
                    self.session.cost_tracker.add_usage(result.usage)

                if not result.has_tool_calls:
                    working.append(AssistantMessage(content=result.content))
                    logger.info(f"Agent run completed in {cycles} cycles")
                    return AgentRunResult(
                        history=working,
                        content=result.content,
                        usage=usage,
                        cycles=cycles,
                        stop_reason="end_turn",
                        new_messages=working[start:],
                    )

                stop_status()
                calls = ensure_unique_call_ids(result.tool_calls)
                logger.info(f"Model requested {len(calls)} tools: {', '.join(call.name for call in calls)}")
                working.append(ToolCallMessage(calls=calls))

                for call in calls:
                    self.registry.render(call)
                responses = await self.registry.dispatch_all(calls)
                working.append(ToolMessage(results=responses))

                if cycles >= max_cycles:
                    logger.warning(f"Agent run reached max cycles ({max_cycles})")
                    working.append(AssistantMessage(content=MAX_CYCLES_MESSAGE))
                    return AgentRunResult(
                        history=working,
                        content=MAX_CYCLES_MESSAGE,
                        usage=usage,
                        cycles=cycles,
                        stop_reason="max_cycles",
                        new_messages=working[start:],
                    )
        finally:
            stop_status()
