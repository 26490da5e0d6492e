"""Conversation service tying the agent loop to thread persistence."""

from dataclasses import dataclass

from rich.status import Status

from termai.clients.base import TokenSink
from termai.errors import PersistenceError
from termai.models.llm import TokenUsage
from termai.models.messages import UserMessage
from termai.models.session import CancellationToken
from termai.models.thread import Thread
from termai.services.agent import AgentOrchestrator, StopReason
from termai.services.thread_store import SQLiteThreadRepository
from termai.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class TurnResult:
    """Outcome of one user turn.

    ``thread`` always carries the new history, even when saving it failed;
    in that case ``persistence_error`` is set.
    """

    thread: Thread
    content: str
    usage: TokenUsage
    cycles: int
    stop_reason: StopReason
    persistence_error: PersistenceError | None = None


class ConversationService:
    """Runs user turns against a thread and saves the result."""

    def __init__(self, orchestrator: AgentOrchestrator, store: SQLiteThreadRepository):
        self.orchestrator = orchestrator
        self.store = store

    def start_thread(self, name: str | None = None) -> Thread:
        return self.store.create(name)

    def load_thread(self, thread_id: str) -> Thread | None:
        return self.store.get(thread_id)

    async def send(
        self,
        thread: Thread,
        text: str,
        on_token: TokenSink,
        status: Status | None = None,
        cancel: CancellationToken | None = None,
    ) -> TurnResult:
        """Process a user message in ``thread`` and persist the resulting history.

        Args:
            thread: Thread the message belongs to
            text: User's message
            on_token: Receives streamed answer tokens
            status: Thinking indicator handed to the orchestrator
            cancel: Cancellation signal for the in-flight request

        Returns:
            The turn outcome with the updated thread

        Raises:
            ProviderError: If the backend fails; nothing from the turn is saved
            CompletionCancelled: If the user cancels; nothing from the turn is saved
        """
        logger.info(f"Processing message for thread {thread.id} ({len(thread.messages)} prior messages)")
        history = [*thread.messages, UserMessage(content=text)]

        result = await self.orchestrator.run(history, on_token, status=status, cancel=cancel)

        logger.info(
            f"Token usage - Input: {result.usage.input_tokens}, Output: {result.usage.output_tokens}, "
            f"cycles: {result.cycles}"
        )

        updated = thread.model_copy(update={"messages": result.history})
        persistence_error = None
        try:
            updated = self.store.update(thread.id, result.history)
        except PersistenceError as e:
            logger.error(f"Failed to save thread {thread.id}: {e}", exc_info=True)
            persistence_error = e

        return TurnResult(
            thread=updated,
            content=result.content,
            usage=result.usage,
            cycles=result.cycles,
            stop_reason=result.stop_reason,
            persistence_error=persistence_error,
        )
