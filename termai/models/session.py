"""Session state shared by the orchestrator and tool handlers."""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field

from rich.console import Console
from rich.prompt import Confirm

from termai.services.cost import CostTracker
from termai.utils.logging import get_logger

logger = get_logger(__name__)


def _ask_confirmation(question: str) -> bool:
    return Confirm.ask(question, default=False)


class CancellationToken:
    """Cancellation signal that streaming requests check and wait on."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()


@dataclass
class Session:
    """Per-run state passed explicitly to the orchestrator and tools."""

    auto_approve: bool = False
    show_cost_info: bool = True
    cost_tracker: CostTracker = field(default_factory=CostTracker)
    console: Console = field(default_factory=Console)
    ask: Callable[[str], bool] = _ask_confirmation
    _prompt_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    async def confirm(self, question: str) -> bool:
        """Ask the user a yes/no question.

        Prompts are serialized so concurrently running tools never interleave
        their questions on the terminal.
        """
        async with self._prompt_lock:
            answer = await asyncio.to_thread(self.ask, question)
        logger.debug(f"Confirmation {question!r} answered {answer}")
        return answer
