"""Provider adapter contract shared by every LLM backend."""

import asyncio
import json
import time
from abc import ABC, abstractmethod
from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Callable
from typing import Any, TypeVar

from limits import parse
from limits.storage import MemoryStorage
from limits.strategies import MovingWindowRateLimiter

from termai.config import ClientConfig
from termai.errors import CompletionCancelled, ProviderError
from termai.models.llm import CompletionOptions, CompletionResult, TokenUsage
from termai.models.messages import Message
from termai.models.session import CancellationToken
from termai.services.tokens import count_messages_tokens, count_tokens
from termai.utils.logging import get_logger

T = TypeVar("T")

logger = get_logger(__name__)

TokenSink = Callable[[str], None]


def parse_tool_arguments(raw: str | dict[str, Any] | None) -> dict[str, Any]:
    """Decode streamed tool arguments, falling back to an empty map."""
    if isinstance(raw, dict):
        return raw
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning(f"Discarding malformed tool arguments: {raw[:200]!r}")
        return {}
    return parsed if isinstance(parsed, dict) else {}


def tool_result_text(result: str, error: str | None) -> str:
    """Flatten a tool response into the single text field backends accept."""
    if not error:
        return result
    return f"{result}\nError: {error}" if result else f"Error: {error}"


class ProviderRateLimiter:
    """Moving-window rate limiter using the limits library."""

    def __init__(self, requests_per_minute: int = 50, tokens_per_minute: int = 200_000):
        """Initialize rate limiter.

        Args:
            requests_per_minute: Maximum requests per minute
            tokens_per_minute: Maximum estimated input tokens per minute
        """
        self.storage = MemoryStorage()
        self.limiter = MovingWindowRateLimiter(self.storage)

        self.request_limit = parse(f"{requests_per_minute}/minute")
        self.token_limit = parse(f"{tokens_per_minute}/minute")

    async def check_rate_limit(self, estimated_tokens: int, identifier: str) -> None:
        """Sleep until the request fits within the configured limits."""
        logger.debug(f"Checking rate limit for {estimated_tokens} tokens, identifier: {identifier}")

        if not self.limiter.hit(self.request_limit, identifier):
            await self._wait(self.request_limit, identifier, "Request")

        token_identifier = f"{identifier}_tokens"
        cost = max(1, min(estimated_tokens, self.token_limit.amount))
        if not self.limiter.hit(self.token_limit, token_identifier, cost=cost):
            await self._wait(self.token_limit, token_identifier, "Token")

    async def _wait(self, limit, identifier: str, kind: str) -> None:
        window_stats = self.limiter.get_window_stats(limit, identifier)
        if window_stats:
            wait_time = max(0.0, window_stats.reset_time - time.time())
            if wait_time > 0:
                logger.warning(f"{kind} rate limit exceeded, waiting {wait_time:.2f}s")
                await asyncio.sleep(wait_time)


class ProviderAdapter(ABC):
    """Translates canonical messages to one backend and streams the reply back."""

    name: str = "provider"

    def __init__(self, model: str, config: ClientConfig | None = None):
        self.model = model
        self.config = config or ClientConfig()
        self.rate_limiter = ProviderRateLimiter(self.config.requests_per_minute, self.config.tokens_per_minute)

    async def generate_streaming_completion(
        self,
        messages: list[Message],
        on_token: TokenSink,
        options: CompletionOptions | None = None,
        cancel: CancellationToken | None = None,
    ) -> CompletionResult:
        """Stream a completion for ``messages``.

        Every text token is handed to ``on_token`` as soon as it arrives.
        Tool calls are returned only once the stream has finished.

        Raises:
            ProviderError: On any backend failure
            CompletionCancelled: When ``cancel`` is set before or during the request
        """
        options = options or CompletionOptions()
        estimated_input = count_messages_tokens(messages, self.model)
        self._check_cancelled(cancel)
        await self._until_cancelled(self.rate_limiter.check_rate_limit(estimated_input, self.name), cancel)

        logger.debug(f"Requesting {self.name} completion with {len(messages)} messages, {len(options.tools)} tools")
        try:
            result = await self._stream(messages, on_token, options, cancel)
        except (ProviderError, CompletionCancelled):
            raise
        except Exception as e:
            logger.error(f"{self.name} streaming failed: {e}")
            raise ProviderError(self.name, self._describe_error(e)) from e

        if result.usage is None:
            result.usage = TokenUsage(
                input_tokens=estimated_input,
                output_tokens=count_tokens(result.content, self.model),
                model=self.model,
            )
        return result

    @abstractmethod
    async def _stream(
        self,
        messages: list[Message],
        on_token: TokenSink,
        options: CompletionOptions,
        cancel: CancellationToken | None,
    ) -> CompletionResult:
        """Backend-specific request and stream handling."""

    def _is_retryable(self, error: Exception) -> bool:
        return False

    def _describe_error(self, error: Exception) -> str:
        return str(error) or error.__class__.__name__

    async def _open_with_retries(self, call: Callable[[], Awaitable[T]]) -> T:
        """Open the stream, retrying retryable failures with exponential backoff."""
        for attempt in range(self.config.max_retries):
            try:
                return await call()
            except Exception as e:
                if attempt < self.config.max_retries - 1 and self._is_retryable(e):
                    delay = self.config.retry_delay * (2**attempt)
                    logger.warning(f"{self.name} request failed ({e}), retrying in {delay:.1f}s")
                    await asyncio.sleep(delay)
                    continue
                raise

        raise ProviderError(self.name, f"Failed to complete request after {self.config.max_retries} attempts")

    async def aclose(self) -> None:
        """Release any HTTP client the adapter created itself."""

    def _check_cancelled(self, cancel: CancellationToken | None) -> None:
        if cancel is not None and cancel.is_cancelled:
            logger.info(f"{self.name} stream cancelled")
            raise CompletionCancelled()

    async def _until_cancelled(self, awaitable: Awaitable[T], cancel: CancellationToken | None) -> T:
        """Await ``awaitable`` unless ``cancel`` fires first.

        Covers waits with no stream chunk to check against: opening the
        request, retry backoff and a connection that stops sending. Pending
        work is cancelled when the token wins.
        """
        if cancel is None:
            return await awaitable

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(cancel.wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if task not in done:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            logger.info(f"{self.name} request cancelled while waiting")
            raise CompletionCancelled()
        return task.result()

    async def _iterate_until_cancelled(
        self, stream: AsyncIterable[T], cancel: CancellationToken | None
    ) -> AsyncIterator[T]:
        """Yield stream items, giving up as soon as ``cancel`` fires."""
        iterator = aiter(stream)
        while True:
            self._check_cancelled(cancel)
            try:
                item = await self._until_cancelled(anext(iterator), cancel)
            except StopAsyncIteration:
                return
            yield item
