"""Shared fixtures for the terminal-ai test suite."""

import io
from collections.abc import Callable
from unittest.mock import patch

import pytest
from rich.console import Console

from termai.clients.base import ProviderAdapter
from termai.config import ClientConfig
from termai.models.llm import CompletionOptions, CompletionResult, TokenUsage
from termai.models.messages import Message, ToolCallRequest
from termai.models.session import Session


class FakeEncoding:
    """Deterministic tokenizer: one token per whitespace-separated word."""

    def encode(self, text, disallowed_special=()):
        return text.split()


@pytest.fixture(autouse=True)
def fake_tokenizer():
    """Keep tiktoken from downloading encodings during tests."""
    with patch("termai.services.tokens._get_encoding", return_value=FakeEncoding()):
        yield


class ScriptedProvider(ProviderAdapter):
    """Provider that replays scripted rounds instead of calling a backend.

    Each round is a tuple of (tokens, tool_calls). Every request is recorded
    in ``requests`` as (messages, options).
    """

    name = "scripted"

    def __init__(self, rounds: list[tuple[list[str], list[ToolCallRequest]]], model: str = "gpt-4o"):
        super().__init__(model, ClientConfig(requests_per_minute=10_000, tokens_per_minute=10_000_000))
        self.rounds = list(rounds)
        self.requests: list[tuple[list[Message], CompletionOptions]] = []

    async def _stream(self, messages, on_token, options, cancel):
        self.requests.append((list(messages), options))
        tokens, tool_calls = self.rounds.pop(0)
        for token in tokens:
            self._check_cancelled(cancel)
            on_token(token)
        return CompletionResult(
            content="".join(tokens),
            tool_calls=list(tool_calls),
            usage=TokenUsage(input_tokens=10, output_tokens=len(tokens), model=self.model),
        )


@pytest.fixture
def make_provider() -> Callable[..., ScriptedProvider]:
    return ScriptedProvider


@pytest.fixture
def session():
    """Session that prints to a buffer and approves every confirmation."""
    return Session(console=Console(file=io.StringIO(), width=120), ask=lambda question: True)
