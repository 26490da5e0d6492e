"""Tests for token counting and history truncation."""

from unittest.mock import Mock, patch

import pytest

from termai.models.messages import (
    AssistantMessage,
    ToolCallMessage,
    ToolCallRequest,
    ToolCallResponse,
    ToolMessage,
    UserMessage,
)
from termai.services.tokens import count_messages_tokens, count_tokens, estimate_token_count, truncate_history


def _sized(messages, sizes):
    """Patch per-message token counts to fixed sizes."""
    costs = {id(message): size for message, size in zip(messages, sizes, strict=True)}
    return patch("termai.services.tokens.count_message_tokens", side_effect=lambda message, model: costs[id(message)])


class TestTokenCounting:
    """Tests for token counting."""

    def test_count_tokens_uses_encoding(self):
        """Test that counts come from the tokenizer when available."""
        assert count_tokens("list all files", "gpt-4o") == 3

    def test_count_tokens_empty_text(self):
        assert count_tokens("", "gpt-4o") == 0

    def test_count_tokens_fallback_without_encoding(self):
        """Test the character estimate when no encoding is available."""
        with patch("termai.services.tokens._get_encoding", return_value=None):
            assert count_tokens("a" * 10, "llama3.1") == 3

    def test_count_tokens_fallback_when_encode_fails(self):
        """Test the character estimate when the tokenizer raises."""
        encoding = Mock()
        encoding.encode.side_effect = ValueError("bad input")
        with patch("termai.services.tokens._get_encoding", return_value=encoding):
            assert count_tokens("a" * 8, "gpt-4o") == estimate_token_count("a" * 8) == 2

    def test_count_messages_tokens_includes_tool_payloads(self):
        """Test that structured messages are counted through their JSON text."""
        messages = [
            UserMessage(content="show status"),
            ToolCallMessage(calls=[ToolCallRequest(name="git_status", call_id="c1")]),
        ]
        assert count_messages_tokens(messages, "gpt-4o") > 2


class TestTruncation:
    """Tests for the newest-first truncation window."""

    def test_history_within_limit_is_untouched(self):
        messages = [UserMessage(content="one two"), AssistantMessage(content="three four")]
        assert truncate_history(messages, 100, "gpt-4o") == messages

    def test_empty_history(self):
        assert truncate_history([], 100, "gpt-4o") == []

    def test_oldest_messages_dropped_first(self):
        """Test that the kept suffix fits the limit and ends with the newest message."""
        messages = [
            UserMessage(content="a b c"),
            AssistantMessage(content="d e f"),
            UserMessage(content="g h i"),
            AssistantMessage(content="j k l"),
            UserMessage(content="m n o"),
        ]

        result = truncate_history(messages, 7, "gpt-4o")

        assert result == messages[-2:]
        assert count_messages_tokens(result, "gpt-4o") <= 7

    @pytest.mark.parametrize("limit", [2, 5, 10, 15, 19])
    def test_truncated_sum_never_exceeds_limit(self, limit):
        """Test that truncated history fits whenever the full history does not."""
        messages = [UserMessage(content=" ".join(["w"] * size)) for size in (4, 6, 3, 5, 2)]
        assert count_messages_tokens(messages, "gpt-4o") > limit

        result = truncate_history(messages, limit, "gpt-4o")

        assert count_messages_tokens(result, "gpt-4o") <= limit
        assert result == messages[len(messages) - len(result) :]

    def test_orphan_tool_result_is_dropped(self):
        """Test that a tool message whose tool call was cut does not lead the window."""
        messages = [
            UserMessage(content="run ls"),
            ToolCallMessage(calls=[ToolCallRequest(name="execute_command", arguments={"command": "ls"}, call_id="x")]),
            ToolMessage(results=[ToolCallResponse(name="execute_command", result="a.txt", call_id="x")]),
            AssistantMessage(content="There is one file"),
        ]

        with _sized(messages, [5, 50, 5, 5]):
            result = truncate_history(messages, 20, "gpt-4o")

        assert result == messages[-1:]

    def test_newest_message_over_budget_is_kept(self, caplog):
        """Test the degrade path when even the newest message is too large."""
        messages = [UserMessage(content="short"), UserMessage(content="huge")]

        with _sized(messages, [1, 500]):
            result = truncate_history(messages, 100, "gpt-4o")

        assert result == messages[-1:]
        assert "exceeds" in caplog.text

    def test_oversized_tool_result_keeps_its_tool_call(self):
        """Test that an oversized trailing tool result travels with its call."""
        messages = [
            UserMessage(content="cat the log"),
            ToolCallMessage(calls=[ToolCallRequest(name="execute_command", call_id="x")]),
            ToolMessage(results=[ToolCallResponse(name="execute_command", result="...", call_id="x")]),
        ]

        with _sized(messages, [2, 2, 1000]):
            result = truncate_history(messages, 100, "gpt-4o")

        assert result == messages[1:]
