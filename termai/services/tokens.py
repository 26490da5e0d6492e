"""Token estimation and history truncation."""

from functools import lru_cache

import tiktoken

from termai.models.messages import Message, ToolMessage, message_text
from termai.utils.logging import get_logger

logger = get_logger(__name__)

# Models tiktoken knows by name; everything else falls back to a base encoding.
_TIKTOKEN_MODEL_PREFIXES = ("gpt-4o", "gpt-4.1", "gpt-4", "gpt-3.5-turbo", "o1", "o3")


@lru_cache(maxsize=16)
def _get_encoding(model: str) -> tiktoken.Encoding | None:
    """Get the closest tiktoken encoding for a model, or None if unavailable."""
    try:
        if model.startswith(_TIKTOKEN_MODEL_PREFIXES):
            return tiktoken.encoding_for_model(model)
        return tiktoken.get_encoding("cl100k_base")
    except Exception as e:
        logger.warning(f"Tiktoken encoding not available for model {model}: {e}")
        try:
            return tiktoken.get_encoding("cl100k_base")
        except Exception:
            return None


def estimate_token_count(text: str) -> int:
    """Rough estimate: about four characters per token."""
    if not text:
        return 0
    return (len(text) + 3) // 4


def count_tokens(text: str, model: str) -> int:
    """Count tokens in text for a model.

    Args:
        text: Text to count
        model: Model identifier used to pick the encoding

    Returns:
        Token count, approximated when no encoding is available
    """
    if not text:
        return 0

    encoding = _get_encoding(model)
    if encoding is None:
        return estimate_token_count(text)
    try:
        return len(encoding.encode(text, disallowed_special=()))
    except Exception as e:
        logger.warning(f"Error counting tokens with tiktoken: {e}")
        return estimate_token_count(text)


def count_message_tokens(message: Message, model: str) -> int:
    return count_tokens(message_text(message), model)


def count_messages_tokens(messages: list[Message], model: str) -> int:
    return sum(count_message_tokens(message, model) for message in messages)


def truncate_history(messages: list[Message], max_input_tokens: int, model: str) -> list[Message]:
    """Keep the newest messages whose estimated size fits the input budget.

    Walks backwards from the most recent message and stops at the first one
    that would push the running total over ``max_input_tokens``. A tool result
    whose tool call was cut is dropped as well, since providers reject a
    result without its call. When even the newest message is over budget it is
    kept anyway (together with its tool call, if it is a tool result).

    Args:
        messages: Conversation history without the system prompt
        max_input_tokens: Budget for the returned messages
        model: Model identifier used for counting

    Returns:
        Suffix of ``messages`` that fits the budget
    """
    if not messages:
        return []

    kept_from = len(messages)
    total = 0
    for index in range(len(messages) - 1, -1, -1):
        message_tokens = count_message_tokens(messages[index], model)
        if total + message_tokens > max_input_tokens:
            break
        total += message_tokens
        kept_from = index

    while kept_from < len(messages) and isinstance(messages[kept_from], ToolMessage):
        kept_from += 1

    if kept_from == len(messages):
        logger.warning(f"Newest message alone exceeds the {max_input_tokens} token input limit; sending it anyway")
        kept_from = len(messages) - 1
        if isinstance(messages[kept_from], ToolMessage) and kept_from > 0:
            kept_from -= 1
        return messages[kept_from:]

    if kept_from > 0:
        logger.warning(
            f"Truncated conversation from {len(messages)} to {len(messages) - kept_from} messages "
            f"to fit within {max_input_tokens} token limit"
        )

    return messages[kept_from:]
