"""Session-level token usage and cost accounting."""

from dataclasses import dataclass

from termai.models.catalog import calculate_cost
from termai.models.llm import TokenUsage


def format_cost(cost: float) -> str:
    """Format a USD amount without trailing zeros."""
    text = f"{cost:.6f}".rstrip("0").rstrip(".")
    return f"${text or '0'}"


@dataclass
class CostTracker:
    """Accumulates usage over every request in a session."""

    total_input_tokens: int = 0
    total_output_tokens: int = 0
    total_cost: float = 0.0
    requests: int = 0

    def add_usage(self, usage: TokenUsage | None) -> None:
        if usage is None:
            return

        self.total_input_tokens += usage.input_tokens
        self.total_output_tokens += usage.output_tokens
        self.total_cost += calculate_cost(usage.model, usage.input_tokens, usage.output_tokens)
        self.requests += 1

    def summary_lines(self) -> list[str]:
        """Human-readable session totals."""
        return [
            f"Requests: {self.requests}",
            f"Total input tokens: {self.total_input_tokens:,}",
            f"Total output tokens: {self.total_output_tokens:,}",
            f"Total cost: {format_cost(self.total_cost)}",
        ]


def usage_lines(usage: TokenUsage) -> list[str]:
    """Human-readable usage for a single request."""
    cost = calculate_cost(usage.model, usage.input_tokens, usage.output_tokens)
    return [
        f"Model: {usage.model}",
        f"Input tokens: {usage.input_tokens:,}",
        f"Output tokens: {usage.output_tokens:,}",
        f"Total cost: {format_cost(cost)}",
    ]
