"""Known models with their pricing and context limits."""

from dataclasses import dataclass


@dataclass(frozen=True)
class ModelPricing:
    """Price in USD per million tokens."""

    input: float
    output: float


@dataclass(frozen=True)
class ModelLimits:
    """Context window limits."""

    max_input_tokens: int
    max_output_tokens: int


@dataclass(frozen=True)
class ModelSpec:
    """A model offered by a provider."""

    name: str
    value: str
    provider: str
    pricing: ModelPricing
    limits: ModelLimits


DEFAULT_LIMITS = ModelLimits(max_input_tokens=32_000, max_output_tokens=4_096)

DEFAULT_MODELS = {
    "openai": "gpt-4o",
    "anthropic": "claude-3-5-sonnet-20241022",
    "ollama": "llama3.1",
}

MODEL_CATALOG: list[ModelSpec] = [
    ModelSpec("GPT-4o", "gpt-4o", "openai", ModelPricing(2.5, 10.0), ModelLimits(128_000, 16_384)),
    ModelSpec("GPT-4o mini", "gpt-4o-mini", "openai", ModelPricing(0.15, 0.6), ModelLimits(128_000, 16_384)),
    ModelSpec("GPT-4.1", "gpt-4.1", "openai", ModelPricing(2.0, 8.0), ModelLimits(1_000_000, 32_768)),
    ModelSpec("GPT-4.1 mini", "gpt-4.1-mini", "openai", ModelPricing(0.4, 1.6), ModelLimits(1_000_000, 32_768)),
    ModelSpec("o3-mini", "o3-mini", "openai", ModelPricing(1.1, 4.4), ModelLimits(200_000, 100_000)),
    ModelSpec(
        "Claude 3.5 Sonnet",
        "claude-3-5-sonnet-20241022",
        "anthropic",
        ModelPricing(3.0, 15.0),
        ModelLimits(200_000, 8_192),
    ),
    ModelSpec(
        "Claude 3.5 Haiku",
        "claude-3-5-haiku-20241022",
        "anthropic",
        ModelPricing(0.8, 4.0),
        ModelLimits(200_000, 8_192),
    ),
    ModelSpec(
        "Claude 3.7 Sonnet",
        "claude-3-7-sonnet-20250219",
        "anthropic",
        ModelPricing(3.0, 15.0),
        ModelLimits(200_000, 64_000),
    ),
    ModelSpec(
        "Claude Sonnet 4",
        "claude-sonnet-4-20250514",
        "anthropic",
        ModelPricing(3.0, 15.0),
        ModelLimits(200_000, 64_000),
    ),
    ModelSpec("Llama 3.1", "llama3.1", "ollama", ModelPricing(0.0, 0.0), ModelLimits(128_000, 4_096)),
    ModelSpec("Qwen 2.5", "qwen2.5", "ollama", ModelPricing(0.0, 0.0), ModelLimits(32_000, 4_096)),
]


def get_model_spec(model: str) -> ModelSpec | None:
    """Look up a model by its API identifier."""
    return next((spec for spec in MODEL_CATALOG if spec.value == model), None)


def get_model_limits(model: str) -> ModelLimits:
    spec = get_model_spec(model)
    return spec.limits if spec else DEFAULT_LIMITS


def calculate_cost(model: str, input_tokens: int, output_tokens: int) -> float:
    """Cost in USD of a request; unknown models cost nothing."""
    spec = get_model_spec(model)
    if spec is None:
        return 0.0
    return (input_tokens / 1_000_000) * spec.pricing.input + (output_tokens / 1_000_000) * spec.pricing.output
