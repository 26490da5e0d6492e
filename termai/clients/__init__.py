"""LLM provider adapters."""

from termai.clients.anthropic import AnthropicAdapter
from termai.clients.base import ProviderAdapter
from termai.clients.ollama import OllamaAdapter
from termai.clients.openai import OpenAIAdapter
from termai.config import ClientConfig, ProviderConfig, ProviderType


def create_provider(config: ProviderConfig, client_config: ClientConfig | None = None) -> ProviderAdapter:
    """Build the adapter for the configured backend."""
    model = config.resolved_model
    match config.provider:
        case ProviderType.OPENAI:
            return OpenAIAdapter(model, api_key=config.api_key, endpoint=config.endpoint, config=client_config)
        case ProviderType.ANTHROPIC:
            return AnthropicAdapter(model, api_key=config.api_key, endpoint=config.endpoint, config=client_config)
        case ProviderType.OLLAMA:
            return OllamaAdapter(model, endpoint=config.endpoint, config=client_config)


__all__ = ["AnthropicAdapter", "OllamaAdapter", "OpenAIAdapter", "ProviderAdapter", "create_provider"]
