"""Runtime configuration read from the environment."""

import os
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel

from termai.models.catalog import DEFAULT_MODELS

DEFAULT_DATA_DIR = Path.home() / ".terminal-ai-sessions"
DATABASE_FILENAME = "terminal-ai.db"


class ProviderType(StrEnum):
    """Supported LLM backends."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    OLLAMA = "ollama"


_API_KEY_ENV = {
    ProviderType.OPENAI: "OPENAI_API_KEY",
    ProviderType.ANTHROPIC: "ANTHROPIC_API_KEY",
}


class ProviderConfig(BaseModel):
    """Which backend to talk to and how."""

    provider: ProviderType = ProviderType.OPENAI
    api_key: str | None = None
    model: str | None = None
    endpoint: str | None = None

    @property
    def resolved_model(self) -> str:
        return self.model or DEFAULT_MODELS[self.provider.value]

    @classmethod
    def from_env(cls, **overrides: str | None) -> "ProviderConfig":
        """Build a config from TERMAI_* variables; explicit overrides win."""
        provider = ProviderType(overrides.get("provider") or os.getenv("TERMAI_PROVIDER", ProviderType.OPENAI.value))
        api_key = os.getenv("TERMAI_API_KEY")
        if not api_key and provider in _API_KEY_ENV:
            api_key = os.getenv(_API_KEY_ENV[provider])

        return cls(
            provider=provider,
            api_key=overrides.get("api_key") or api_key,
            model=overrides.get("model") or os.getenv("TERMAI_MODEL"),
            endpoint=overrides.get("endpoint") or os.getenv("TERMAI_ENDPOINT"),
        )


@dataclass
class ClientConfig:
    """Request tuning shared by all provider adapters."""

    max_tokens: int = 4096
    temperature: float = 0.2
    max_retries: int = 3
    retry_delay: float = 1.0
    requests_per_minute: int = 50
    tokens_per_minute: int = 200_000
    timeout: float = 120.0


@dataclass
class AgentConfig:
    """Configuration for the tool-calling loop."""

    max_cycles: int = 25
    system_prompt: str | None = None


def data_dir() -> Path:
    return Path(os.getenv("TERMAI_HOME", str(DEFAULT_DATA_DIR))).expanduser()


def database_path() -> Path:
    return data_dir() / DATABASE_FILENAME
