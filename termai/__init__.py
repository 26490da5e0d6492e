"""terminal-ai: an LLM-driven terminal assistant."""

__version__ = "0.1.0"
