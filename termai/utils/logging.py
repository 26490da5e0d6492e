"""Logging configuration."""

import logging
import os
import sys
from pathlib import Path

from pydantic import BaseModel

LOG_FILENAME = "terminal-ai.log"


class LogConfig(BaseModel):
    """Logging configuration.

    With ``log_file`` set, records go only to that file so debug output never
    lands in the middle of a streamed answer.
    """

    level: str = "WARNING"
    log_file: Path | None = None
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"

    @classmethod
    def from_env(cls) -> "LogConfig":
        return cls(level=os.getenv("TERMAI_LOG_LEVEL", "WARNING"), log_file=os.getenv("TERMAI_LOG_FILE") or None)


def setup_logging(config: LogConfig | None = None) -> None:
    """Set up logging for the CLI, to stderr or to a log file."""
    if config is None:
        config = LogConfig.from_env()

    if config.log_file is not None:
        config.log_file.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(config.log_file, encoding="utf-8")
    else:
        handler = logging.StreamHandler(sys.stderr)

    logging.basicConfig(
        level=getattr(logging, config.level.upper()),
        format=config.format,
        datefmt=config.date_format,
        handlers=[handler],
        force=True,  # Override any existing configuration
    )

    # SDK request logs would drown the assistant's own records
    for name in ("anthropic", "openai", "httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a specific module.

    The level is left to the root logger configured by ``setup_logging``.
    """
    return logging.getLogger(name)
