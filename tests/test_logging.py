"""Tests for logging configuration."""

import logging

import pytest

from termai.utils.logging import LogConfig, get_logger, setup_logging


@pytest.fixture
def restore_root_logger():
    """Put back whatever handlers pytest had on the root logger."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        handler.close()
    root.handlers = handlers
    root.setLevel(level)


class TestLogging:
    """Tests for setup_logging and get_logger."""

    def test_log_file_receives_debug_records(self, tmp_path, restore_root_logger):
        """Test that file logging creates the directory and captures debug output."""
        log_file = tmp_path / "logs" / "terminal-ai.log"
        setup_logging(LogConfig(level="DEBUG", log_file=log_file))

        get_logger("termai.services.agent").debug("Agent cycle 1/25")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert "termai.services.agent - DEBUG - Agent cycle 1/25" in log_file.read_text()

    def test_sdk_loggers_are_quieted(self, tmp_path, restore_root_logger):
        setup_logging(LogConfig(level="DEBUG", log_file=tmp_path / "terminal-ai.log"))

        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("openai").level == logging.WARNING

    def test_config_from_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("TERMAI_LOG_LEVEL", "info")
        monkeypatch.setenv("TERMAI_LOG_FILE", str(tmp_path / "termai.log"))

        config = LogConfig.from_env()

        assert config.level == "info"
        assert config.log_file == tmp_path / "termai.log"

    def test_config_defaults_to_stderr(self, monkeypatch):
        monkeypatch.delenv("TERMAI_LOG_LEVEL", raising=False)
        monkeypatch.delenv("TERMAI_LOG_FILE", raising=False)

        config = LogConfig.from_env()

        assert config.level == "WARNING"
        assert config.log_file is None
