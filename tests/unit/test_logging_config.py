"""
Unit tests for tiered logging configuration.
"""

import logging

import pytest

from flowread.config.logging_config import (
    TRACE,
    configure_logging,
    _parse_log_level,
    get_log_level,
    MODULE_NAME_MAP,
    get_logger,
)
from flowread.llm import (
    cancellation,
    chat_service,
    factory,
    lifecycle,
    parser,
    stream,
    transport,
)


class TestLogLevels:
    """Test level parsing and per-area overrides."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("TRACE", TRACE),
            ("debug", logging.DEBUG),
            ("INFO", logging.INFO),
            ("WARN", logging.WARNING),
            ("warning", logging.WARNING),
            ("ERROR", logging.ERROR),
            ("nonsense", logging.INFO),
        ],
    )
    def test_parse_log_level(self, name, expected):
        """Test level names map to numeric levels."""
        assert _parse_log_level(name) == expected

    def test_default_level(self, monkeypatch):
        """Test INFO is used without environment variables."""
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        monkeypatch.delenv("LOG_LEVEL_SSE", raising=False)

        assert get_log_level("flowread.llm.transport") == logging.INFO

    def test_area_override_wins(self, monkeypatch):
        """Test LOG_LEVEL_SSE applies to the transport module only."""
        monkeypatch.setenv("LOG_LEVEL", "WARN")
        monkeypatch.setenv("LOG_LEVEL_SSE", "TRACE")
        monkeypatch.delenv("LOG_LEVEL_CHAT", raising=False)

        assert get_log_level("flowread.llm.transport") == TRACE
        assert get_log_level("flowread.llm.stream") == logging.WARNING

    def test_services_map_to_their_areas(self, monkeypatch):
        """Test analysis and translation services have their own overrides."""
        monkeypatch.setenv("LOG_LEVEL_ANALYSIS", "DEBUG")
        monkeypatch.setenv("LOG_LEVEL_TRANSLATION", "ERROR")

        assert get_log_level("flowread.services.analysis_service") == logging.DEBUG
        assert get_log_level("flowread.services.translation_service") == logging.ERROR

    def test_get_logger_supports_trace(self, monkeypatch):
        """Test loggers expose trace() and honour the TRACE level."""
        monkeypatch.setenv("LOG_LEVEL_CHAT", "TRACE")

        logger = get_logger("flowread.llm.parser")

        assert logger.level == TRACE
        assert logger.isEnabledFor(TRACE)
        logger.trace("🧩 trace message")

    def test_configure_logging_reports_overrides(self, monkeypatch, caplog):
        """Test startup configuration logs the active area overrides."""
        monkeypatch.setenv("LOG_LEVEL_SSE", "DEBUG")

        with caplog.at_level(logging.INFO):
            configure_logging("INFO")

        assert "SSE=DEBUG" in caplog.text


class TestModuleLoggers:
    """Test the streaming modules' loggers follow their area overrides."""

    @pytest.fixture
    def restore_levels(self):
        loggers = [logging.getLogger(name) for name in MODULE_NAME_MAP]
        levels = [logger.level for logger in loggers]
        yield
        for logger, level in zip(loggers, levels):
            logger.setLevel(level)

    @pytest.mark.parametrize(
        "module,area",
        [
            (transport, "SSE"),
            (cancellation, "LIFECYCLE"),
            (lifecycle, "LIFECYCLE"),
            (chat_service, "CHAT"),
            (factory, "CHAT"),
            (parser, "CHAT"),
            (stream, "CHAT"),
        ],
    )
    def test_module_logger_honours_area_level(self, module, area, monkeypatch, restore_levels):
        """Test each mapped module logs through a level-configured logger."""
        # ARRANGE
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        monkeypatch.setenv(f"LOG_LEVEL_{area}", "DEBUG")

        # ASSERT - configured at import, so never left at NOTSET
        assert module.logger.name == module.__name__
        assert module.logger.level != logging.NOTSET

        # ACT
        logger = get_logger(module.__name__)

        # ASSERT
        assert logger is module.logger
        assert module.logger.level == logging.DEBUG
        assert module.logger.isEnabledFor(logging.DEBUG)
