"""
Tiered Logging Configuration for flowread

Provides a flexible logging system with 5 levels:
- TRACE (5): Ultra-verbose debugging (raw SSE frames, payload structure)
- DEBUG (10): Detailed debugging (state transitions, connection open/close)
- INFO (20): Standard operational messages (requests started, streams completed)
- WARN (30): Warnings (malformed frames, retries)
- ERROR (40): Errors (provider failures, transport errors)

Environment Variables:
- LOG_LEVEL: Global log level (TRACE, DEBUG, INFO, WARN, ERROR) [default: INFO]
- LOG_LEVEL_CHAT: Override for the chat client (ChatService, ChatStream, parser)
- LOG_LEVEL_SSE: Override for the event-stream transport
- LOG_LEVEL_LIFECYCLE: Override for request lifecycle / cancellation tokens
- LOG_LEVEL_ANALYSIS: Override for word/article analysis sessions
- LOG_LEVEL_TRANSLATION: Override for the LLM translation engine

Example Usage:
    from flowread.config.logging_config import get_logger

    logger = get_logger(__name__)
    logger.trace("🔍 Raw SSE frame: %s", line)
    logger.debug("📡 Connection closed")
    logger.info("💬 Stream complete")
    logger.warning("⚠️ Skipping malformed frame")
    logger.error("❌ Provider returned HTTP 401")
"""

import logging
import os


# Define custom TRACE level (more verbose than DEBUG)
TRACE = 5
logging.addLevelName(TRACE, "TRACE")


def trace(self, message, *args, **kwargs):
    """Log a message with severity 'TRACE'."""
    if self.isEnabledFor(TRACE):
        self._log(TRACE, message, args, **kwargs)


# Add trace method to Logger class
logging.Logger.trace = trace


# Module name mapping: Python module path → Logical area name
MODULE_NAME_MAP = {
    "flowread.llm.chat_service": "flowread.chat",
    "flowread.llm.stream": "flowread.chat",
    "flowread.llm.parser": "flowread.chat",
    "flowread.llm.factory": "flowread.chat",
    "flowread.llm.transport": "flowread.sse",
    "flowread.llm.lifecycle": "flowread.lifecycle",
    "flowread.llm.cancellation": "flowread.lifecycle",
    "flowread.services.analysis_service": "flowread.analysis",
    "flowread.services.translation_service": "flowread.translation",
}

OVERRIDE_AREAS = ["CHAT", "SSE", "LIFECYCLE", "ANALYSIS", "TRANSLATION"]


def get_log_level(module_name: str, default: str = "INFO") -> int:
    """
    Get the log level for a module, checking both area-specific and global env vars.

    Priority:
    1. Area-specific env var (LOG_LEVEL_CHAT, LOG_LEVEL_SSE, etc.)
    2. Global LOG_LEVEL env var
    3. Default level (INFO)

    Args:
        module_name: Python module name (e.g., "flowread.llm.transport")
        default: Default log level if no env vars set

    Returns:
        Numeric log level (5=TRACE, 10=DEBUG, 20=INFO, 30=WARN, 40=ERROR)
    """
    logical_name = MODULE_NAME_MAP.get(module_name, module_name)

    # "flowread.sse" → "SSE"
    if "." in logical_name:
        area = logical_name.split(".")[-1].upper()
    else:
        area = None

    if area:
        area_level = os.getenv(f"LOG_LEVEL_{area}")
        if area_level:
            return _parse_log_level(area_level)

    global_level = os.getenv("LOG_LEVEL")
    if global_level:
        return _parse_log_level(global_level)

    return _parse_log_level(default)


def _parse_log_level(level_str: str) -> int:
    """
    Parse log level string to numeric value.

    Args:
        level_str: Log level name (TRACE, DEBUG, INFO, WARN, ERROR)

    Returns:
        Numeric log level
    """
    level_map = {
        "TRACE": TRACE,
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARN": logging.WARNING,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR,
    }
    return level_map.get(level_str.upper(), logging.INFO)


def configure_logging(default_level: str = "INFO") -> None:
    """
    Configure logging system with tiered levels and per-area control.

    Call once at application startup.

    Args:
        default_level: Default log level if LOG_LEVEL env var not set
    """
    global_level = os.getenv("LOG_LEVEL", default_level)
    numeric_level = _parse_log_level(global_level)

    logging.basicConfig(
        level=numeric_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )

    root_logger = logging.getLogger()
    root_logger.info(f"🚀 Logging system initialized (global level: {global_level})")

    area_overrides = []
    for area in OVERRIDE_AREAS:
        override = os.getenv(f"LOG_LEVEL_{area}")
        if override:
            area_overrides.append(f"{area}={override}")

    if area_overrides:
        root_logger.info(f"📋 Area overrides: {', '.join(area_overrides)}")


def get_logger(module_name: str) -> logging.Logger:
    """
    Get a logger for a module with appropriate log level.

    Args:
        module_name: Python module name (use __name__)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(module_name)
    logger.setLevel(get_log_level(module_name))
    return logger
