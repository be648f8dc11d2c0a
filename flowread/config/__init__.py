"""Configuration modules for flowread."""

from .chat import (
    ChatStreamConfig,
    get_chat_config,
    load_chat_config,
    update_chat_config,
    reset_chat_config,
)
from .logging_config import configure_logging, get_logger

__all__ = [
    'ChatStreamConfig',
    'get_chat_config',
    'load_chat_config',
    'update_chat_config',
    'reset_chat_config',
    'configure_logging',
    'get_logger',
]
