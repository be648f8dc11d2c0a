"""
Chat Client Configuration Module

Global defaults for the streaming chat client.
Loaded from environment variables with sensible fallback defaults.

Architecture:
- Global defaults (this module) → ProviderConfig (per provider) → per-call overrides
"""

import os
from dataclasses import dataclass


@dataclass
class ChatStreamConfig:
    """
    Configuration for chat-completion requests.

    The connect timeout bounds only the open phase of a stream; once the
    event stream is open there is no read timeout.
    """

    # Hard ceiling for the event stream to reach the open state (seconds)
    connect_timeout_s: float = 10.0

    # Used when neither the caller nor the provider config sets max_tokens
    default_max_tokens: int = 2000

    # Attempts for establishing non-streaming requests (connect failures only)
    max_retries: int = 3

    # Timeout for non-streaming requests (seconds)
    request_timeout_s: float = 60.0

    def validate(self) -> None:
        """Validate configuration values."""
        if not 0 < self.connect_timeout_s <= 120:
            raise ValueError("connect_timeout_s must be between 0 and 120")
        if not 1 <= self.default_max_tokens <= 32000:
            raise ValueError("default_max_tokens must be between 1 and 32000")
        if not 1 <= self.max_retries <= 10:
            raise ValueError("max_retries must be between 1 and 10")
        if not 0 < self.request_timeout_s <= 600:
            raise ValueError("request_timeout_s must be between 0 and 600")


def load_chat_config() -> ChatStreamConfig:
    """
    Load chat configuration from environment variables.

    Environment Variables:
        CHAT_CONNECT_TIMEOUT_S: Stream open timeout (default: 10)
        CHAT_DEFAULT_MAX_TOKENS: Fallback max_tokens (default: 2000)
        CHAT_MAX_RETRIES: Connect attempts for non-streaming calls (default: 3)
        CHAT_REQUEST_TIMEOUT_S: Non-streaming request timeout (default: 60)

    Returns:
        ChatStreamConfig with values loaded from environment or defaults
    """
    config = ChatStreamConfig(
        connect_timeout_s=float(os.getenv('CHAT_CONNECT_TIMEOUT_S', '10')),
        default_max_tokens=int(os.getenv('CHAT_DEFAULT_MAX_TOKENS', '2000')),
        max_retries=int(os.getenv('CHAT_MAX_RETRIES', '3')),
        request_timeout_s=float(os.getenv('CHAT_REQUEST_TIMEOUT_S', '60')),
    )

    config.validate()
    return config


# Global singleton instance
_chat_config: ChatStreamConfig | None = None

# Runtime overrides (in-memory, reset on restart)
_runtime_overrides: ChatStreamConfig | None = None


def get_chat_config() -> ChatStreamConfig:
    """
    Get global chat configuration singleton.

    Priority:
    1. Runtime overrides (set via update_chat_config)
    2. Environment variables (loaded on first call)
    """
    global _chat_config, _runtime_overrides

    if _runtime_overrides is not None:
        return _runtime_overrides

    if _chat_config is None:
        _chat_config = load_chat_config()
    return _chat_config


def update_chat_config(
    connect_timeout_s: float | None = None,
    default_max_tokens: int | None = None,
    max_retries: int | None = None,
    request_timeout_s: float | None = None,
) -> ChatStreamConfig:
    """
    Update chat configuration at runtime.

    Returns:
        Updated ChatStreamConfig

    Raises:
        ValueError: If validation fails
    """
    global _runtime_overrides

    current = get_chat_config()

    new_config = ChatStreamConfig(
        connect_timeout_s=connect_timeout_s if connect_timeout_s is not None else current.connect_timeout_s,
        default_max_tokens=default_max_tokens if default_max_tokens is not None else current.default_max_tokens,
        max_retries=max_retries if max_retries is not None else current.max_retries,
        request_timeout_s=request_timeout_s if request_timeout_s is not None else current.request_timeout_s,
    )

    new_config.validate()
    _runtime_overrides = new_config
    return new_config


def reset_chat_config() -> ChatStreamConfig:
    """Drop runtime overrides and return the environment defaults."""
    global _runtime_overrides
    _runtime_overrides = None
    return get_chat_config()
