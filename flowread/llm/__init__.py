"""
Chat-completion client for flowread

Streams OpenAI-compatible chat completions over Server-Sent Events with
explicit cancellation tokens, per-consumer request supersession, and a closed
error taxonomy. Provider construction from settings lives in
flowread.llm.factory.
"""

from flowread.llm.cancellation import CancellationToken
from flowread.llm.chat_service import ChatService
from flowread.llm.errors import normalize_error
from flowread.llm.lifecycle import RequestHandle, RequestLifecycle
from flowread.llm.stream import ChatStream, StreamState
from flowread.llm.types import (
    ProviderConfig,
    ProviderConfigError,
    ChatMessage,
    ChatRequest,
    ChatResponse,
    StreamChunk,
    ChatError,
    ChatErrorKind,
    ChatUnauthorizedError,
    ChatNotFoundError,
    ChatRateLimitError,
    ChatServerError,
    ChatNetworkError,
    ChatTimeoutError,
    ChatCancelledError,
    ChatParseError,
    ChatUnknownError,
)

__all__ = [
    "CancellationToken",
    "ChatService",
    "ChatStream",
    "StreamState",
    "RequestHandle",
    "RequestLifecycle",
    "normalize_error",
    "ProviderConfig",
    "ProviderConfigError",
    "ChatMessage",
    "ChatRequest",
    "ChatResponse",
    "StreamChunk",
    "ChatError",
    "ChatErrorKind",
    "ChatUnauthorizedError",
    "ChatNotFoundError",
    "ChatRateLimitError",
    "ChatServerError",
    "ChatNetworkError",
    "ChatTimeoutError",
    "ChatCancelledError",
    "ChatParseError",
    "ChatUnknownError",
]
