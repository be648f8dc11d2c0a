"""
Type definitions for the chat-completion client.
"""

from enum import Enum
from typing import List, Literal, Optional
from pydantic import BaseModel, Field


class ProviderConfig(BaseModel):
    """One configured OpenAI-compatible LLM endpoint."""

    name: str = Field(default="", description="Display name, e.g. 'DeepSeek'")
    description: str = Field(default="", description="Short provider description")
    base_url: str = Field(default="", description="API base URL, e.g. https://api.deepseek.com/v1")
    api_key: str = Field(default="", description="Bearer token for the provider")
    model: str = Field(default="", description="Model identifier")
    temperature: float = Field(default=1.0, ge=0.0, le=2.0, description="Sampling temperature")
    max_tokens: int = Field(default=2000, ge=1, description="Maximum tokens to generate")
    enabled: bool = Field(default=False, description="Whether the provider may be used")

    class Config:
        frozen = True  # Immutable per request

    def missing_fields(self) -> List[str]:
        """Return the names of required fields that are empty."""
        return [
            field
            for field in ("base_url", "api_key", "model")
            if not getattr(self, field).strip()
        ]

    def ensure_ready(self) -> None:
        """
        Check that a request may be started with this config.

        Raises:
            ProviderConfigError: Provider disabled or base_url/api_key/model missing
        """
        label = self.name or "AI provider"
        if not self.enabled:
            raise ProviderConfigError(f"{label} is not enabled")
        missing = self.missing_fields()
        if missing:
            raise ProviderConfigError(
                f"{label} configuration is incomplete (missing: {', '.join(missing)})"
            )


class ChatMessage(BaseModel):
    """A message in the conversation sent upstream."""

    role: Literal["user", "assistant", "system"] = Field(..., description="Message role")
    content: str = Field(..., description="Message content")

    class Config:
        frozen = True  # Immutable


class ChatRequest(BaseModel):
    """Chat completion request body."""

    model: str = Field(..., description="Model identifier")
    messages: List[ChatMessage] = Field(..., description="Conversation history")
    temperature: float = Field(default=1.0, ge=0.0, le=2.0, description="Sampling temperature")
    max_tokens: int = Field(default=2000, ge=1, description="Maximum tokens to generate")
    stream: bool = Field(default=True, description="Request a server-sent-event stream")

    class Config:
        frozen = True  # Immutable

    def to_payload(self) -> dict:
        """Serialize to the OpenAI-compatible wire body."""
        return {
            "model": self.model,
            "messages": [{"role": m.role, "content": m.content} for m in self.messages],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "stream": self.stream,
        }


class StreamChunk(BaseModel):
    """One content increment produced by the stream parser."""

    delta_text: str = Field(default="", description="Incremental text fragment")
    is_complete: bool = Field(default=False, description="True for the terminal chunk")

    class Config:
        frozen = True


class TokenUsage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatResponse(BaseModel):
    """Result of a non-streaming chat completion."""

    content: str
    usage: Optional[TokenUsage] = None


class ChatErrorKind(str, Enum):
    """Closed taxonomy of chat failures."""

    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    PARSE_ERROR = "parse_error"
    UNKNOWN = "unknown"


USER_MESSAGES = {
    ChatErrorKind.UNAUTHORIZED: "Invalid API key. Please check the provider configuration.",
    ChatErrorKind.NOT_FOUND: "Model not found or wrong API address.",
    ChatErrorKind.RATE_LIMITED: "Too many requests. Please try again later.",
    ChatErrorKind.SERVER_ERROR: "The AI service had an internal error. Please try again later.",
    ChatErrorKind.NETWORK_ERROR: "Network error. Please check your connection.",
    ChatErrorKind.TIMEOUT: "The request timed out. Please try again.",
    ChatErrorKind.CANCELLED: "Request cancelled.",
    ChatErrorKind.PARSE_ERROR: "Received an invalid response from the AI service.",
    ChatErrorKind.UNKNOWN: "Unknown error",
}


class ChatError(Exception):
    """
    Base exception for chat client errors.

    Attributes:
        kind: Taxonomy value (class-level, one per subclass)
        message: Technical message, original provider/transport text preserved
        status_code: HTTP status if the error came from a response
    """

    kind = ChatErrorKind.UNKNOWN

    def __init__(self, message: str = "", status_code: Optional[int] = None):
        self.message = message or USER_MESSAGES[self.kind]
        self.status_code = status_code
        super().__init__(self.message)

    @property
    def user_message(self) -> str:
        """Short display text for the UI."""
        if self.kind is ChatErrorKind.UNKNOWN:
            return self.message
        return USER_MESSAGES[self.kind]


class ChatUnauthorizedError(ChatError):
    """Invalid or missing API key."""
    kind = ChatErrorKind.UNAUTHORIZED


class ChatNotFoundError(ChatError):
    """Unknown model or wrong endpoint."""
    kind = ChatErrorKind.NOT_FOUND


class ChatRateLimitError(ChatError):
    """Provider rate limit exceeded."""
    kind = ChatErrorKind.RATE_LIMITED


class ChatServerError(ChatError):
    """Provider-side 5xx failure."""
    kind = ChatErrorKind.SERVER_ERROR


class ChatNetworkError(ChatError):
    """Connection could not be opened or broke mid-stream."""
    kind = ChatErrorKind.NETWORK_ERROR


class ChatTimeoutError(ChatError):
    """Request timeout."""
    kind = ChatErrorKind.TIMEOUT


class ChatCancelledError(ChatError):
    """Request aborted through its cancellation token."""
    kind = ChatErrorKind.CANCELLED


class ChatParseError(ChatError):
    """Response payload could not be decoded."""
    kind = ChatErrorKind.PARSE_ERROR


class ChatUnknownError(ChatError):
    """Failure that matched no known category."""
    kind = ChatErrorKind.UNKNOWN


ERROR_CLASSES = {
    ChatErrorKind.UNAUTHORIZED: ChatUnauthorizedError,
    ChatErrorKind.NOT_FOUND: ChatNotFoundError,
    ChatErrorKind.RATE_LIMITED: ChatRateLimitError,
    ChatErrorKind.SERVER_ERROR: ChatServerError,
    ChatErrorKind.NETWORK_ERROR: ChatNetworkError,
    ChatErrorKind.TIMEOUT: ChatTimeoutError,
    ChatErrorKind.CANCELLED: ChatCancelledError,
    ChatErrorKind.PARSE_ERROR: ChatParseError,
    ChatErrorKind.UNKNOWN: ChatUnknownError,
}


class ProviderConfigError(ValueError):
    """Provider disabled or incomplete; the request is never attempted."""
    pass
