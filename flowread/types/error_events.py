"""
flowread Error Event System

Purpose: Standardized error event schema for service-to-UI error propagation.
Analysis and translation services emit ChatErrorEvent objects when a request
fails; the UI renders `user_message` with a retry action and logs
`technical_details`.

Cancelled requests never produce an event: a superseded or aborted request is
a silent stop, not a failure.
"""

from datetime import datetime
from enum import Enum
from typing import Optional, Literal
from pydantic import BaseModel, Field

from flowread.llm.types import ChatError, ChatErrorKind


class ChatErrorEventType(str, Enum):
    """
    Error categories reported to the UI.

    Mirrors ChatErrorKind (minus CANCELLED) and adds the precondition failure
    for providers that are disabled or incomplete.
    """

    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    PARSE_ERROR = "parse_error"
    UNKNOWN = "unknown"
    PROVIDER_NOT_CONFIGURED = "provider_not_configured"


class ChatErrorEvent(BaseModel):
    """
    Standardized error event emitted by analysis/translation services.

    Attributes:
        event_type: Always "chat_error" for UI routing
        service_name: Which service failed ("word_analysis", "article_analysis", "translation")
        error_type: Error category (see ChatErrorEventType)
        user_message: Short message for display
        technical_details: Original error text for logs
        request_id: Id of the RequestHandle that failed, if any
        severity: "warning", "error" or "critical"
        retry_suggested: Whether the UI should offer a retry action
        timestamp: When the error occurred

    Example:
        ```python
        event = ChatErrorEvent(
            service_name="word_analysis",
            error_type=ChatErrorEventType.UNAUTHORIZED,
            user_message="Invalid API key. Please check the provider configuration.",
            technical_details="HTTP 401: {\"error\": {\"message\": \"Invalid API key\"}}",
            request_id=3,
        )
        ```
    """

    event_type: Literal["chat_error"] = "chat_error"
    service_name: str = Field(
        ...,
        description="Service that encountered the error",
        examples=["word_analysis", "article_analysis", "translation"]
    )
    error_type: ChatErrorEventType = Field(
        ...,
        description="Specific error category"
    )
    user_message: str = Field(
        ...,
        description="User-friendly error message for display",
        min_length=1,
        max_length=500
    )
    technical_details: str = Field(
        ...,
        description="Technical error details for logs",
        min_length=1,
        max_length=2000
    )
    request_id: Optional[int] = Field(
        default=None,
        description="RequestHandle id if the error is request-specific"
    )
    severity: str = Field(
        default="error",
        description="Error severity level",
        pattern="^(warning|error|critical)$"
    )
    retry_suggested: bool = Field(
        default=True,
        description="Whether the user should retry the operation"
    )
    timestamp: datetime = Field(
        default_factory=datetime.now,
        description="When the error occurred"
    )

    class Config:
        """Pydantic config"""
        use_enum_values = True  # Serialize enums as strings

    @classmethod
    def from_chat_error(
        cls,
        error: ChatError,
        service_name: str,
        request_id: Optional[int] = None,
    ) -> "ChatErrorEvent":
        """
        Build an event from a non-cancelled ChatError.

        Raises:
            ValueError: error is a cancellation (never reported)
        """
        if error.kind is ChatErrorKind.CANCELLED:
            raise ValueError("Cancelled requests are not reported as errors")

        return cls(
            service_name=service_name,
            error_type=ChatErrorEventType(error.kind.value),
            user_message=error.user_message[:500],
            technical_details=error.message[:2000],
            request_id=request_id,
            severity="critical" if error.kind is ChatErrorKind.UNAUTHORIZED else "error",
        )

    @classmethod
    def not_configured(
        cls,
        service_name: str,
        details: str,
        request_id: Optional[int] = None,
    ) -> "ChatErrorEvent":
        """Event for a disabled or incomplete provider (nothing was sent)."""
        return cls(
            service_name=service_name,
            error_type=ChatErrorEventType.PROVIDER_NOT_CONFIGURED,
            user_message="AI service is not configured. Please set up an AI provider in settings.",
            technical_details=details[:2000] or "Provider not configured",
            request_id=request_id,
            severity="warning",
            retry_suggested=False,
        )
