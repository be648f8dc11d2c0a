"""
Error normalization for the chat client.

Maps transport exceptions, HTTP statuses, parse failures and provider error
payloads onto the closed ChatError taxonomy. Structured information (exception
type, status code) is checked first; the keyword table is the fallback for
unannotated messages such as provider error payloads.
"""

import asyncio
import json
from typing import Optional, Union

import httpx

from flowread.llm.types import ChatError, ChatErrorKind, ERROR_CLASSES


# Evaluated in order, first match wins
KEYWORD_TABLE = (
    (("401", "invalid api key", "unauthorized"), ChatErrorKind.UNAUTHORIZED),
    (("404", "model not found", "not found"), ChatErrorKind.NOT_FOUND),
    (("429", "rate limit"), ChatErrorKind.RATE_LIMITED),
    (("500", "internal server error"), ChatErrorKind.SERVER_ERROR),
    (("network", "fetch", "failed", "sse"), ChatErrorKind.NETWORK_ERROR),
    (("timeout",), ChatErrorKind.TIMEOUT),
    (("abort",), ChatErrorKind.CANCELLED),
)


def kind_for_status(status_code: Optional[int]) -> Optional[ChatErrorKind]:
    """Map an HTTP status code to a taxonomy value (None if not decisive)."""
    if status_code is None:
        return None
    if status_code in (401, 403):
        return ChatErrorKind.UNAUTHORIZED
    if status_code == 404:
        return ChatErrorKind.NOT_FOUND
    if status_code == 429:
        return ChatErrorKind.RATE_LIMITED
    if status_code >= 500:
        return ChatErrorKind.SERVER_ERROR
    return None


def kind_for_message(message: str) -> ChatErrorKind:
    """Keyword fallback on the lower-cased message."""
    lowered = message.lower()
    for keywords, kind in KEYWORD_TABLE:
        if any(keyword in lowered for keyword in keywords):
            return kind
    return ChatErrorKind.UNKNOWN


def _kind_for_exception(error: BaseException) -> Optional[ChatErrorKind]:
    if isinstance(error, asyncio.CancelledError):
        return ChatErrorKind.CANCELLED
    if isinstance(error, (httpx.TimeoutException, asyncio.TimeoutError)):
        return ChatErrorKind.TIMEOUT
    if isinstance(error, httpx.TransportError):
        return ChatErrorKind.NETWORK_ERROR
    if isinstance(error, json.JSONDecodeError):
        return ChatErrorKind.PARSE_ERROR
    if isinstance(error, httpx.HTTPStatusError):
        return kind_for_status(error.response.status_code)
    return None


def _message_of(error: Union[BaseException, str, None]) -> str:
    if error is None:
        return ""
    if isinstance(error, str):
        return error
    try:
        text = str(error)
    except Exception:
        text = repr(error)
    if not text:
        text = type(error).__name__
    return text


def normalize_error(
    error: Union[BaseException, str, None],
    status_code: Optional[int] = None,
) -> ChatError:
    """
    Convert any failure into exactly one ChatError.

    Pure and total: never raises, always returns an error with a non-empty
    message. ChatError instances are returned unchanged.

    Args:
        error: Exception, raw message string, or None
        status_code: HTTP status when known (takes precedence over keywords)

    Returns:
        ChatError subclass matching the taxonomy
    """
    if isinstance(error, ChatError):
        return error

    message = _message_of(error)

    kind = kind_for_status(status_code)
    if kind is None and isinstance(error, BaseException):
        kind = _kind_for_exception(error)
    if kind is None:
        kind = kind_for_message(message)

    if status_code is None and isinstance(error, httpx.HTTPStatusError):
        status_code = error.response.status_code

    return ERROR_CLASSES[kind](message, status_code=status_code)


def error_from_payload(payload_error: object) -> ChatError:
    """
    Build a ChatError from an embedded provider `error` field.

    Accepts the OpenAI shape ({"message": ..., "code": ...}) as well as a bare
    string.
    """
    status_code = None
    if isinstance(payload_error, dict):
        message = payload_error.get("message") or json.dumps(payload_error, ensure_ascii=False)
        code = payload_error.get("code") or payload_error.get("status")
        if isinstance(code, int):
            status_code = code
        elif isinstance(code, str) and code.isdigit():
            status_code = int(code)
        # Vendor-specific codes (e.g. Zhipu "1113") are not HTTP statuses
        if status_code is not None and not 100 <= status_code < 600:
            status_code = None
    else:
        message = str(payload_error)
    return normalize_error(str(message), status_code=status_code)
