"""
flowread Types Module

Event schemas shared between services and the UI layer.
"""

from .error_events import ChatErrorEvent, ChatErrorEventType

__all__ = [
    "ChatErrorEvent",
    "ChatErrorEventType",
]
