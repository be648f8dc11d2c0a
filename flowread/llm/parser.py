"""
Chat-completion stream decoder.

Turns each server-sent event payload into zero or one StreamChunk.
"""

import json
from typing import Optional

from flowread.config.logging_config import get_logger
from flowread.llm.errors import error_from_payload
from flowread.llm.types import StreamChunk

logger = get_logger(__name__)

DONE_SENTINEL = "[DONE]"


class StreamParser:
    """
    Stateful decoder for one stream.

    Payload handling:
    - "[DONE]" → terminal chunk (is_complete=True)
    - JSON with choices[0].delta.content → content chunk
    - JSON with an `error` field → raised ChatError
    - malformed JSON → skipped with a warning (counted in malformed_frames)
    """

    def __init__(self, label: str = ""):
        self.label = label
        self.frames = 0
        self.content_chunks = 0
        self.malformed_frames = 0
        self.done = False

    def parse(self, data: str) -> Optional[StreamChunk]:
        """
        Decode one event payload.

        Args:
            data: The event's data field

        Returns:
            StreamChunk or None if the frame carries no content

        Raises:
            ChatError: Payload contains an embedded provider error
        """
        self.frames += 1
        data = data.strip()

        if data == DONE_SENTINEL:
            self.done = True
            logger.debug(
                f"🧩 Parser [{self.label}]: [DONE] after {self.frames} frames, "
                f"{self.content_chunks} content chunks"
            )
            return StreamChunk(delta_text="", is_complete=True)

        if not data:
            return None

        try:
            payload = json.loads(data)
        except json.JSONDecodeError as e:
            self.malformed_frames += 1
            logger.warning(f"🧩 Parser [{self.label}]: Failed to parse SSE chunk: {e}, data: {data[:100]}")
            return None

        if not isinstance(payload, dict):
            logger.warning(f"🧩 Parser [{self.label}]: Ignoring non-object payload: {data[:100]}")
            return None

        if payload.get("error"):
            logger.error(f"🧩 Parser [{self.label}]: Error payload in stream: {data[:200]}")
            raise error_from_payload(payload["error"])

        content = extract_delta_content(payload)
        if not content:
            return None

        self.content_chunks += 1
        if self.content_chunks == 1:
            logger.trace(f"🧩 Parser [{self.label}]: first chunk structure: {data[:250]}")
        return StreamChunk(delta_text=content, is_complete=False)


def extract_delta_content(payload: dict) -> str:
    """Return choices[0].delta.content, or "" when absent."""
    choices = payload.get("choices") or []
    if not isinstance(choices, list) or not choices:
        return ""
    first = choices[0]
    if not isinstance(first, dict):
        return ""
    delta = first.get("delta") or {}
    if not isinstance(delta, dict):
        return ""
    content = delta.get("content")
    return content if isinstance(content, str) else ""
