"""
Consumer-facing stream of chat-completion increments.

ChatStream is the lazy, single-pass sequence handed to callers. It drives an
explicit state machine:

    CONNECTING → STREAMING → DRAINING → COMPLETED
         │            │
         └────────────┴──→ CANCELLED | ERRORED

Cancellation through the token ends the sequence silently; any other failure
is raised once as a ChatError, after which the sequence is exhausted.
"""

import asyncio
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable, Optional

from flowread.config.logging_config import get_logger
from flowread.llm.cancellation import CancellationToken
from flowread.llm.errors import normalize_error
from flowread.llm.parser import StreamParser
from flowread.llm.transport import SSEConnection
from flowread.llm.types import ChatError, ChatErrorKind, StreamChunk

logger = get_logger(__name__)


class StreamState(Enum):
    """Lifecycle states of a ChatStream"""
    PENDING = "pending"
    CONNECTING = "connecting"
    STREAMING = "streaming"
    DRAINING = "draining"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ERRORED = "errored"


TERMINAL_STATES = (StreamState.COMPLETED, StreamState.CANCELLED, StreamState.ERRORED)


class ChatStream:
    """
    Single-pass async iterable of StreamChunk.

    Usage:
        token = CancellationToken()
        content = ""
        async for chunk in service.chat_stream(messages, token=token):
            content += chunk.delta_text
            if chunk.is_complete:
                ...

    Args:
        opener: Coroutine factory that opens the SSEConnection
        token: Cancellation token shared with the transport
        label: Name used in log lines
    """

    def __init__(
        self,
        opener: Callable[[], Awaitable[SSEConnection]],
        token: CancellationToken,
        label: str = "",
    ):
        self._opener = opener
        self.token = token
        self.label = label
        self.state = StreamState.PENDING
        self.error: Optional[ChatError] = None
        self.parser = StreamParser(label=label)
        self._connection: Optional[SSEConnection] = None
        self._iterator: Optional[AsyncIterator[StreamChunk]] = None

    def __aiter__(self) -> AsyncIterator[StreamChunk]:
        if self._iterator is not None:
            raise RuntimeError("ChatStream can only be iterated once")
        self._iterator = self._run()
        return self._iterator

    @property
    def done(self) -> bool:
        return self.state in TERMINAL_STATES

    async def aclose(self) -> None:
        """Stop the stream and release the connection (idempotent)."""
        if self._iterator is not None:
            await self._iterator.aclose()
        if self._connection is not None:
            await self._connection.aclose()
        if not self.done:
            self.state = StreamState.CANCELLED

    async def _run(self) -> AsyncIterator[StreamChunk]:
        try:
            self.state = StreamState.CONNECTING
            self._connection = await self._opener()

            self.state = StreamState.STREAMING
            events = self._connection.events()
            try:
                async for event in events:
                    if self.token.is_cancelled:
                        break

                    chunk = self.parser.parse(event.data)
                    if chunk is None:
                        continue

                    if chunk.is_complete:
                        self.state = StreamState.DRAINING
                        yield chunk
                        break

                    yield chunk
            finally:
                await events.aclose()

            if self.token.is_cancelled:
                self.state = StreamState.CANCELLED
                logger.info(f"💬 Stream [{self.label}]: Cancelled ({self.token.reason})")
                return

            if self.state is StreamState.STREAMING:
                # Ended without [DONE]: treat end of stream as completion
                logger.debug(f"💬 Stream [{self.label}]: Ended without [DONE]")
                self.state = StreamState.DRAINING
                yield StreamChunk(delta_text="", is_complete=True)

            self.state = StreamState.COMPLETED
            logger.info(
                f"💬 Stream [{self.label}]: Complete ({self.parser.content_chunks} chunks, "
                f"{self.parser.malformed_frames} malformed frames skipped)"
            )

        except asyncio.CancelledError:
            self.state = StreamState.CANCELLED
            raise

        except Exception as e:
            error = normalize_error(e)
            if self.token.is_cancelled or error.kind is ChatErrorKind.CANCELLED:
                self.state = StreamState.CANCELLED
                logger.info(f"💬 Stream [{self.label}]: Cancelled ({error.message})")
                return

            self.state = StreamState.ERRORED
            self.error = error
            logger.error(f"💬 Stream [{self.label}]: Failed [{error.kind.value}] - {error.message}")
            if error is e:
                raise
            raise error from e

        finally:
            if self._connection is not None:
                await self._connection.aclose()
