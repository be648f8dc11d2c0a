"""
Request lifecycle control for one logical consumer.

Each consumer (a word-analysis panel, an article-analysis view, ...) owns a
RequestLifecycle. Starting a request mints a new RequestHandle and cancels the
previous one; only chunks from the current handle are ever forwarded.
"""

import time
from dataclasses import dataclass, field
from typing import AsyncIterable, AsyncIterator, Optional

from flowread.config.logging_config import get_logger
from flowread.llm.cancellation import CancellationToken
from flowread.llm.types import StreamChunk

logger = get_logger(__name__)


@dataclass(frozen=True)
class RequestHandle:
    """One logical "ask the AI" action."""
    id: int
    token: CancellationToken
    created_at: float = field(default_factory=time.time)


class RequestLifecycle:
    """
    Tracks the current request of one consumer.

    The current handle is only changed by start(), cancel() and teardown();
    chunk delivery never mutates it.
    """

    def __init__(self, name: str = "consumer"):
        self.name = name
        self._counter = 0
        self._current: Optional[RequestHandle] = None
        self._mounted = True

    @property
    def current(self) -> Optional[RequestHandle]:
        return self._current

    @property
    def mounted(self) -> bool:
        return self._mounted

    def start(self) -> RequestHandle:
        """
        Mint a new handle, superseding (and cancelling) the previous one.

        After teardown() the returned handle is already cancelled, so nothing
        started on it is ever forwarded.
        """
        previous = self._current
        self._counter += 1
        handle = RequestHandle(
            id=self._counter,
            token=CancellationToken(label=f"{self.name}#{self._counter}"),
        )
        self._current = handle

        if previous is not None:
            previous.token.cancel("superseded")

        if not self._mounted:
            handle.token.cancel("consumer torn down")
            logger.debug(f"🔁 Lifecycle [{self.name}]: start after teardown, request #{handle.id} inert")
        else:
            logger.debug(f"🔁 Lifecycle [{self.name}]: request #{handle.id} started")

        return handle

    def cancel(self, reason: str = "cancelled") -> None:
        """Cancel the current request (no-op if none or already cancelled)."""
        if self._current is not None and self._current.token.cancel(reason):
            logger.debug(f"🔁 Lifecycle [{self.name}]: request #{self._current.id} {reason}")

    def teardown(self) -> None:
        """Unmount the consumer; no further chunks are forwarded."""
        self._mounted = False
        self.cancel("consumer torn down")

    def is_current(self, handle: RequestHandle) -> bool:
        """True iff the handle is current, not cancelled, and the consumer is mounted."""
        return (
            self._mounted
            and self._current is not None
            and handle.id == self._current.id
            and not handle.token.is_cancelled
        )

    async def guard(
        self,
        handle: RequestHandle,
        chunks: AsyncIterable[StreamChunk],
    ) -> AsyncIterator[StreamChunk]:
        """
        Forward chunks while the handle stays current.

        Stops at the first chunk that fails the check (a stale handle never
        becomes current again) and closes the source.
        """
        iterator = chunks.__aiter__()
        try:
            async for chunk in iterator:
                if not self.is_current(handle):
                    logger.debug(f"🔁 Lifecycle [{self.name}]: dropping chunks of stale request #{handle.id}")
                    break
                yield chunk
        finally:
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()
