"""
Cancellation token shared between a request's owner and its transport.

A token is a write-once flag plus a registry of close callbacks. Tripping it
runs every registered callback exactly once; callbacks registered after the
trip run immediately. Callbacks are plain (synchronous) callables so they can
be invoked from any point on the event loop thread.
"""

import asyncio
from typing import Callable, Dict, Optional

from flowread.config.logging_config import get_logger

logger = get_logger(__name__)


class CancellationToken:
    """Write-once cancellation flag with close callbacks."""

    def __init__(self, label: str = ""):
        self.label = label
        self.reason: Optional[str] = None
        self._cancelled = False
        self._event: Optional[asyncio.Event] = None
        self._callbacks: Dict[int, Callable[[], None]] = {}
        self._next_key = 0

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def cancel(self, reason: str = "cancelled") -> bool:
        """
        Trip the token.

        Args:
            reason: Why the request was aborted (for logging)

        Returns:
            bool: True if this call tripped the token, False if it was already tripped
        """
        if self._cancelled:
            return False

        self._cancelled = True
        self.reason = reason
        if self._event is not None:
            self._event.set()

        callbacks = list(self._callbacks.values())
        self._callbacks.clear()

        logger.debug(f"🛑 Token [{self.label}]: cancelled ({reason}), running {len(callbacks)} callbacks")

        for callback in callbacks:
            self._run(callback)
        return True

    def register(self, callback: Callable[[], None]) -> Callable[[], None]:
        """
        Register a close callback.

        Returns:
            Callable that unregisters the callback (no-op once it has run)
        """
        if self._cancelled:
            self._run(callback)
            return lambda: None

        key = self._next_key
        self._next_key += 1
        self._callbacks[key] = callback

        def unregister() -> None:
            self._callbacks.pop(key, None)

        return unregister

    async def wait(self) -> None:
        """Suspend until the token is tripped."""
        if self._cancelled:
            return
        if self._event is None:
            self._event = asyncio.Event()
        await self._event.wait()

    def _run(self, callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception as e:
            logger.error(f"🛑 Token [{self.label}]: close callback failed - {e}", exc_info=True)

    def __repr__(self) -> str:
        state = f"cancelled({self.reason})" if self._cancelled else "active"
        return f"<CancellationToken {self.label or id(self)} {state}>"
