"""
Server-Sent Events transport for streaming chat completions.

Opens a POST-based event stream and hands decoded events to a single reader.
The open phase is bounded by a connect timeout and raced against the
request's cancellation token; the read phase has no timeout and runs until
the stream ends, the token fires, or the connection breaks.

Wire format (OpenAI-compatible):
    data: {"choices":[{"delta":{"content":"hello"}}]}

    data: [DONE]
"""

import asyncio
import json
from dataclasses import dataclass
from typing import AsyncIterator, List, Optional

import httpx

from flowread.config.logging_config import get_logger
from flowread.llm.cancellation import CancellationToken
from flowread.llm.errors import error_from_payload, normalize_error
from flowread.llm.types import (
    ChatCancelledError,
    ChatErrorKind,
    ChatNetworkError,
    ChatParseError,
)

logger = get_logger(__name__)


@dataclass
class ServerSentEvent:
    """One dispatched server-sent event."""

    data: str
    event: str = "message"
    id: Optional[str] = None


class SSEDecoder:
    """
    Incremental line-to-event decoder.

    Follows the event-stream rules: `data` lines accumulate (joined with a
    newline), a blank line dispatches the event, lines starting with ':' are
    comments, unknown fields are ignored.
    """

    def __init__(self):
        self._data: List[str] = []
        self._event: Optional[str] = None
        self._id: Optional[str] = None

    def decode(self, line: str) -> Optional[ServerSentEvent]:
        line = line.rstrip("\r\n")

        if not line:
            return self.flush()

        if line.startswith(":"):
            return None

        field, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]

        if field == "data":
            self._data.append(value)
        elif field == "event":
            self._event = value
        elif field == "id":
            self._id = value

        return None

    def flush(self) -> Optional[ServerSentEvent]:
        """Dispatch pending data (called on blank line and at end of stream)."""
        if not self._data:
            self._event = None
            return None

        event = ServerSentEvent(
            data="\n".join(self._data),
            event=self._event or "message",
            id=self._id,
        )
        self._data = []
        self._event = None
        return event


# Queue markers
_END = object()
_CANCELLED = object()


@dataclass
class _Failure:
    error: BaseException


class SSEConnection:
    """
    An open event stream bound to one cancellation token.

    A pump task reads lines from the response and puts decoded events on a
    queue of size one; `events()` is the single reader. Transport failures
    after connect travel through the queue as markers so the reader is always
    woken. The underlying response is closed exactly once, by whichever exit
    path gets there first.
    """

    def __init__(self, response: httpx.Response, token: CancellationToken, label: str = ""):
        self.response = response
        self.label = label
        self._token = token
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=1)
        self._decoder = SSEDecoder()
        self._closed = False
        self._close_task: Optional[asyncio.Task] = None
        self._pump_task = asyncio.get_running_loop().create_task(self._pump())
        self._unregister = token.register(self._abort)

    @property
    def closed(self) -> bool:
        return self._closed

    async def events(self) -> AsyncIterator[ServerSentEvent]:
        """
        Yield events until end of stream or cancellation.

        Raises:
            ChatError: Connection broke after it was opened
        """
        try:
            while not self._token.is_cancelled:
                item = await self._queue.get()

                if item is _END or item is _CANCELLED:
                    return

                if isinstance(item, _Failure):
                    error = normalize_error(item.error)
                    if error.kind is ChatErrorKind.UNKNOWN:
                        error = ChatNetworkError(f"SSE stream failed: {item.error}")
                    raise error from item.error

                yield item
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        """Close the connection (idempotent, waits for an in-progress close)."""
        if self._close_task is None:
            self._close_task = asyncio.get_running_loop().create_task(self._close())
        await asyncio.shield(self._close_task)

    async def _pump(self) -> None:
        try:
            async for line in self.response.aiter_lines():
                event = self._decoder.decode(line)
                if event is not None:
                    await self._queue.put(event)

            event = self._decoder.flush()
            if event is not None:
                await self._queue.put(event)
            await self._queue.put(_END)

        except asyncio.CancelledError:
            raise

        except Exception as e:
            logger.warning(f"📡 SSE [{self.label}]: Transport error after connect - {e}")
            await self._queue.put(_Failure(e))

    def _abort(self) -> None:
        """Token callback: stop the pump, wake the reader, schedule the close."""
        if not self._pump_task.done():
            self._pump_task.cancel()

        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(_CANCELLED)

        if self._close_task is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                return  # no loop: the reader closes on exit
            self._close_task = loop.create_task(self._close())

    async def _close(self) -> None:
        self._unregister()

        if not self._pump_task.done():
            self._pump_task.cancel()
        await asyncio.gather(self._pump_task, return_exceptions=True)

        try:
            await self.response.aclose()
        finally:
            self._closed = True
            logger.debug(f"📡 SSE [{self.label}]: Connection closed")


class SSETransport:
    """Opens event-stream connections on a shared httpx client."""

    def __init__(self, client: httpx.AsyncClient, connect_timeout: float = 10.0):
        self.client = client
        self.connect_timeout = connect_timeout

    async def open(
        self,
        url: str,
        headers: dict,
        payload: dict,
        token: CancellationToken,
        label: str = "",
    ) -> SSEConnection:
        """
        Open an event stream and wait for the open state.

        Args:
            url: Endpoint URL
            headers: Request headers
            payload: JSON body
            token: Cancellation token for the request
            label: Name used in log lines

        Returns:
            SSEConnection: Connection in the open state

        Raises:
            ChatCancelledError: Token fired before the connection opened or while
                reading an error body
            ChatNetworkError: No open state within connect_timeout, or connect failure
            ChatError: Non-2xx status or an error body (normalized)
        """
        if token.is_cancelled:
            raise ChatCancelledError("Request aborted before connect")

        request = self.client.build_request("POST", url, headers=headers, json=payload)
        logger.debug(f"📡 SSE [{label}]: Opening POST {url}")

        send_task = asyncio.ensure_future(self.client.send(request, stream=True))
        cancel_task = asyncio.ensure_future(token.wait())
        try:
            done, _ = await asyncio.wait(
                {send_task, cancel_task},
                timeout=self.connect_timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        except BaseException:
            send_task.cancel()
            cancel_task.cancel()
            raise
        cancel_task.cancel()

        if send_task not in done:
            await self._discard(send_task)
            if token.is_cancelled:
                logger.info(f"📡 SSE [{label}]: Aborted while connecting")
                raise ChatCancelledError("Request aborted while connecting")
            logger.error(f"📡 SSE [{label}]: No open event within {self.connect_timeout}s")
            raise ChatNetworkError(f"SSE connection timeout after {self.connect_timeout}s")

        try:
            response = send_task.result()
        except httpx.ConnectTimeout as e:
            logger.error(f"📡 SSE [{label}]: Connect timeout - {e}")
            raise ChatNetworkError(f"SSE connection timeout: {e}") from e
        except Exception as e:
            logger.error(f"📡 SSE [{label}]: Connect failed - {e}")
            error = normalize_error(e)
            if error.kind is ChatErrorKind.UNKNOWN:
                error = ChatNetworkError(f"SSE connection failed: {e}")
            raise error from e

        if token.is_cancelled:
            await response.aclose()
            raise ChatCancelledError("Request aborted while connecting")

        await self._check_response(response, token, label)

        logger.info(f"📡 SSE [{label}]: Connected (status={response.status_code})")
        return SSEConnection(response, token, label=label)

    async def _check_response(
        self, response: httpx.Response, token: CancellationToken, label: str
    ) -> None:
        """Raise a normalized error for non-2xx statuses and JSON error bodies."""
        if response.is_success:
            content_type = response.headers.get("content-type", "")
            if "application/json" not in content_type:
                return

        body = await self._read_body(response, token, label)

        if not response.is_success:
            logger.error(f"📡 SSE [{label}]: HTTP {response.status_code} - {body[:200]}")
            raise normalize_error(f"HTTP {response.status_code}: {body}", status_code=response.status_code)

        # 2xx with a JSON body instead of an event stream
        try:
            data = json.loads(body)
        except json.JSONDecodeError as e:
            raise ChatParseError(f"Invalid JSON body: {body[:100]}") from e

        if isinstance(data, dict) and data.get("error"):
            logger.error(f"📡 SSE [{label}]: Error body - {body[:200]}")
            raise error_from_payload(data["error"])

        raise ChatParseError("Expected an event stream, got a JSON body")

    async def _read_body(
        self, response: httpx.Response, token: CancellationToken, label: str
    ) -> str:
        """Read a non-stream body, raced against the token and bounded by connect_timeout."""
        read_task = asyncio.ensure_future(response.aread())
        cancel_task = asyncio.ensure_future(token.wait())
        try:
            done, _ = await asyncio.wait(
                {read_task, cancel_task},
                timeout=self.connect_timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
            cancel_task.cancel()

            if read_task not in done:
                read_task.cancel()
                await asyncio.gather(read_task, return_exceptions=True)
                if token.is_cancelled:
                    logger.info(f"📡 SSE [{label}]: Aborted while reading response body")
                    raise ChatCancelledError("Request aborted while reading response body")
                logger.error(
                    f"📡 SSE [{label}]: Response body not received within {self.connect_timeout}s"
                )
                raise ChatNetworkError(
                    f"HTTP {response.status_code}: body not received within {self.connect_timeout}s"
                )

            try:
                content = read_task.result()
            except httpx.HTTPError as e:
                raise ChatNetworkError(f"Failed to read response body: {e}") from e
            return content.decode("utf-8", errors="replace")
        except BaseException:
            read_task.cancel()
            cancel_task.cancel()
            raise
        finally:
            await response.aclose()

    @staticmethod
    async def _discard(send_task: asyncio.Future) -> None:
        """Cancel a pending open, closing the response if it arrived anyway."""
        send_task.cancel()
        results = await asyncio.gather(send_task, return_exceptions=True)
        response = results[0]
        if isinstance(response, httpx.Response):
            await response.aclose()
