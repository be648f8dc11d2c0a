"""
Unit tests for the Server-Sent Events transport.

Tests event decoding, connection open/failure paths and connection teardown
against a scripted httpx.MockTransport endpoint.
"""

import asyncio

import httpx
import pytest

from flowread.llm.cancellation import CancellationToken
from flowread.llm.transport import SSEDecoder, SSETransport
from flowread.llm.types import (
    ChatCancelledError,
    ChatNetworkError,
    ChatParseError,
    ChatRateLimitError,
    ChatUnauthorizedError,
)
from tests.mocks.mock_llm_server import DONE_FRAME, content_frame

URL = "https://llm.test/v1/chat/completions"
PAYLOAD = {"model": "deepseek-chat", "messages": [], "stream": True}


def decode_all(lines):
    decoder = SSEDecoder()
    events = [decoder.decode(line) for line in lines]
    events.append(decoder.flush())
    return [e for e in events if e is not None]


# ============================================================
# Event Decoding Tests
# ============================================================


@pytest.mark.unit
def test_decoder_dispatches_on_blank_line():
    """Test an event is emitted only when the blank line arrives"""
    decoder = SSEDecoder()

    assert decoder.decode('data: {"a":1}') is None
    event = decoder.decode("")

    assert event.data == '{"a":1}'
    assert event.event == "message"


@pytest.mark.unit
def test_decoder_joins_multiline_data():
    """Test consecutive data lines are joined with newlines"""
    events = decode_all(["data: first", "data: second", ""])

    assert len(events) == 1
    assert events[0].data == "first\nsecond"


@pytest.mark.unit
def test_decoder_ignores_comments_and_unknown_fields():
    """Test keep-alive comments and unknown fields are skipped"""
    events = decode_all([": keep-alive", "retry: 1000", "data: x", ""])

    assert [e.data for e in events] == ["x"]


@pytest.mark.unit
def test_decoder_reads_event_and_id():
    """Test event type and id fields are attached to the event"""
    events = decode_all(["event: delta", "id: 7", "data:nospace", ""])

    assert events[0].event == "delta"
    assert events[0].id == "7"
    assert events[0].data == "nospace"


@pytest.mark.unit
def test_decoder_flushes_pending_data_at_end():
    """Test a final event without trailing blank line is not lost"""
    events = decode_all(["data: [DONE]"])

    assert [e.data for e in events] == ["[DONE]"]


# ============================================================
# Connection Open Tests
# ============================================================


@pytest.mark.unit
@pytest.mark.asyncio
async def test_open_and_read_events(llm_server, http_client):
    """Test a successful open yields decoded events in order"""
    # ARRANGE
    stream = llm_server.stream_reply([content_frame("Hi"), DONE_FRAME])
    transport = SSETransport(http_client, connect_timeout=2.0)

    # ACT
    connection = await transport.open(URL, {}, PAYLOAD, CancellationToken())
    events = [event async for event in connection.events()]

    # ASSERT
    assert len(events) == 2
    assert events[1].data == "[DONE]"
    assert connection.closed is True
    assert stream.closed is True


@pytest.mark.unit
@pytest.mark.asyncio
async def test_open_connect_failure(llm_server, http_client):
    """Test a refused connection surfaces as a network error"""
    llm_server.reply(httpx.ConnectError("Connection refused"))
    transport = SSETransport(http_client)

    with pytest.raises(ChatNetworkError) as exc_info:
        await transport.open(URL, {}, PAYLOAD, CancellationToken())

    assert "Connection refused" in exc_info.value.message


@pytest.mark.unit
@pytest.mark.asyncio
async def test_open_connect_timeout(llm_server, http_client):
    """Test no open state within the connect timeout is a network error"""
    # ARRANGE
    async def never_opens(request):
        await asyncio.sleep(10)

    llm_server.reply(never_opens)
    transport = SSETransport(http_client, connect_timeout=0.05)

    # ACT & ASSERT
    with pytest.raises(ChatNetworkError) as exc_info:
        await transport.open(URL, {}, PAYLOAD, CancellationToken())

    assert "timeout" in exc_info.value.message.lower()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_open_http_401(llm_server, http_client):
    """Test a 401 reply maps to an unauthorized error with the body text"""
    llm_server.error_reply(401, "Invalid API key")
    transport = SSETransport(http_client)

    with pytest.raises(ChatUnauthorizedError) as exc_info:
        await transport.open(URL, {}, PAYLOAD, CancellationToken())

    assert exc_info.value.status_code == 401
    assert "Invalid API key" in exc_info.value.message


@pytest.mark.unit
@pytest.mark.asyncio
async def test_open_json_error_body_with_success_status(llm_server, http_client):
    """Test a 200 JSON error body is raised instead of streamed"""
    llm_server.json_reply({"error": {"message": "Rate limit exceeded", "code": 429}})
    transport = SSETransport(http_client)

    with pytest.raises(ChatRateLimitError):
        await transport.open(URL, {}, PAYLOAD, CancellationToken())


@pytest.mark.unit
@pytest.mark.asyncio
async def test_open_json_body_without_error(llm_server, http_client):
    """Test a 200 JSON body that is not an event stream is a parse error"""
    llm_server.json_reply({"choices": []})
    transport = SSETransport(http_client)

    with pytest.raises(ChatParseError):
        await transport.open(URL, {}, PAYLOAD, CancellationToken())


# ============================================================
# Cancellation Tests
# ============================================================


@pytest.mark.unit
@pytest.mark.asyncio
async def test_open_with_cancelled_token_sends_nothing(llm_server, http_client):
    """Test a tripped token aborts before any request is made"""
    token = CancellationToken()
    token.cancel()
    transport = SSETransport(http_client)

    with pytest.raises(ChatCancelledError):
        await transport.open(URL, {}, PAYLOAD, token)

    assert llm_server.requests == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cancel_while_connecting(llm_server, http_client):
    """Test tripping the token during connect aborts the open"""
    # ARRANGE
    async def slow_open(request):
        await asyncio.sleep(10)

    llm_server.reply(slow_open)
    token = CancellationToken()
    transport = SSETransport(http_client, connect_timeout=5.0)

    # ACT
    asyncio.get_running_loop().call_later(0.05, token.cancel, "user")

    # ASSERT
    with pytest.raises(ChatCancelledError):
        await transport.open(URL, {}, PAYLOAD, token)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cancel_while_reading_error_body(llm_server, http_client):
    """Test tripping the token aborts a stalled error body and closes it"""
    # ARRANGE
    body = llm_server.stalled_error_reply(503)
    token = CancellationToken()
    transport = SSETransport(http_client, connect_timeout=5.0)

    # ACT
    asyncio.get_running_loop().call_later(0.05, token.cancel, "user")

    # ASSERT
    with pytest.raises(ChatCancelledError):
        await asyncio.wait_for(transport.open(URL, {}, PAYLOAD, token), timeout=2.0)
    assert body.closed is True


@pytest.mark.unit
@pytest.mark.asyncio
async def test_stalled_error_body_times_out(llm_server, http_client):
    """Test an error body that never completes is bounded by the connect timeout"""
    # ARRANGE
    body = llm_server.stalled_error_reply(503)
    transport = SSETransport(http_client, connect_timeout=0.1)

    # ACT & ASSERT
    with pytest.raises(ChatNetworkError):
        await asyncio.wait_for(transport.open(URL, {}, PAYLOAD, CancellationToken()), timeout=2.0)
    assert body.closed is True


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cancel_closes_open_connection(llm_server, http_client):
    """Test tripping the token ends the reader and closes the response"""
    # ARRANGE
    stream = llm_server.stream_reply([content_frame("Hi")], hold_open=True)
    token = CancellationToken()
    connection = await SSETransport(http_client).open(URL, {}, PAYLOAD, token)
    events = connection.events()

    first = await events.__anext__()
    assert "Hi" in first.data

    # ACT
    token.cancel("user")

    # ASSERT
    with pytest.raises(StopAsyncIteration):
        await events.__anext__()
    assert connection.closed is True
    assert stream.closed is True


@pytest.mark.unit
@pytest.mark.asyncio
async def test_transport_error_after_connect(llm_server, http_client):
    """Test a broken connection mid-stream surfaces as a network error"""
    # ARRANGE
    stream = llm_server.stream_reply([content_frame("Hi")], hold_open=True)
    stream.fail(httpx.ReadError("connection reset by peer"))
    connection = await SSETransport(http_client).open(URL, {}, PAYLOAD, CancellationToken())

    # ACT & ASSERT
    received = []
    with pytest.raises(ChatNetworkError):
        async for event in connection.events():
            received.append(event)

    assert len(received) == 1
    assert connection.closed is True


@pytest.mark.unit
@pytest.mark.asyncio
async def test_aclose_is_idempotent(llm_server, http_client):
    """Test closing twice is harmless"""
    stream = llm_server.stream_reply([content_frame("Hi")], hold_open=True)
    connection = await SSETransport(http_client).open(URL, {}, PAYLOAD, CancellationToken())

    await connection.aclose()
    await connection.aclose()

    assert connection.closed is True
    assert stream.closed is True
