"""Unit tests for the byte stream bridge and the Docker frame demultiplexer."""

import socket
import struct

import anyio
import mcp.types as types
import pytest
from mcp.shared.message import SessionMessage
from pydantic import ValidationError

from tooldeck.tools.transport import FrameDemultiplexer, bridge_streams


def frame(stream: int, payload: bytes) -> bytes:
    return struct.pack(">BxxxL", stream, len(payload)) + payload


def request_line(request_id: int, method: str) -> bytes:
    return (
        f'{{"jsonrpc": "2.0", "id": {request_id}, "method": "{method}"}}\n'.encode()
    )


@pytest.mark.asyncio
async def test_bridge_delivers_split_lines_as_messages():
    """Test that JSON-RPC lines split across chunks arrive as whole messages."""
    stdout_send, stdout = anyio.create_memory_object_stream[bytes](10)
    written = []

    async def write(data):
        written.append(data)

    async with bridge_streams(stdout, write, label="test") as (read_stream, _):
        line = request_line(1, "ping")
        await stdout_send.send(line[:10])
        await stdout_send.send(line[10:] + request_line(2, "tools/list"))

        first = await read_stream.receive()
        second = await read_stream.receive()

    assert isinstance(first, SessionMessage)
    assert first.message.root.method == "ping"
    assert second.message.root.id == 2


@pytest.mark.asyncio
async def test_bridge_reports_invalid_lines_as_exceptions():
    stdout_send, stdout = anyio.create_memory_object_stream[bytes](10)

    async def write(data):
        pass

    async with bridge_streams(stdout, write) as (read_stream, _):
        await stdout_send.send(b"not json\n")
        received = await read_stream.receive()

    assert isinstance(received, ValidationError)


@pytest.mark.asyncio
async def test_bridge_writes_newline_delimited_json():
    """Test that outgoing messages are written as one JSON line each."""
    _, stdout = anyio.create_memory_object_stream[bytes](10)
    written = anyio.Event()
    payloads = []

    async def write(data):
        payloads.append(data)
        written.set()

    message = types.JSONRPCMessage(
        types.JSONRPCRequest(jsonrpc="2.0", id=3, method="ping")
    )
    async with bridge_streams(stdout, write) as (_, write_stream):
        await write_stream.send(SessionMessage(message))
        with anyio.fail_after(5):
            await written.wait()

    assert payloads[0].endswith(b"\n")
    assert b'"method":"ping"' in payloads[0]
    assert b'"id":3' in payloads[0]


@pytest.mark.asyncio
async def test_bridge_ends_read_stream_when_stdout_closes():
    stdout_send, stdout = anyio.create_memory_object_stream[bytes](10)

    async def write(data):
        pass

    async with bridge_streams(stdout, write) as (read_stream, _):
        await stdout_send.aclose()
        with pytest.raises(anyio.EndOfStream):
            with anyio.fail_after(5):
                await read_stream.receive()


@pytest.mark.asyncio
async def test_demultiplexer_splits_stdout_and_stderr():
    """Test that multiplexed frames are routed to their own streams."""
    ours, theirs = socket.socketpair()
    demux = FrameDemultiplexer(ours, "test")
    demux.start()

    theirs.sendall(frame(1, b"out-1") + frame(2, b"err-1") + frame(1, b"out-2"))
    theirs.close()

    with anyio.fail_after(5):
        stdout = [chunk async for chunk in demux.stdout]
        stderr = [chunk async for chunk in demux.stderr]
        await demux.wait_closed()

    assert stdout == [b"out-1", b"out-2"]
    assert stderr == [b"err-1"]
    assert not demux.running
    ours.close()


@pytest.mark.asyncio
async def test_demultiplexer_stops_when_connection_is_closed():
    """Test that closing the connection is enough to end the pump."""
    ours, theirs = socket.socketpair()
    demux = FrameDemultiplexer(ours, "test")
    demux.start()
    assert demux.running

    ours.shutdown(socket.SHUT_RDWR)
    ours.close()

    with anyio.fail_after(5):
        await demux.wait_closed()
    assert not demux.running
    theirs.close()
