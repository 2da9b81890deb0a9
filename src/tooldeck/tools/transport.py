"""Byte stream to MCP message stream bridging.

The MCP ClientSession talks over a pair of in-memory message streams. Local
programs get those streams from the SDK's stdio client. Containers only offer
a raw attach connection, so this module provides the two pieces needed to
turn one into the other:

- FrameDemultiplexer splits Docker's multiplexed attach stream into
  independent stdout and stderr byte streams.
- bridge_streams turns a stdout byte stream and a writer into the
  newline-delimited JSON-RPC message streams the session consumes.
"""

import asyncio
import codecs
import logging
import socket
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable

import anyio
import anyio.from_thread
import anyio.lowlevel
import anyio.to_thread
import mcp.types as types
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from docker.utils.socket import STDERR, frames_iter
from mcp.shared.message import SessionMessage
from pydantic import ValidationError

logger = logging.getLogger(__name__)

ReadStream = MemoryObjectReceiveStream[SessionMessage | Exception]
WriteStream = MemoryObjectSendStream[SessionMessage]
Writer = Callable[[bytes], Awaitable[None]]


class _LineSplitter:
    """Incrementally decodes bytes and yields complete lines."""

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    def feed(self, chunk: bytes) -> list[str]:
        lines = (self._buffer + self._decoder.decode(chunk)).split("\n")
        self._buffer = lines.pop()
        return lines

    def flush(self) -> list[str]:
        rest = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""
        return [rest] if rest else []


@asynccontextmanager
async def bridge_streams(
    stdout: MemoryObjectReceiveStream[bytes],
    write: Writer,
    stderr: MemoryObjectReceiveStream[bytes] | None = None,
    label: str = "backend",
    verbose: bool = False,
) -> AsyncIterator[tuple[ReadStream, WriteStream]]:
    """Bridge raw byte streams into MCP session message streams.

    Args:
        stdout: Bytes produced by the backend (one JSON-RPC message per line)
        write: Coroutine function writing bytes to the backend's input
        stderr: Optional diagnostic bytes produced by the backend, logged per line
        label: Name used in log messages
        verbose: Log backend stderr at INFO instead of DEBUG

    Yields:
        tuple: (read_stream, write_stream) suitable for mcp.ClientSession
    """
    read_stream_writer, read_stream = anyio.create_memory_object_stream[
        SessionMessage | Exception
    ](0)
    write_stream, write_stream_reader = anyio.create_memory_object_stream[
        SessionMessage
    ](0)

    async def stdout_reader() -> None:
        splitter = _LineSplitter()
        async with read_stream_writer:
            try:
                async for chunk in stdout:
                    for line in splitter.feed(chunk):
                        await _deliver(line)
                for line in splitter.flush():
                    await _deliver(line)
            except anyio.ClosedResourceError:
                await anyio.lowlevel.checkpoint()
        logger.debug(f"{label} > stdout closed")

    async def _deliver(line: str) -> None:
        if not line.strip():
            return
        try:
            message = types.JSONRPCMessage.model_validate_json(line)
        except ValidationError as exc:
            logger.debug(f"{label} > invalid JSON-RPC line: {line!r}")
            await read_stream_writer.send(exc)
            return
        await read_stream_writer.send(SessionMessage(message))

    async def stdin_writer() -> None:
        async with write_stream_reader:
            try:
                async for session_message in write_stream_reader:
                    payload = session_message.message.model_dump_json(
                        by_alias=True, exclude_none=True
                    )
                    await write((payload + "\n").encode("utf-8"))
            except anyio.ClosedResourceError:
                await anyio.lowlevel.checkpoint()
            except OSError as e:
                logger.error(f"{label} > failed to write to backend: {e}")
                # Ends the session's receive loop so pending requests fail
                await read_stream_writer.aclose()

    async def stderr_logger(errors: MemoryObjectReceiveStream[bytes]) -> None:
        splitter = _LineSplitter()
        async for chunk in errors:
            for line in splitter.feed(chunk):
                logger.log(stderr_level, f"{label} >{{stderr}} {line}")
        for line in splitter.flush():
            logger.log(stderr_level, f"{label} >{{stderr}} {line}")

    stderr_level = logging.INFO if verbose else logging.DEBUG

    async with anyio.create_task_group() as tg:
        tg.start_soon(stdout_reader)
        tg.start_soon(stdin_writer)
        if stderr is not None:
            tg.start_soon(stderr_logger, stderr)
        try:
            yield read_stream, write_stream
        finally:
            tg.cancel_scope.cancel()
            read_stream.close()
            write_stream.close()
            stdout.close()
            if stderr is not None:
                stderr.close()


class FrameDemultiplexer:
    """Splits a Docker attach connection into stdout and stderr byte streams.

    Without a TTY, Docker multiplexes both output streams over the attach
    connection as frames: one byte stream type, three bytes padding, a four
    byte big-endian payload length, then the payload.

    The pump runs in a worker thread for as long as the connection is open.
    It is stopped only by closing the connection; cancelling the awaiting
    task does not interrupt the blocking read.
    """

    def __init__(self, sock: socket.socket, label: str, buffer_size: int = 64) -> None:
        self._sock = sock
        self._label = label
        self._stdout_send, self.stdout = anyio.create_memory_object_stream[bytes](
            buffer_size
        )
        self._stderr_send, self.stderr = anyio.create_memory_object_stream[bytes](
            buffer_size
        )
        self._task: asyncio.Task | None = None

    def start(self) -> None:
        if self._task is not None:
            return
        # Not bound to a task group: the pump outlives any single transport
        # context and is reaped by wait_closed once the connection is closed
        self._task = asyncio.create_task(anyio.to_thread.run_sync(self._pump))

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _pump(self) -> None:
        frames = 0
        try:
            for stream, data in frames_iter(self._sock, tty=False):
                frames += 1
                target = self._stderr_send if stream == STDERR else self._stdout_send
                try:
                    anyio.from_thread.run(target.send, data)
                except (anyio.BrokenResourceError, anyio.ClosedResourceError):
                    # Nobody is listening anymore; keep draining until closed
                    pass
        except (OSError, ValueError) as e:
            # ValueError: the socket was closed while the pump waited on it
            logger.debug(f"{self._label} > attach connection ended: {e}")
        finally:
            anyio.from_thread.run_sync(self._stdout_send.close)
            anyio.from_thread.run_sync(self._stderr_send.close)
            logger.debug(f"{self._label} > demultiplexer finished after {frames} frames")

    async def wait_closed(self) -> None:
        """Wait for the pump to finish after the connection was closed."""
        if self._task is None:
            return
        await self._task
