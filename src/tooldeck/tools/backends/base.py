"""Backend abstraction for MCP servers.

A backend is described by a BackendSpec ("how to start") and, once started,
represented by a RunningBackend ("the running handle"). Each backend kind
implements both; the Tool, ToolSet and conversation driver only ever see
these two interfaces.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager

from tooldeck.tools.transport import ReadStream, WriteStream

MessageStreams = tuple[ReadStream, WriteStream]


class RunningBackend(ABC):
    """A started backend."""

    @abstractmethod
    def transport(self) -> AbstractAsyncContextManager[MessageStreams]:
        """Open the message streams an MCP ClientSession talks over."""
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Release everything the backend holds.

        Every release step is attempted; failures are raised together
        afterwards. Calling stop again is safe.
        """
        ...


class BackendSpec(ABC):
    """Immutable description of how to start a backend."""

    name: str

    @abstractmethod
    async def start(self) -> RunningBackend:
        """Start the backend.

        Anything allocated before a failure is released before the error
        propagates.
        """
        ...
