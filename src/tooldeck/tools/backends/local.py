"""MCP servers launched as local subprocesses over stdio."""

import logging
import os
from contextlib import AbstractAsyncContextManager

from mcp import StdioServerParameters
from mcp.client.stdio import stdio_client

from tooldeck.config import LocalProgramConfig
from tooldeck.tools.backends.base import BackendSpec, MessageStreams, RunningBackend

logger = logging.getLogger(__name__)


class LocalProgramSpec(BackendSpec):
    """A program spawned with its standard streams wired to the MCP client."""

    def __init__(
        self,
        name: str,
        program: str,
        args: list[str] | None = None,
        env: dict[str, str] | None = None,
    ) -> None:
        self.name = name
        self.program = program
        self.args = tuple(args or ())
        self.env = dict(env or {})

    @classmethod
    def from_config(cls, config: LocalProgramConfig) -> "LocalProgramSpec":
        return cls(
            name=config.name,
            program=config.program,
            args=config.args,
            env=config.env,
        )

    def parameters(self) -> StdioServerParameters:
        # The program inherits the orchestrator's environment
        return StdioServerParameters(
            command=self.program,
            args=list(self.args),
            env={**os.environ, **self.env},
        )

    async def start(self) -> "LocalRunningProgram":
        logger.info(f"mcp-{self.name} > starting {self.program} {' '.join(self.args)}")
        return LocalRunningProgram(self.parameters())


class LocalRunningProgram(RunningBackend):
    """The process lifecycle is owned by the SDK's stdio transport."""

    def __init__(self, parameters: StdioServerParameters) -> None:
        self.parameters = parameters

    def transport(self) -> AbstractAsyncContextManager[MessageStreams]:
        return stdio_client(self.parameters)

    async def stop(self) -> None:
        return None
