"""Tool registry: namespaces, discovers and dispatches across all backends.

The ToolSet is the switchboard between the conversation driver and every
backend. It is built once, treated as read-only afterwards and shut down
once when its owner exits.
"""

import logging
from typing import Iterable

import ollama

from tooldeck.errors import OperationalError, join_errors
from tooldeck.messages import SystemMessage, ToolCall, ToolMessage, tool_error
from tooldeck.tools.backends import BackendSpec
from tooldeck.tools.component import ComponentContainer
from tooldeck.tools.definition import Capability
from tooldeck.tools.gateway import ResourceGateway
from tooldeck.tools.tool import Tool

logger = logging.getLogger(__name__)


class ToolSet:
    """Maps namespaced operation names onto the capability that serves them.

    Attributes:
        components: Every started backend, shut down together
        gateway: Routes resource reads to resource-serving tools
        discovery_errors: Backends that failed discovery during build
    """

    def __init__(self, name: str = "toolset") -> None:
        self.components = ComponentContainer(name)
        self.gateway = ResourceGateway()
        self.discovery_errors: list[Exception] = []
        self._by_name: dict[str, Capability] = {}
        self._definitions: dict[str, ollama.Tool] = {}
        self._instructions: list[SystemMessage] = []

    @classmethod
    async def build(
        cls,
        specs: Iterable[BackendSpec],
        discovery_timeout: float = 15.0,
        invocation_timeout: float = 15.0,
        strict: bool = False,
    ) -> "ToolSet":
        """Construct, register and discover a Tool for every backend spec.

        Every backend gets its chance even when an earlier one fails. Failures
        are kept on discovery_errors; with strict set they are raised together
        once all started backends were shut down.

        Raises:
            ExceptionGroup: With strict, every discovery failure
        """
        toolset = cls()
        for spec in specs:
            tool = Tool(
                spec,
                discovery_timeout=discovery_timeout,
                invocation_timeout=invocation_timeout,
            )
            toolset.components.register(tool)
            try:
                await toolset.register(tool)
            except Exception as e:
                logger.error(f"Failed to discover backend {spec.name}: {e}")
                toolset.discovery_errors.append(
                    OperationalError(f"failed to discover backend {spec.name!r}", e)
                )

        if len(toolset.gateway):
            await toolset.register(toolset.gateway)

        if strict and toolset.discovery_errors:
            try:
                await toolset.shutdown()
            except ExceptionGroup as e:
                logger.error(f"Shutdown after failed discovery: {e}")
            raise join_errors("backend discovery", toolset.discovery_errors)

        logger.info(
            f"ToolSet ready: {len(toolset._definitions)} tools from "
            f"{len(toolset.components)} backends, "
            f"{len(toolset.discovery_errors)} failed"
        )
        return toolset

    async def register(self, capability: Capability) -> None:
        """Discover a capability and merge what it offers.

        A name already registered is replaced by the newer capability.
        """
        definition = await capability.discover()
        for tool in definition.tools:
            name = tool.function.name
            if name in self._by_name:
                logger.warning(f"Tool {name} redefined by {capability.describe()}")
            self._by_name[name] = capability
            self._definitions[name] = tool
        self._instructions.extend(definition.instructions)
        if definition.resource_handler is not None:
            self.gateway.register(definition.resource_handler)

    def definitions(self) -> list[ollama.Tool]:
        return list(self._definitions.values())

    def instructions(self) -> list[SystemMessage]:
        return list(self._instructions)

    def owner(self, name: str) -> Capability | None:
        return self._by_name.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._by_name

    async def dispatch(self, call: ToolCall) -> list[ToolMessage]:
        """Route a tool call to the capability owning its name.

        Unknown names produce an error tool message so the model can recover.

        Raises:
            OperationalError: If the owning capability failed to invoke
        """
        capability = self._by_name.get(call.name)
        if capability is None:
            logger.warning(f"Model requested unknown tool {call.name!r}")
            return [tool_error(call, f'tool not found {{name: "{call.name}"}}')]
        try:
            return await capability.invoke(call)
        except Exception as e:
            raise OperationalError(
                f'tool invocation "{call.name}" (id: {call.id})', e
            ) from e

    async def shutdown(self) -> None:
        await self.components.shutdown()
