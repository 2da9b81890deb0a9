"""Shared shapes exchanged between capability sources and the ToolSet."""

from dataclasses import dataclass, field
from typing import Protocol, Sequence

import ollama

from tooldeck.messages import SystemMessage, ToolCall, ToolMessage
from tooldeck.tools.templates import UriTemplate


class ResourceHandler(Protocol):
    """A capability source that serves readable resources by URI."""

    def templates(self) -> Sequence[UriTemplate]: ...

    def resource_instructions(self) -> list[SystemMessage]: ...

    async def read_resource(self, call: ToolCall, uri: str) -> list[ToolMessage]: ...


@dataclass
class ToolDefinition:
    """The result of one discovery pass over a capability source.

    Attributes:
        tools: Callable definitions offered to the model
        instructions: System messages describing how to use them
        resource_handler: Set when the source also serves resources
    """

    tools: list[ollama.Tool] = field(default_factory=list)
    instructions: list[SystemMessage] = field(default_factory=list)
    resource_handler: ResourceHandler | None = None

    def add_instruction(self, content: str) -> None:
        self.instructions.append(SystemMessage(content=content))


class Capability(Protocol):
    """Anything the ToolSet can discover and dispatch calls to."""

    name: str

    def describe(self) -> str: ...

    async def discover(self) -> ToolDefinition: ...

    async def invoke(self, call: ToolCall) -> list[ToolMessage]: ...
