"""Tool orchestration: MCP backends, their discovery and call dispatch.

The ToolSet is the entry point; it builds a Tool per configured backend and
routes the model's tool calls to them.
"""

from tooldeck.tools.component import Component, ComponentContainer
from tooldeck.tools.definition import Capability, ResourceHandler, ToolDefinition
from tooldeck.tools.gateway import ResourceGateway
from tooldeck.tools.tool import Tool
from tooldeck.tools.toolset import ToolSet

__all__ = [
    "Capability",
    "Component",
    "ComponentContainer",
    "ResourceGateway",
    "ResourceHandler",
    "Tool",
    "ToolDefinition",
    "ToolSet",
]
