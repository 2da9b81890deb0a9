"""Routes generic resource reads to the backend owning the URI."""

import logging

import ollama

from tooldeck.messages import ToolCall, ToolMessage, tool_result
from tooldeck.tools.definition import ResourceHandler, ToolDefinition

logger = logging.getLogger(__name__)

GATEWAY_TOOL_NAME = "read_resource"
GATEWAY_DESCRIPTION = (
    "read_resource is a gateway to other tools resources identified by a URI.  "
    "Pass the full URI as the `uri` parameter"
)
GATEWAY_INSTRUCTION = "Use the tool read_resource to access resources identified by a URI."


class ResourceGateway:
    """Exposes a single read_resource operation over every resource handler.

    Handlers are consulted in registration order, and within a handler its
    templates in the order they were advertised; the first match wins.
    """

    name = GATEWAY_TOOL_NAME

    def __init__(self) -> None:
        self._handlers: list[ResourceHandler] = []

    def __len__(self) -> int:
        return len(self._handlers)

    def describe(self) -> str:
        return f"resource gateway ({len(self._handlers)} services)"

    def register(self, handler: ResourceHandler) -> None:
        self._handlers.append(handler)

    async def discover(self) -> ToolDefinition:
        definition = ToolDefinition(
            tools=[
                ollama.Tool(
                    type="function",
                    function=ollama.Tool.Function(
                        name=GATEWAY_TOOL_NAME,
                        description=GATEWAY_DESCRIPTION,
                        parameters=ollama.Tool.Function.Parameters(
                            type="object",
                            required=["uri"],
                            properties={
                                "uri": ollama.Tool.Function.Parameters.Property(
                                    type="string",
                                    description="URI of the resource to read",
                                )
                            },
                        ),
                    ),
                )
            ]
        )
        definition.add_instruction(GATEWAY_INSTRUCTION)
        for handler in self._handlers:
            definition.instructions.extend(handler.resource_instructions())
        logger.info(
            f"gateway > defined API with {len(self._handlers)} services and "
            f"{len(definition.instructions)} instructions"
        )
        return definition

    def route(self, uri: str) -> ResourceHandler | None:
        for handler in self._handlers:
            for template in handler.templates():
                if template.matches(uri):
                    return handler
        return None

    async def invoke(self, call: ToolCall) -> list[ToolMessage]:
        if "uri" not in call.arguments:
            return [tool_result(call, "required parameter uri is missing")]
        uri = call.arguments["uri"]
        if not isinstance(uri, str):
            return [tool_result(call, "required parameter uri can not be cast to a string")]

        handler = self.route(uri)
        if handler is None:
            logger.info(f"gateway > no resource service found for {uri}")
            return [tool_result(call, f"no resource service found for uri {uri}")]
        return await handler.read_resource(call, uri)
