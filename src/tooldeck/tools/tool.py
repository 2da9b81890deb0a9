"""MCP client wrapper for a single backend.

A Tool owns one backend: it starts it on first use, binds an MCP
ClientSession to its transport, translates the backend's capabilities into
Ollama tool definitions and routes calls to it.

Operation names are namespaced as "<tool name>.<operation>" so that two
backends exposing the same operation never collide.
"""

import asyncio
import logging
from contextlib import AsyncExitStack
from datetime import timedelta
from typing import Any, Sequence

import anyio
import mcp.types as types
import ollama
from mcp import ClientSession
from mcp.shared.exceptions import McpError
from pydantic import AnyUrl, ValidationError

from tooldeck.errors import InvalidToolNameError, OperationalError, join_errors
from tooldeck.messages import SystemMessage, ToolCall, ToolMessage, tool_error, tool_result
from tooldeck.tools.backends.base import BackendSpec, RunningBackend
from tooldeck.tools.definition import ToolDefinition
from tooldeck.tools.templates import UriTemplate, UriTemplateError

logger = logging.getLogger(__name__)

NAMESPACE_SEPARATOR = "."

# Failures meaning the backend cannot be reached at all
TRANSPORT_ERRORS = (
    anyio.ClosedResourceError,
    anyio.BrokenResourceError,
    anyio.EndOfStream,
    OSError,
)


def operation_name(namespaced: str) -> str:
    """Strip the namespace prefix up to the first separator.

    Raises:
        InvalidToolNameError: If no operation name remains
    """
    _, separator, operation = namespaced.partition(NAMESPACE_SEPARATOR)
    if not separator:
        operation = namespaced
    if not operation:
        raise InvalidToolNameError(namespaced)
    return operation


def to_ollama_tool(name: str, tool: types.Tool) -> ollama.Tool:
    """Re-encode an MCP tool description as an Ollama tool definition.

    The input schema is carried over structurally; fields Ollama does not
    model are dropped.

    Raises:
        ValidationError: If the schema does not fit Ollama's parameter model
    """
    return ollama.Tool(
        type="function",
        function=ollama.Tool.Function(
            name=name,
            description=tool.description or "",
            parameters=ollama.Tool.Function.Parameters.model_validate(tool.inputSchema),
        ),
    )


def resource_content(content: Any) -> str | None:
    """Render one resource content block, or None when its kind is unknown."""
    if isinstance(content, types.TextResourceContents):
        body = content.text
    elif isinstance(content, types.BlobResourceContents):
        # Base64 as delivered by the backend
        body = content.blob
    else:
        return None
    return f"URI: {content.uri}\nContent-type: {content.mimeType or ''}\n\n{body}"


class Tool:
    """A named capability source backed by one MCP server.

    The backend is started lazily on first discovery or invocation and
    stopped once, on shutdown. Entering and leaving the session must happen
    in the same task, so the first use and shutdown belong to the owner of
    the ToolSet (the application lifespan or the CLI).
    """

    def __init__(
        self,
        spec: BackendSpec,
        discovery_timeout: float = 15.0,
        invocation_timeout: float = 15.0,
        close_timeout: float = 15.0,
    ) -> None:
        self.name = spec.name
        self.spec = spec
        self.discovery_timeout = discovery_timeout
        self.invocation_timeout = invocation_timeout
        self.close_timeout = close_timeout

        self._lock = asyncio.Lock()
        self._running: RunningBackend | None = None
        self._stack: AsyncExitStack | None = None
        self._session: ClientSession | None = None
        self._initialized: types.InitializeResult | None = None
        self._templates: list[UriTemplate] = []
        self._resource_instructions: list[SystemMessage] = []

    @property
    def label(self) -> str:
        return f"mcp-{self.name}"

    @property
    def running(self) -> bool:
        return self._session is not None

    def describe(self) -> str:
        return f"mcp tool {self.name}"

    def namespaced(self, operation: str) -> str:
        return f"{self.name}{NAMESPACE_SEPARATOR}{operation}"

    async def ensure_running(self) -> ClientSession:
        """Start the backend and bind an initialized session exactly once.

        Raises:
            OperationalError: If the backend or the session cannot be started
        """
        async with self._lock:
            if self._session is not None:
                return self._session

            try:
                running = await self.spec.start()
            except OperationalError:
                raise
            except Exception as e:
                raise OperationalError(f"failed to start backend {self.name}", e) from e

            stack = AsyncExitStack()
            try:
                read_stream, write_stream = await stack.enter_async_context(
                    running.transport()
                )
                session = await stack.enter_async_context(
                    ClientSession(read_stream, write_stream)
                )
                with anyio.fail_after(self.discovery_timeout):
                    initialized = await session.initialize()
            except BaseException as e:
                with anyio.CancelScope(shield=True):
                    try:
                        await self._release(stack, running)
                    except Exception as cleanup:
                        logger.warning(f"{self.label} > cleanup after failed start: {cleanup}")
                if isinstance(e, Exception):
                    raise OperationalError("failed to start MCP client", e) from e
                raise

            server = initialized.serverInfo
            logger.info(f"{self.label} > connected to {server.name} {server.version}")
            self._running = running
            self._stack = stack
            self._session = session
            self._initialized = initialized
            return session

    async def discover(self) -> ToolDefinition:
        """Enumerate the backend's instructions, resources and operations.

        Raises:
            OperationalError: If the handshake or any listing fails
        """
        session = await self.ensure_running()
        initialized = self._initialized
        definition = ToolDefinition()

        if initialized.instructions:
            definition.add_instruction(initialized.instructions)

        try:
            with anyio.fail_after(self.discovery_timeout):
                if initialized.capabilities.resources is not None:
                    await self._discover_resources(session)
                listed = await session.list_tools()
        except OperationalError:
            raise
        except (McpError, TimeoutError, *TRANSPORT_ERRORS) as e:
            raise OperationalError(f"{self.label}: discovery", e) from e

        if self._templates:
            definition.resource_handler = self

        for tool in listed.tools:
            logger.info(f"{self.label} > discovered tool {tool.name}")
            try:
                definition.tools.append(to_ollama_tool(self.namespaced(tool.name), tool))
            except ValidationError as e:
                raise OperationalError(f"translating tool {tool.name}", e) from e
        return definition

    async def _discover_resources(self, session: ClientSession) -> None:
        self._templates = []
        self._resource_instructions = []

        resources = await session.list_resources()
        for resource in resources.resources:
            uri = str(resource.uri)
            self._resource_instructions.append(
                SystemMessage(
                    content=f"# {resource.name}\nUse URI {uri} to access this resources\n"
                    f"{resource.description or ''}"
                )
            )
            self._templates.append(self._parse_template(uri))

        templates = await session.list_resource_templates()
        for template in templates.resourceTemplates:
            self._resource_instructions.append(
                SystemMessage(
                    content=f"# {template.name}\nURI template: {template.uriTemplate}\n"
                    f"{template.description or ''}\n"
                )
            )
            self._templates.append(self._parse_template(template.uriTemplate))
        logger.debug(f"{self.label} > {len(self._templates)} resource templates")

    @staticmethod
    def _parse_template(template: str) -> UriTemplate:
        try:
            return UriTemplate(template)
        except UriTemplateError as e:
            raise OperationalError("parsing resource URI", e) from e

    async def invoke(self, call: ToolCall) -> list[ToolMessage]:
        """Call the backend operation named by a namespaced tool call.

        Failures the backend reports (error responses, error results,
        timeouts) are returned as tool messages carrying an error payload.

        Raises:
            InvalidToolNameError: If the call names no operation
            OperationalError: If the backend cannot be reached
        """
        operation = operation_name(call.name)
        session = await self.ensure_running()
        logger.debug(f"{self.label} > invoking {operation} with {call.arguments}")

        try:
            result = await session.call_tool(
                operation,
                call.arguments,
                read_timeout_seconds=timedelta(seconds=self.invocation_timeout),
            )
        except McpError as e:
            logger.warning(f"{self.label} > {operation} failed: {e}")
            return [tool_error(call, str(e))]
        except TRANSPORT_ERRORS as e:
            raise OperationalError(f"{self.label}: call {operation}", e) from e

        texts = []
        for content in result.content:
            if isinstance(content, types.TextContent):
                texts.append(content.text)
            else:
                logger.warning(f"{self.label} > dropping {content.type} content from {operation}")

        if result.isError:
            return [tool_error(call, "\n".join(texts) or f"{operation} failed")]
        if not texts:
            return [tool_result(call, "")]
        return [tool_result(call, text) for text in texts]

    def templates(self) -> Sequence[UriTemplate]:
        return self._templates

    def resource_instructions(self) -> list[SystemMessage]:
        return list(self._resource_instructions)

    async def read_resource(self, call: ToolCall, uri: str) -> list[ToolMessage]:
        """Read a resource, producing one tool message per content block.

        Raises:
            OperationalError: If the backend cannot be reached
        """
        session = await self.ensure_running()
        try:
            with anyio.fail_after(self.invocation_timeout):
                result = await session.read_resource(AnyUrl(uri))
        except (McpError, TimeoutError, ValidationError) as e:
            logger.warning(f"{self.label} > reading {uri} failed: {e}")
            return [tool_error(call, str(e) or f"reading {uri} timed out")]
        except TRANSPORT_ERRORS as e:
            raise OperationalError(f"{self.label}: read resource {uri}", e) from e

        messages = []
        for content in result.contents:
            rendered = resource_content(content)
            if rendered is None:
                logger.warning(f"{self.label} > dropping unrecognized content for {uri}")
                continue
            messages.append(tool_result(call, rendered))
        return messages

    async def shutdown(self) -> None:
        """Close the session and stop the backend.

        Once the state has been taken over, release runs to completion even
        if the caller is cancelled. Closing the session is bounded by
        close_timeout and the backend is stopped regardless of how that ends.

        Raises:
            ExceptionGroup: Every release step that failed
        """
        async with self._lock:
            stack, running = self._stack, self._running
            self._stack = None
            self._running = None
            self._session = None
            self._initialized = None
        await self._release(stack, running)

    async def _release(
        self, stack: AsyncExitStack | None, running: RunningBackend | None
    ) -> None:
        problems: list[Exception] = []
        with anyio.CancelScope(shield=True):
            if stack is not None:
                with anyio.move_on_after(self.close_timeout) as closing:
                    try:
                        await stack.aclose()
                    except Exception as e:
                        problems.append(OperationalError("failed to close MCP client", e))
                if closing.cancelled_caught:
                    problems.append(
                        OperationalError(
                            "failed to close MCP client",
                            TimeoutError(f"gave up after {self.close_timeout}s"),
                        )
                    )
            if running is not None:
                try:
                    await running.stop()
                except Exception as e:
                    problems.append(OperationalError("failed to stop backend", e))
        if (problem := join_errors(f"{self.label}: shutdown", problems)) is not None:
            raise problem
