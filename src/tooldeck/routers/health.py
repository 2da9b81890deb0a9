"""Health check endpoint router."""

import logging

from fastapi import APIRouter, Request

from tooldeck import __version__
from tooldeck.models.health import HealthResponse
from tooldeck.ollama import OllamaClient
from tooldeck.tools import ToolSet

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Health check endpoint.

    Returns the current health status and version of tooldeck, the
    connectivity to the Ollama server and how many backends and tools the
    ToolSet manages.
    """
    ollama_connected = None
    ollama_host = None

    if hasattr(request.app.state, "ollama_client"):
        ollama_client: OllamaClient = request.app.state.ollama_client
        ollama_host = ollama_client.host

        try:
            ollama_connected = await ollama_client.check_connection()
            logger.debug(f"Ollama connectivity check: {ollama_connected}")
        except Exception as e:
            logger.warning(f"Ollama connectivity check failed: {e}")
            ollama_connected = False

    backends = 0
    tools = 0
    if hasattr(request.app.state, "toolset"):
        toolset: ToolSet = request.app.state.toolset
        backends = len(toolset.components)
        tools = len(toolset.definitions())

    return HealthResponse(
        status="ok",
        version=__version__,
        ollama_connected=ollama_connected,
        ollama_host=ollama_host,
        backends=backends,
        tools=tools,
    )
