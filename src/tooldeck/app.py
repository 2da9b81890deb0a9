"""FastAPI application factory and lifespan management.

This module contains the create_app() factory function that creates and configures
the FastAPI application instance, including lifespan management for startup/shutdown
and router registration.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tooldeck.config import BackendsConfig, ToolDeckSettings, load_backends_file
from tooldeck.ollama import OllamaClient
from tooldeck.routers import health, query, tools
from tooldeck.tools import ToolSet
from tooldeck.tools.backends import specs_from_config

logger = logging.getLogger(__name__)


async def build_toolset(settings: ToolDeckSettings) -> ToolSet:
    """Start and discover every configured backend.

    Raises:
        ConfigurationError: If the backends file is missing or invalid
        ExceptionGroup: If strict_discovery is set and any backend failed
    """
    if settings.backends_file:
        backends = load_backends_file(settings.backends_file)
    else:
        logger.info("No backends file configured, running without tools")
        backends = BackendsConfig()

    return await ToolSet.build(
        specs_from_config(backends, settings.container_stop_timeout),
        discovery_timeout=settings.discovery_timeout,
        invocation_timeout=settings.invocation_timeout,
        strict=settings.strict_discovery,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan context manager for FastAPI application.

    The Ollama client and the ToolSet are created once at startup and stored
    in app.state for reuse across all requests. Backends are started and
    stopped from this task, which is what MCP sessions require.

    Args:
        app: The FastAPI application instance.

    Yields:
        None: Control is yielded while the app is running.
    """
    settings: ToolDeckSettings = app.state.settings
    app.state.ollama_client = OllamaClient(host=settings.ollama_host)
    logger.info(f"Initialized Ollama client with host: {settings.ollama_host}")

    connected = await app.state.ollama_client.check_connection()
    if connected:
        logger.info("Successfully connected to Ollama")
    else:
        logger.warning("Could not connect to Ollama - check if server is running")

    app.state.toolset = await build_toolset(settings)

    try:
        yield
    finally:
        try:
            await app.state.toolset.shutdown()
            logger.info("Tool backends shut down")
        except ExceptionGroup as e:
            logger.error(f"Tool backends failed to shut down cleanly: {e}")
            for problem in e.exceptions:
                logger.error(f"  {problem}")

        await app.state.ollama_client.close()
        logger.info("Ollama client closed")


def create_app(settings: ToolDeckSettings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional ToolDeckSettings instance. If not provided,
                  settings will be loaded from environment variables.

    Returns:
        FastAPI: Configured FastAPI application instance.
    """
    from tooldeck import __version__

    if settings is None:
        from tooldeck.dependencies import get_settings

        settings = get_settings()

    app = FastAPI(
        title="tooldeck",
        description="Ollama agent runtime with MCP tool backends",
        version=__version__,
        lifespan=lifespan,
    )

    # Store settings in app.state for lifespan access
    app.state.settings = settings

    # Note: FastAPI's type hints for add_middleware are overly strict
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(tools.router)
    app.include_router(query.router)

    return app
