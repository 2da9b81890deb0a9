"""Dependency injection providers for FastAPI endpoints.

This module provides FastAPI dependency functions that are used across
multiple routers to inject common dependencies like settings, the Ollama
client and the ToolSet.
"""

from functools import lru_cache

from fastapi import HTTPException, Request

from tooldeck.config import ToolDeckSettings
from tooldeck.ollama import OllamaClient
from tooldeck.tools import ToolSet


@lru_cache
def get_settings() -> ToolDeckSettings:
    """Get the application settings instance.

    This function is cached so that the same settings instance is reused
    across all requests. Settings are loaded from environment variables
    with the TOOLDECK_ prefix.

    Returns:
        ToolDeckSettings: The application configuration settings.
    """
    return ToolDeckSettings()


def get_ollama_client(request: Request) -> OllamaClient:
    """Get the Ollama client from app state.

    Raises:
        HTTPException: If the Ollama client is not initialized (503 Service Unavailable).
    """
    if not hasattr(request.app.state, "ollama_client"):
        raise HTTPException(
            status_code=503,
            detail="Ollama client not initialized",
        )
    return request.app.state.ollama_client


def get_toolset(request: Request) -> ToolSet:
    """Get the ToolSet built during application startup.

    Raises:
        HTTPException: If the ToolSet is not initialized (503 Service Unavailable).
    """
    if not hasattr(request.app.state, "toolset"):
        raise HTTPException(
            status_code=503,
            detail="Tools not initialized",
        )
    return request.app.state.toolset
