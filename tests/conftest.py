"""Pytest configuration and shared fixtures for tooldeck tests.

This module provides common fixtures used across all test modules,
including test app creation and async client setup.
"""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from tooldeck import create_app
from tooldeck.config import ToolDeckSettings


@pytest.fixture
def test_settings(tmp_path):
    """Create test settings without any configured backends.

    Args:
        tmp_path: Pytest fixture providing a temporary directory.

    Returns:
        ToolDeckSettings: Settings instance configured for testing.
    """
    return ToolDeckSettings(
        host="127.0.0.1",
        port=8000,
        ollama_host="http://localhost:11434",
        model="test-model",
        backends_file=None,
        log_level="DEBUG",
        cors_origins=["*"],
        max_turns=5,
    )


@pytest.fixture
def test_app(test_settings):
    """Create a FastAPI test application instance."""
    return create_app(settings=test_settings)


@pytest_asyncio.fixture
async def async_client(test_app):
    """Create an async HTTP client for testing FastAPI endpoints.

    Yields:
        AsyncClient: Async HTTP client for making test requests.
    """
    # Trigger the lifespan startup manually for tests
    async with test_app.router.lifespan_context(test_app):
        transport = ASGITransport(app=test_app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
