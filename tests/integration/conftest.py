"""Pytest configuration for integration tests.

This module provides integration-test-specific fixtures that ensure
proper test isolation and mocking for API endpoint tests.
"""

from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from fakes import EchoCapability

from tooldeck.tools import ToolSet


@pytest.fixture(autouse=True)
def mock_ollama_client():
    """Mock OllamaClient for all integration tests.

    This fixture patches the OllamaClient class before the app is created,
    ensuring the lifespan uses our mock instead of creating a real client.
    Tests script the model by replacing chat_stream.
    """
    with patch("tooldeck.app.OllamaClient") as mock_client_class:
        mock_instance = AsyncMock()
        mock_instance.host = "http://localhost:11434"
        mock_instance.check_connection.return_value = True

        mock_client_class.return_value = mock_instance

        yield mock_instance


@pytest_asyncio.fixture
async def notes_toolset(test_app, async_client):
    """Replace the empty startup ToolSet with one serving notes.echo and notes.search.

    Depends on async_client so the lifespan has already run.
    """
    toolset = ToolSet()
    notes = EchoCapability(
        "notes", operations=("echo", "search"), instructions=("Notes are private.",)
    )
    await toolset.register(notes)
    test_app.state.toolset = toolset
    return notes
