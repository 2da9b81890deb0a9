"""Unit tests for the OllamaClient wrapper."""

from unittest.mock import AsyncMock, MagicMock, patch

import ollama
import pytest

from tooldeck.ollama import OllamaClient


@pytest.fixture
def mock_ollama_async_client():
    """Create a mock ollama.AsyncClient."""
    with patch("tooldeck.ollama.client.ollama.AsyncClient") as mock_class:
        mock_instance = AsyncMock()
        mock_class.return_value = mock_instance
        yield mock_instance


@pytest.fixture
def ollama_client(mock_ollama_async_client):
    """Create an OllamaClient with mocked AsyncClient."""
    return OllamaClient(host="http://localhost:11434")


def stream_of(*chunks):
    async def generator():
        for chunk in chunks:
            yield chunk

    return generator()


@pytest.mark.asyncio
async def test_client_initialization():
    """Test that OllamaClient initializes correctly."""
    with patch("tooldeck.ollama.client.ollama.AsyncClient"):
        client = OllamaClient(host="http://test:11434")
        assert client.host == "http://test:11434"
        assert client._client is not None


@pytest.mark.asyncio
async def test_check_connection_success(ollama_client, mock_ollama_async_client):
    """Test successful connection check."""
    mock_ollama_async_client.list.return_value = {"models": []}

    result = await ollama_client.check_connection()

    assert result is True
    mock_ollama_async_client.list.assert_called_once()


@pytest.mark.asyncio
async def test_check_connection_failure(ollama_client, mock_ollama_async_client):
    """Test connection check when Ollama is unreachable."""
    mock_ollama_async_client.list.side_effect = Exception("Connection refused")

    result = await ollama_client.check_connection()

    assert result is False


@pytest.mark.asyncio
async def test_chat_stream_passes_tools_and_think(ollama_client, mock_ollama_async_client):
    """Test that tool definitions and the think flag reach ollama unchanged."""
    mock_ollama_async_client.chat.return_value = stream_of(
        {"message": {"role": "assistant", "content": "Hi"}, "done": True}
    )
    tool = ollama.Tool(
        type="function",
        function=ollama.Tool.Function(name="notes.search", description="Search notes"),
    )
    messages = [{"role": "user", "content": "hello"}]

    chunks = [
        chunk
        async for chunk in ollama_client.chat_stream(
            model="test-model", messages=messages, tools=[tool], think=True
        )
    ]

    assert chunks == [{"message": {"role": "assistant", "content": "Hi"}, "done": True}]
    mock_ollama_async_client.chat.assert_called_once_with(
        model="test-model",
        messages=messages,
        tools=[tool],
        stream=True,
        think=True,
        options=None,
    )


@pytest.mark.asyncio
async def test_chat_stream_converts_response_objects(ollama_client, mock_ollama_async_client):
    """Test that pydantic response chunks are turned into dicts."""
    chunk = MagicMock()
    chunk.model_dump.return_value = {"message": {"content": "x"}, "done": False}
    mock_ollama_async_client.chat.return_value = stream_of(chunk)

    chunks = [
        c
        async for c in ollama_client.chat_stream(
            model="test-model", messages=[{"role": "user", "content": "hello"}]
        )
    ]

    assert chunks == [{"message": {"content": "x"}, "done": False}]


@pytest.mark.asyncio
async def test_chat_stream_propagates_errors(ollama_client, mock_ollama_async_client):
    """Test that request failures reach the caller."""
    mock_ollama_async_client.chat.side_effect = ollama.ResponseError("model not found", 404)

    with pytest.raises(ollama.ResponseError):
        async for _ in ollama_client.chat_stream(
            model="missing", messages=[{"role": "user", "content": "hello"}]
        ):
            pass
