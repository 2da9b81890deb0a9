"""Integration tests for the streaming query endpoint."""

import pytest
from fakes import content_chunk, parse_sse, scripted_chat, tool_call_chunk
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_stream_query_events(
    async_client: AsyncClient, mock_ollama_client, notes_toolset
):
    """Test the event sequence of a conversation with one tool call."""
    mock_ollama_client.chat_stream = scripted_chat(
        [tool_call_chunk(("c1", "notes.echo", {"text": "milk"}), done=True)],
        [content_chunk("You need\nmilk"), content_chunk(".", done=True)],
    )

    response = await async_client.post(
        "/api/v1/query/stream", json={"query": "Shopping list?"}
    )

    assert response.status_code == 200
    events = parse_sse(response.text)
    assert [e["event"] for e in events] == [
        "tool_call",
        "turn_complete",
        "tool_result",
        "content_line",
        "content_line",
        "turn_complete",
        "done",
    ]

    call = events[0]["data"]
    assert call["call"] == {"id": "c1", "name": "notes.echo", "arguments": {"text": "milk"}}
    assert call["turn"] == 1

    result = events[2]["data"]["message"]
    assert result["content"] == "notes:milk"
    assert result["tool_call_id"] == "c1"

    lines = [e["data"]["text"] for e in events if e["event"] == "content_line"]
    assert lines == ["You need", "milk."]

    done = events[-1]["data"]
    assert done == {
        "content": "You need\nmilk.",
        "turns": 2,
        "prompt_tokens": 30,
        "response_tokens": 8,
    }


@pytest.mark.asyncio
async def test_stream_query_thinking(async_client: AsyncClient, mock_ollama_client):
    mock_ollama_client.chat_stream = scripted_chat(
        [
            {"message": {"role": "assistant", "content": "", "thinking": "Let me see"}, "done": False},
            content_chunk("Hi", done=True),
        ]
    )

    response = await async_client.post(
        "/api/v1/query/stream", json={"query": "Hi!", "think": True}
    )

    events = parse_sse(response.text)
    thinking = [e["data"]["text"] for e in events if e["event"] == "thinking_line"]
    assert thinking == ["Let me see"]


@pytest.mark.asyncio
async def test_stream_query_error_event(
    async_client: AsyncClient, mock_ollama_client, notes_toolset
):
    """Test that a failure mid-conversation ends the stream with an error event."""
    mock_ollama_client.chat_stream = scripted_chat(
        [tool_call_chunk(("c1", "notes.echo", {"text": "again"}), done=True)]
    )

    response = await async_client.post(
        "/api/v1/query/stream", json={"query": "Loop", "max_turns": 1}
    )

    assert response.status_code == 200
    events = parse_sse(response.text)
    assert events[-1]["event"] == "error"
    assert events[-1]["data"]["code"] == "turn_limit_exceeded"
    assert "done" not in [e["event"] for e in events]
