"""Unit tests for conversation message types."""

import json

import pytest

from tooldeck.messages import (
    AssistantMessage,
    SystemMessage,
    ToolCall,
    ToolMessage,
    UserMessage,
    to_ollama_messages,
    tool_error,
    tool_result,
)


def test_roles_are_enforced():
    """Test that each message type always carries its own role."""
    assert SystemMessage(role="user", content="x").role == "system"
    assert UserMessage(role="system", content="x").role == "user"
    assert AssistantMessage(role="user").role == "assistant"
    assert ToolMessage(role="assistant").role == "tool"


def test_tool_call_from_ollama_dict():
    call = ToolCall.from_ollama(
        {"id": "7", "function": {"name": "notes.search", "arguments": {"query": "milk"}}},
        fallback_id="call_1_1",
    )
    assert call == ToolCall(id="7", name="notes.search", arguments={"query": "milk"})


def test_tool_call_from_ollama_without_id_uses_fallback():
    call = ToolCall.from_ollama(
        {"function": {"name": "notes.search", "arguments": {}}}, fallback_id="call_2_1"
    )
    assert call.id == "call_2_1"


def test_tool_call_from_ollama_string_arguments():
    """Test that JSON encoded argument strings are decoded."""
    call = ToolCall.from_ollama(
        {"function": {"name": "fs.read", "arguments": '{"path": "/tmp/a"}'}},
        fallback_id="x",
    )
    assert call.arguments == {"path": "/tmp/a"}


@pytest.mark.parametrize("raw", ['"just text"', "[1, 2]", "42", "not json"])
def test_tool_call_from_ollama_non_object_arguments(raw):
    """Test that argument strings not holding a JSON object are passed as input."""
    call = ToolCall.from_ollama(
        {"function": {"name": "notes.add", "arguments": raw}}, fallback_id="x"
    )
    assert call.arguments == {"input": raw}


def test_tool_result_is_tagged_with_call():
    call = ToolCall(id="1", name="notes.search")
    message = tool_result(call, "found")
    assert message.tool_call_id == "1"
    assert message.tool_name == "notes.search"
    assert message.content == "found"


def test_tool_error_payload():
    call = ToolCall(id="2", name="notes.search")
    message = tool_error(call, 'tool not found {name: "x"}')
    assert json.loads(message.content) == {"error": 'tool not found {name: "x"}'}


def test_to_ollama_messages():
    """Test conversion of a history with tool calls to Ollama format."""
    call = ToolCall(id="1", name="notes.search", arguments={"query": "milk"})
    messages = [
        SystemMessage(content="sys"),
        UserMessage(content="hi"),
        AssistantMessage(content="", thinking="hmm", tool_calls=[call]),
        tool_result(call, "found"),
    ]

    converted = to_ollama_messages(messages)

    assert converted[0] == {"role": "system", "content": "sys"}
    assert converted[1] == {"role": "user", "content": "hi"}
    assert converted[2]["thinking"] == "hmm"
    assert converted[2]["tool_calls"] == [
        {"function": {"name": "notes.search", "arguments": {"query": "milk"}}}
    ]
    assert converted[3] == {"role": "tool", "content": "found", "tool_name": "notes.search"}
