"""Data types for conversation messages.

This module defines the role-tagged messages a conversation is made of and
the tool calls the model attaches to its responses, together with their
conversion to the Ollama chat format.
"""

import json
from dataclasses import dataclass, field
from typing import Any


@dataclass
class ToolCall:
    """A tool invocation requested by the model."""

    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def from_ollama(data: Any, fallback_id: str) -> "ToolCall":
        """Create a ToolCall from an Ollama tool call.

        Ollama may or may not assign an id to a call; when it does not, the
        provided fallback id is used so results can still be paired with
        their call.

        Args:
            data: Tool call as a dict or ollama Message.ToolCall object
            fallback_id: Identifier to use when the call carries none

        Returns:
            ToolCall: The parsed call
        """
        if hasattr(data, "model_dump"):
            data = data.model_dump()
        function = data.get("function") or {}
        arguments = function.get("arguments") or {}
        if isinstance(arguments, str):
            # Some models send arguments as a JSON encoded string
            try:
                decoded = json.loads(arguments)
            except json.JSONDecodeError:
                decoded = None
            arguments = decoded if isinstance(decoded, dict) else {"input": arguments}
        elif not isinstance(arguments, dict):
            arguments = {"input": arguments}
        return ToolCall(
            id=data.get("id") or fallback_id,
            name=function.get("name", ""),
            arguments=dict(arguments),
        )

    def to_ollama(self) -> dict[str, Any]:
        """Convert to the Ollama tool call format."""
        return {"function": {"name": self.name, "arguments": self.arguments}}


@dataclass
class SystemMessage:
    """A system prompt or instruction message."""

    role: str = "system"
    content: str = ""

    def __post_init__(self) -> None:
        """Validate role is always 'system'."""
        self.role = "system"


@dataclass
class UserMessage:
    """A message from the user."""

    role: str = "user"
    content: str = ""

    def __post_init__(self) -> None:
        """Validate role is always 'user'."""
        self.role = "user"


@dataclass
class AssistantMessage:
    """A response from the model, possibly requesting tool calls."""

    role: str = "assistant"
    content: str = ""
    thinking: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Validate role is always 'assistant'."""
        self.role = "assistant"


@dataclass
class ToolMessage:
    """A tool execution result, tagged with the call it answers."""

    role: str = "tool"
    tool_name: str = ""
    tool_call_id: str = ""
    content: str = ""

    def __post_init__(self) -> None:
        """Validate role is always 'tool'."""
        self.role = "tool"


# Union type for all message types
Message = SystemMessage | UserMessage | AssistantMessage | ToolMessage


def tool_result(call: ToolCall, content: str) -> ToolMessage:
    """Build the tool message answering a call."""
    return ToolMessage(tool_name=call.name, tool_call_id=call.id, content=content)


def tool_error(call: ToolCall, error: str) -> ToolMessage:
    """Build a tool message carrying a structured error payload."""
    return tool_result(call, json.dumps({"error": error}))


def to_ollama_messages(messages: list[Message]) -> list[dict[str, Any]]:
    """Convert conversation messages to Ollama API format.

    Args:
        messages: List of message objects

    Returns:
        List of message dicts in Ollama format: [{"role": "...", "content": "..."}, ...]
    """
    ollama_messages = []

    for msg in messages:
        ollama_msg: dict[str, Any] = {
            "role": msg.role,
            "content": msg.content,
        }

        if isinstance(msg, AssistantMessage):
            if msg.thinking:
                ollama_msg["thinking"] = msg.thinking
            if msg.tool_calls:
                ollama_msg["tool_calls"] = [c.to_ollama() for c in msg.tool_calls]
        elif isinstance(msg, ToolMessage):
            ollama_msg["tool_name"] = msg.tool_name

        ollama_messages.append(ollama_msg)

    return ollama_messages
