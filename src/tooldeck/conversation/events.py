"""Events emitted while a conversation runs.

Every event knows its SSE event name so the streaming endpoint and the CLI
can consume the same sequence.
"""

from dataclasses import asdict, dataclass, field
from typing import Any

from tooldeck.messages import ToolCall, ToolMessage


@dataclass
class ContentLine:
    """A complete line of visible model output (or the trailing partial line)."""

    text: str
    event: str = field(default="content_line", init=False)


@dataclass
class ThinkingLine:
    """A complete line of model thinking."""

    text: str
    event: str = field(default="thinking_line", init=False)


@dataclass
class ToolCallRequested:
    """The model requested a tool call; it is dispatched after the turn ends."""

    call: ToolCall
    turn: int
    event: str = field(default="tool_call", init=False)


@dataclass
class ToolResultReceived:
    """A tool message appended to the history."""

    message: ToolMessage
    event: str = field(default="tool_result", init=False)


@dataclass
class TurnComplete:
    """One request/response cycle with the model finished."""

    turn: int
    tool_calls: int
    prompt_eval_count: int
    eval_count: int
    done_reason: str | None = None
    event: str = field(default="turn_complete", init=False)


@dataclass
class ConversationDone:
    """The model produced a final answer."""

    content: str
    turns: int
    prompt_tokens: int
    response_tokens: int
    event: str = field(default="done", init=False)

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.response_tokens


ConversationEvent = (
    ContentLine
    | ThinkingLine
    | ToolCallRequested
    | ToolResultReceived
    | TurnComplete
    | ConversationDone
)


def event_payload(event: ConversationEvent) -> dict[str, Any]:
    """Get the JSON-serializable body of an event, without its name."""
    payload = asdict(event)
    payload.pop("event")
    return payload
