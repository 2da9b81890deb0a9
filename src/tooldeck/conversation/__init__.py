"""Conversation driver and the events it emits."""

from tooldeck.conversation.driver import ConversationDriver, opening_messages
from tooldeck.conversation.events import (
    ContentLine,
    ConversationDone,
    ConversationEvent,
    ThinkingLine,
    ToolCallRequested,
    ToolResultReceived,
    TurnComplete,
    event_payload,
)

__all__ = [
    "ContentLine",
    "ConversationDone",
    "ConversationDriver",
    "ConversationEvent",
    "ThinkingLine",
    "ToolCallRequested",
    "ToolResultReceived",
    "TurnComplete",
    "event_payload",
    "opening_messages",
]
