"""Pydantic models for query API requests, responses and SSE events.

A query runs one conversation to conclusion: the system prompt, the tool
instructions and the user's text go in; the final answer and the full
history come out.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class QueryRequest(BaseModel):
    """Request body for POST /api/v1/query and /api/v1/query/stream."""

    query: str = Field(min_length=1, description="The user's query")
    model: str | None = Field(
        default=None, description="Model to use; defaults to the configured model"
    )
    system_prompt: str | None = Field(
        default=None, description="Overrides the configured system prompt"
    )
    think: bool | None = Field(
        default=None,
        description="Whether to request thinking/reasoning from the model (if supported).",
    )
    max_turns: int | None = Field(
        default=None, ge=1, description="Overrides the configured turn limit"
    )

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {"query": "What files are in the project directory?"},
                {"query": "Summarize notes://today", "think": True},
            ]
        }
    )


class ToolCallRecord(BaseModel):
    """A tool call the model requested during the conversation."""

    id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class MessageRecord(BaseModel):
    """One message of the conversation history."""

    role: str
    content: str = ""
    thinking: str | None = None
    tool_name: str | None = None
    tool_call_id: str | None = None
    tool_calls: list[ToolCallRecord] | None = None


class TokenUsage(BaseModel):
    """Token totals accumulated over every turn."""

    prompt_tokens: int = 0
    response_tokens: int = 0
    total_tokens: int = 0


class QueryResponse(BaseModel):
    """Response body for POST /api/v1/query."""

    model: str
    content: str = Field(description="The model's final answer")
    turns: int
    tool_calls_executed: list[ToolCallRecord] = Field(default_factory=list)
    messages: list[MessageRecord] = Field(default_factory=list)
    usage: TokenUsage


class ErrorEvent(BaseModel):
    """Data for error SSE event."""

    code: str = Field(description="Error code")
    message: str = Field(description="Error message")
    details: dict[str, Any] = Field(default_factory=dict, description="Error details")
