"""Query API endpoints.

This module runs a query as a full tool calling conversation, either
collected into one response or streamed via SSE.
"""

import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from sse_starlette.sse import EventSourceResponse

from tooldeck.config import ToolDeckSettings
from tooldeck.conversation import (
    ConversationDriver,
    ToolCallRequested,
    event_payload,
    opening_messages,
)
from tooldeck.dependencies import get_ollama_client, get_toolset
from tooldeck.errors import ConfigurationError, TurnLimitExceededError
from tooldeck.messages import AssistantMessage, Message, ToolCall, ToolMessage
from tooldeck.models.query import (
    ErrorEvent,
    MessageRecord,
    QueryRequest,
    QueryResponse,
    TokenUsage,
    ToolCallRecord,
)
from tooldeck.ollama import OllamaClient
from tooldeck.tools import ToolSet

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/query", tags=["query"])


def _error(code: str, message: str, details: dict[str, Any] | None = None) -> dict:
    return {"error": {"code": code, "message": message, "details": details or {}}}


def classify_failure(e: Exception) -> tuple[int, str]:
    """Map a conversation failure to an HTTP status and error code."""
    if isinstance(e, TurnLimitExceededError):
        return 500, "turn_limit_exceeded"
    if isinstance(e, ExceptionGroup):
        return 502, "tool_invocation_error"
    if isinstance(e, ConfigurationError):
        return 500, "configuration_error"
    return 502, "ollama_error"


def failure_details(e: Exception) -> dict[str, Any]:
    if isinstance(e, ExceptionGroup):
        return {"errors": [str(inner) for inner in e.exceptions]}
    return {}


def tool_call_record(call: ToolCall) -> ToolCallRecord:
    return ToolCallRecord(id=call.id, name=call.name, arguments=call.arguments)


def message_record(message: Message) -> MessageRecord:
    record = MessageRecord(role=message.role, content=message.content)
    if isinstance(message, AssistantMessage):
        record.thinking = message.thinking or None
        if message.tool_calls:
            record.tool_calls = [tool_call_record(c) for c in message.tool_calls]
    elif isinstance(message, ToolMessage):
        record.tool_name = message.tool_name
        record.tool_call_id = message.tool_call_id
    return record


def _driver(
    body: QueryRequest,
    settings: ToolDeckSettings,
    ollama_client: OllamaClient,
    toolset: ToolSet,
) -> ConversationDriver:
    try:
        system_prompt = body.system_prompt or settings.resolve_system_prompt()
    except ConfigurationError as e:
        raise HTTPException(status_code=500, detail=_error("configuration_error", str(e)))

    return ConversationDriver(
        client=ollama_client,
        model=body.model or settings.model,
        messages=opening_messages(system_prompt, body.query, toolset),
        toolset=toolset,
        max_turns=body.max_turns or settings.max_turns,
        think=body.think,
        show_thinking=bool(body.think),
    )


@router.post("", response_model=QueryResponse)
async def query_non_streaming(
    body: QueryRequest,
    request: Request,
    ollama_client: OllamaClient = Depends(get_ollama_client),
    toolset: ToolSet = Depends(get_toolset),
) -> QueryResponse:
    """Run a query to conclusion and return the final answer.

    Raises:
        HTTPException: 502 if Ollama or a tool backend fails, 500 if the
            conversation exceeds its turn limit
    """
    settings: ToolDeckSettings = request.app.state.settings
    driver = _driver(body, settings, ollama_client, toolset)
    logger.info(f"Running query with model {driver.model}")

    calls: list[ToolCallRecord] = []
    done = None
    try:
        async for event in driver.run():
            if isinstance(event, ToolCallRequested):
                calls.append(tool_call_record(event.call))
            done = event
    except Exception as e:
        logger.error(f"Query failed after {driver.turns} turns: {e}")
        status, code = classify_failure(e)
        raise HTTPException(
            status_code=status,
            detail=_error(code, f"Query failed: {e}", failure_details(e)),
        )

    return QueryResponse(
        model=driver.model,
        content=done.content,
        turns=driver.turns,
        tool_calls_executed=calls,
        messages=[message_record(m) for m in driver.messages],
        usage=TokenUsage(
            prompt_tokens=driver.prompt_tokens,
            response_tokens=driver.response_tokens,
            total_tokens=driver.prompt_tokens + driver.response_tokens,
        ),
    )


@router.post("/stream")
async def query_streaming(
    body: QueryRequest,
    request: Request,
    ollama_client: OllamaClient = Depends(get_ollama_client),
    toolset: ToolSet = Depends(get_toolset),
) -> EventSourceResponse:
    """Stream a query's conversation via Server-Sent Events (SSE).

    SSE Events:
        - content_line: Each complete line of model output
        - thinking_line: Each complete line of thinking (when think=true)
        - tool_call: A tool call the model requested
        - tool_result: A tool message appended to the history
        - turn_complete: Token counts of a finished turn
        - done: The final answer and token totals
        - error: If the conversation fails
    """
    settings: ToolDeckSettings = request.app.state.settings
    driver = _driver(body, settings, ollama_client, toolset)
    logger.info(f"Starting streaming query with model {driver.model}")

    async def event_generator():
        """Generate SSE events from the conversation."""
        try:
            async for event in driver.run():
                if await request.is_disconnected():
                    logger.warning("Client disconnected during streaming query")
                    break
                yield {"event": event.event, "data": json.dumps(event_payload(event))}
        except Exception as e:
            logger.error(f"Streaming query failed after {driver.turns} turns: {e}")
            _, code = classify_failure(e)
            error_event = ErrorEvent(
                code=code,
                message=f"Query failed: {e}",
                details=failure_details(e),
            )
            yield {"event": "error", "data": error_event.model_dump_json()}

    return EventSourceResponse(event_generator())
