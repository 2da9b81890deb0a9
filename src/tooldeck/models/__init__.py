"""Pydantic models for API request and response schemas.

This package contains all Pydantic models used for validating and
serializing API requests and responses across all endpoints.
"""

from tooldeck.models.health import HealthResponse
from tooldeck.models.query import (
    ErrorEvent,
    MessageRecord,
    QueryRequest,
    QueryResponse,
    TokenUsage,
    ToolCallRecord,
)
from tooldeck.models.tools import ToolInfo, ToolListResponse, ToolParameter

__all__ = [
    "ErrorEvent",
    "HealthResponse",
    "MessageRecord",
    "QueryRequest",
    "QueryResponse",
    "TokenUsage",
    "ToolCallRecord",
    "ToolInfo",
    "ToolListResponse",
    "ToolParameter",
]
