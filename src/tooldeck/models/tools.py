"""Pydantic models for the tools listing endpoint."""

from typing import Any

from pydantic import BaseModel, Field


class ToolParameter(BaseModel):
    """One parameter of a tool, as offered to the model."""

    name: str
    type: str | list[str] | None = None
    description: str | None = None
    required: bool = False


class ToolInfo(BaseModel):
    """A namespaced tool definition."""

    name: str = Field(description="Namespaced name: <backend>.<operation>")
    description: str = ""
    parameters: list[ToolParameter] | None = Field(
        default=None, description="Parameter details, only when detailed=true"
    )


class ToolListResponse(BaseModel):
    """Response body for GET /api/v1/tools."""

    instructions: list[str] = Field(default_factory=list)
    tools: list[ToolInfo] = Field(default_factory=list)
    discovery_errors: list[str] = Field(
        default_factory=list, description="Backends that failed discovery"
    )


def parameters_from_schema(schema: dict[str, Any]) -> list[ToolParameter]:
    """Flatten an Ollama parameter schema into a list of parameters."""
    required = set(schema.get("required") or [])
    properties = schema.get("properties") or {}
    return [
        ToolParameter(
            name=name,
            type=prop.get("type"),
            description=prop.get("description"),
            required=name in required,
        )
        for name, prop in properties.items()
    ]
