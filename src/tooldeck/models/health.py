"""Health check response model."""

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response model for the health check endpoint.

    Attributes:
        status: Health status indicator ("ok" or "error").
        version: The version of tooldeck.
        ollama_connected: Whether the Ollama server answered, None without a client.
        ollama_host: The Ollama host URL.
        backends: Number of MCP backends the ToolSet manages.
        tools: Number of tool definitions offered to the model.
    """

    status: str = Field(..., description="Health status of the service")
    version: str = Field(..., description="Version of tooldeck")
    ollama_connected: bool | None = Field(
        default=None,
        description="Whether Ollama is connected",
    )
    ollama_host: str | None = Field(
        default=None,
        description="Ollama host URL",
    )
    backends: int = Field(default=0, description="Number of managed MCP backends")
    tools: int = Field(default=0, description="Number of tools offered to the model")
