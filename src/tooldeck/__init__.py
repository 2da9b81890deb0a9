"""tooldeck: an Ollama agent runtime with MCP tool backends.

This package lets a locally hosted model call tools served by MCP backends
(local programs or Docker containers), over a REST/SSE API or the command line.
"""

__version__ = "0.1.0"

from tooldeck.app import create_app  # noqa: E402

__all__ = ["create_app", "__version__"]
