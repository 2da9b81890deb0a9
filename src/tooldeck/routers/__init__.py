"""FastAPI routers for API endpoints.

Each router module defines endpoints for a specific domain (health, tools, query).
"""

from tooldeck.routers import health, query, tools

__all__ = [
    "health",
    "query",
    "tools",
]
