"""Ollama client wrapper.

This package provides the async client used to stream chat completions,
including tool definitions, from the Ollama API.
"""

from tooldeck.ollama.client import OllamaClient

__all__ = ["OllamaClient"]
