"""Exception types for tooldeck.

Failures are grouped by who can act on them:

- ConfigurationError: the backend configuration is invalid. Raised before any
  backend is started.
- OperationalError: the orchestration layer could not do its own job (start a
  container, reach a backend, finish a handshake). Carries a human readable
  description of the step that failed and chains the underlying exception.
- InvalidToolNameError: a tool call named an operation that cannot be mapped
  onto a backend operation.
- TurnLimitExceededError: the model kept requesting tools past the configured
  number of turns.

Failures a backend reports about its own operation are not exceptions at all;
they are turned into tool messages so the model can react to them.
Several failures are reported together through the builtin ExceptionGroup.
"""


class ToolDeckError(Exception):
    """Base class for all tooldeck errors."""


class ConfigurationError(ToolDeckError):
    """Raised when a backend configuration cannot be resolved."""


class OperationalError(ToolDeckError):
    """Provides human readable context to an underlying failure."""

    def __init__(self, description: str, underlying: BaseException) -> None:
        self.description = description
        self.underlying = underlying
        super().__init__(f"{description}: {underlying}")
        self.__cause__ = underlying


class InvalidToolNameError(ToolDeckError):
    """Raised when a namespaced tool name has no operation part."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"invalid tool name: {name!r}")


class TurnLimitExceededError(ToolDeckError):
    """Raised when a conversation exceeds its maximum number of turns."""

    def __init__(self, max_turns: int) -> None:
        self.max_turns = max_turns
        super().__init__(
            f"Conversation exceeded {max_turns} turns without a final answer"
        )


def join_errors(
    message: str, errors: list[Exception]
) -> ExceptionGroup | None:
    """Combine collected failures into a single ExceptionGroup.

    Returns None when nothing failed so callers can write
    ``if (problem := join_errors(...)) is not None: raise problem``.
    """
    if not errors:
        return None
    return ExceptionGroup(message, errors)
