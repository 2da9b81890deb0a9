"""Unit tests for tooldeck error types."""

from tooldeck.errors import (
    InvalidToolNameError,
    OperationalError,
    ToolDeckError,
    TurnLimitExceededError,
    join_errors,
)


def test_operational_error_message_and_cause():
    """Test that OperationalError renders description and chains the cause."""
    underlying = ConnectionRefusedError("refused")
    error = OperationalError("failed to start MCP client", underlying)

    assert str(error) == "failed to start MCP client: refused"
    assert error.description == "failed to start MCP client"
    assert error.underlying is underlying
    assert error.__cause__ is underlying
    assert isinstance(error, ToolDeckError)


def test_invalid_tool_name_error():
    error = InvalidToolNameError("notes.")
    assert error.name == "notes."
    assert "notes." in str(error)


def test_turn_limit_error_mentions_limit():
    error = TurnLimitExceededError(3)
    assert error.max_turns == 3
    assert "3 turns" in str(error)


def test_join_errors_without_errors_returns_none():
    assert join_errors("shutdown", []) is None


def test_join_errors_keeps_every_error():
    """Test that aggregation keeps all errors in order."""
    first = OperationalError("stop", RuntimeError("a"))
    second = OperationalError("remove", RuntimeError("b"))

    group = join_errors("container shutdown", [first, second])

    assert isinstance(group, ExceptionGroup)
    assert group.message == "container shutdown"
    assert list(group.exceptions) == [first, second]
