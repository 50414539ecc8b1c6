"""Application-level exception types for chatflux."""

from __future__ import annotations

from typing import Any

from chatflux.types import action_type


class ChatfluxError(Exception):
    """Base exception for chatflux."""


class ConfigurationError(ChatfluxError):
    """Base exception for configuration and startup validation errors."""


class ServiceNotConfiguredError(ConfigurationError):
    """Raised when a bot calls a delivery operation without a service."""

    def __init__(self, operation: str) -> None:
        super().__init__(f"Bot has no delivery service for `{operation}`.")
        self.operation = operation


class TransitionFailure(ChatfluxError):
    """Raised when a reducer or a transition hook fails during dispatch."""

    def __init__(self, action: Any, mutation: Any = None, *, stage: str | None = None) -> None:
        if stage is None:
            stage = f"transition {mutation.type}" if mutation is not None else "reduce"
        super().__init__(f"Dispatch of `{action_type(action)}` failed during {stage}.")
        self.action = action
        self.mutation = mutation


class EmptySnapshotStackError(ChatfluxError):
    """Raised when popping a state snapshot from an empty stack."""


class AssertionFailure(ChatfluxError, AssertionError):
    """Base exception for message assertions."""


class MatchAssertionError(AssertionFailure):
    """Raised when a message does not match the expected predicate, shape or pattern."""

    def __init__(self, message: str, *, expected: Any = None, actual: Any = None, show_diff: bool = False) -> None:
        super().__init__(message)
        self.expected = expected
        self.actual = actual
        self.show_diff = show_diff

    def __str__(self) -> str:
        text = super().__str__()
        if self.expected is None and self.actual is None:
            return text
        return f"{text}\nexpected: {self.expected!r}\nactual:   {self.actual!r}"


class MissingMessageError(AssertionFailure):
    """Raised when asserting against a message that was never received."""

    def __init__(self, message: str = "Message is undefined.") -> None:
        super().__init__(message)


class ProtocolError(ChatfluxError):
    """Raised for malformed control requests."""
