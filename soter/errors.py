"""Exceptions raised by state machines."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from soter.results import FailureKind, TransitionResult


class StateMachineError(Exception):
    """Base class for state machine errors."""

    pass


class StateUndefinedError(StateMachineError):
    """The context reports no current state."""

    def __init__(self, key: Any) -> None:
        self.key = key
        super().__init__(f"Current state is undefined (key: {key!r})")


class DuplicateStateError(StateMachineError):
    """A state was added to a table that already contains it."""

    def __init__(self, state: Any) -> None:
        self.state = state
        super().__init__(f"State {state!r} is already defined")


class TransitionError(StateMachineError):
    """
    A trigger or forced transition failed.

    Attributes:
        kind: Failure kind
        message: Human-readable description
        result: Full result of the failed trigger, or None for to()
    """

    def __init__(
        self,
        kind: FailureKind,
        message: str,
        result: Optional[TransitionResult] = None,
    ) -> None:
        self.kind = kind
        self.message = message
        self.result = result
        super().__init__(f"{kind.value}: {message}")


class ConfigurationError(StateMachineError):
    """Machine options failed validation."""

    def __init__(self, error: Any) -> None:
        self.error = error
        super().__init__(str(error))
