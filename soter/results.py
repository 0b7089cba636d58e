"""Attempt and result records produced by triggers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from soter.instructions import Transition
from soter.utils.snapshot import to_plain


class FailureKind(str, Enum):
    """Why a trigger or forced transition failed."""

    TRIGGER_UNDEFINED = "TriggerUndefined"
    ORIGIN_DISALLOWED = "OriginDisallowed"
    CONDITION_UNDEFINED = "ConditionUndefined"
    CONDITION_VALUE = "ConditionValue"
    EFFECT_UNDEFINED = "EffectUndefined"
    EFFECT_ERROR = "EffectError"
    DESTINATION_INVALID = "DestinationInvalid"

    def __str__(self) -> str:
        return self.value


@dataclass
class TransitionFailure:
    """
    Failure record.

    Attributes:
        kind: Failure kind
        undefined: True when a referenced trigger, condition or effect does
            not exist; False for value or logic problems
        trigger: Trigger involved, if any
        method: Condition or effect name involved, if any
        context: Context snapshot at failure time
    """

    kind: FailureKind
    undefined: bool
    trigger: Optional[str] = None
    method: Optional[str] = None
    context: Any = None

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "kind": self.kind.value,
            "undefined": self.undefined,
            "trigger": self.trigger,
            "method": self.method,
            "context": to_plain(self.context),
        }


@dataclass
class ConditionAttempt:
    """One condition check inside an attempt."""

    name: str
    success: bool = False
    context: Any = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "success": self.success,
            "context": to_plain(self.context),
        }


@dataclass
class EffectAttempt:
    """One effect invocation inside an attempt."""

    name: str
    success: bool = False
    context: Any = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "success": self.success,
            "context": to_plain(self.context),
        }


@dataclass
class TransitionAttempt:
    """Evaluation of one candidate transition during a trigger."""

    trigger: str
    transition: Transition
    success: bool = False
    failure: Optional[TransitionFailure] = None
    conditions: list[ConditionAttempt] = field(default_factory=list)
    effects: list[EffectAttempt] = field(default_factory=list)
    context: Any = None

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "trigger": self.trigger,
            "success": self.success,
            "failure": self.failure.to_dict() if self.failure else None,
            "conditions": [c.to_dict() for c in self.conditions],
            "effects": [e.to_dict() for e in self.effects],
            "transition": self.transition.to_dict(),
            "context": to_plain(self.context),
        }


@dataclass
class TransitionResult:
    """
    Outcome of one trigger call.

    ``precontext`` and ``context`` are snapshots taken before the call and
    after it finished (or at failure time).
    """

    success: bool
    initial: Any
    current: Any
    failure: Optional[TransitionFailure] = None
    attempts: list[TransitionAttempt] = field(default_factory=list)
    precontext: Any = None
    context: Any = None

    @property
    def changed(self) -> bool:
        """Whether the call ended in a different state than it started."""
        return self.initial != self.current

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "success": self.success,
            "failure": self.failure.to_dict() if self.failure else None,
            "initial": to_plain(self.initial),
            "current": to_plain(self.current),
            "attempts": [a.to_dict() for a in self.attempts],
            "precontext": to_plain(self.precontext),
            "context": to_plain(self.context),
        }


@dataclass(frozen=True)
class ConditionStatus:
    """Current truthiness of one condition."""

    name: str
    satisfied: bool


@dataclass(frozen=True)
class AvailableTransition:
    """A candidate whose origins include the current state."""

    trigger: str
    origins: tuple
    destination: Any
    satisfied: bool
    conditions: tuple[ConditionStatus, ...]
    effects: tuple[str, ...]

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "trigger": self.trigger,
            "origins": to_plain(list(self.origins)),
            "destination": to_plain(self.destination),
            "satisfied": self.satisfied,
            "conditions": [
                {"name": c.name, "satisfied": c.satisfied}
                for c in self.conditions
            ],
            "effects": list(self.effects),
        }
