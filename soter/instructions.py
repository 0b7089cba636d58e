"""Instruction tables: the state set and the trigger -> candidates map.

A table is built from either a flat list of states, which synthesizes one
``to_<state>`` trigger per state, or from a declarative map of triggers to
one or more transition definitions:

    melt:
      origins: [solid]
      destination: liquid
      conditions: [can_melt]
      effects: [heat]

No condition or effect validation happens here; names are resolved on the
context when a trigger runs.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Optional, Union

import yaml

from soter.errors import DuplicateStateError, StateMachineError
from soter.utils.logging import get_logger
from soter.utils.result import Err, InstructionError, Ok, Result

logger = get_logger("instructions")

TRIGGER_PREFIX = "to_"


def _as_tuple(value: Any) -> tuple:
    """Normalize None, one item, or a sequence of items to a tuple."""
    if value is None:
        return ()
    if isinstance(value, (list, tuple, set, frozenset)):
        return tuple(value)
    return (value,)


def trigger_name(state: Any) -> str:
    """Name of the synthesized trigger that moves to ``state``."""
    if isinstance(state, enum.Enum):
        label = state.value if isinstance(state.value, str) else state.name
    else:
        label = state
    return f"{TRIGGER_PREFIX}{label}"


@dataclass(frozen=True)
class Transition:
    """
    One candidate rule for a trigger.

    Attributes:
        origins: States the transition may start from
        destination: State the context ends up in
        conditions: Names of context members that must all be truthy
        effects: Names of context methods run, in order, before committing
    """

    origins: tuple = field(default_factory=tuple)
    destination: Any = None
    conditions: tuple[str, ...] = field(default_factory=tuple)
    effects: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "origins", _as_tuple(self.origins))
        object.__setattr__(self, "conditions", _as_tuple(self.conditions))
        object.__setattr__(self, "effects", _as_tuple(self.effects))

    def allows(self, state: Any) -> bool:
        """Check whether ``state`` is one of this transition's origins."""
        return state in self.origins

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "origins": list(self.origins),
            "destination": self.destination,
            "conditions": list(self.conditions),
            "effects": list(self.effects),
        }

    @classmethod
    def parse(cls, trigger: str, data: Any) -> Result["Transition", InstructionError]:
        """
        Build a Transition from a plain-data definition.

        Args:
            trigger: Trigger the definition belongs to (for error messages)
            data: A Transition or a mapping with origins/destination/
                conditions/effects

        Returns:
            Result with the transition or an InstructionError
        """
        if isinstance(data, Transition):
            return Ok(data)

        if not isinstance(data, Mapping):
            return Err(InstructionError(
                trigger=trigger,
                message=f"Expected a mapping, got {type(data).__name__}",
            ))

        unknown = set(data) - {"origins", "destination", "conditions", "effects"}
        if unknown:
            return Err(InstructionError(
                trigger=trigger,
                message=f"Unknown keys: {', '.join(sorted(map(str, unknown)))}",
            ))

        if data.get("origins") is None:
            return Err(InstructionError(trigger=trigger, message="Missing 'origins'"))
        if data.get("destination") is None:
            return Err(InstructionError(trigger=trigger, message="Missing 'destination'"))

        for key in ("conditions", "effects"):
            for name in _as_tuple(data.get(key)):
                if not isinstance(name, str) or not name:
                    return Err(InstructionError(
                        trigger=trigger,
                        message=f"{key} must be non-empty names, got {name!r}",
                    ))

        return Ok(cls(
            origins=data["origins"],
            destination=data["destination"],
            conditions=data.get("conditions"),
            effects=data.get("effects"),
        ))


TransitionDefinition = Union[Transition, Mapping[str, Any]]


class InvalidInstructionsError(StateMachineError):
    """A transition map could not be turned into an instruction table."""

    def __init__(self, error: InstructionError) -> None:
        self.error = error
        super().__init__(str(error))


class Instructions:
    """
    The state set plus the ordered candidate transitions for each trigger.

    Every origin and destination mentioned by a transition is a member of
    the state set; adding a transition registers any new states it uses.
    """

    def __init__(
        self,
        source: Optional[Union[Iterable[Any], Mapping[str, Any]]] = None,
    ) -> None:
        """
        Initialize the table.

        Args:
            source: A flat sequence of distinct states, or a map of trigger
                names to one transition definition or a list of them

        Raises:
            InvalidInstructionsError: If a transition definition is malformed
            DuplicateStateError: If a state list repeats a state
        """
        self._states: dict[Any, None] = {}
        self._transitions: dict[str, list[Transition]] = {}
        self._generated = False

        if source is None:
            return

        if isinstance(source, Mapping):
            for trigger, definitions in source.items():
                for definition in _as_tuple(definitions):
                    parsed = Transition.parse(trigger, definition)
                    if parsed.is_err():
                        raise InvalidInstructionsError(parsed.unwrap_err())
                    self.add_transition(trigger, parsed.unwrap())
        else:
            states = list(source)
            for state in states:
                if state in self._states:
                    raise DuplicateStateError(state)
                self._states[state] = None
            for state in states:
                others = tuple(s for s in self._states if s != state)
                self._synthesize(state, others)
            self._generated = True

    @classmethod
    def from_states(cls, states: Iterable[Any]) -> "Instructions":
        """Build a table with one ``to_<state>`` trigger per state."""
        return cls(list(states))

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
    ) -> Result["Instructions", InstructionError]:
        """
        Build a table from plain data.

        Accepts either a bare trigger map, or a document with a
        ``transitions`` key and an optional ``states`` list whose entries
        are registered first (fixing their order and adding states no
        transition mentions).

        Returns:
            Result with the table or the first definition error
        """
        if not isinstance(data, Mapping):
            return Err(InstructionError(
                trigger="",
                message=f"Expected a mapping, got {type(data).__name__}",
            ))

        if "transitions" in data:
            transitions = data.get("transitions") or {}
            states = data.get("states") or []
        else:
            transitions = data
            states = []

        if not isinstance(transitions, Mapping):
            return Err(InstructionError(
                trigger="",
                message="'transitions' must be a mapping of trigger names",
            ))

        table = cls()
        for state in states:
            if table.has_state(state):
                return Err(InstructionError(
                    trigger="",
                    message=f"Duplicate state {state!r}",
                ))
            table.add_state(state)

        for trigger, definitions in transitions.items():
            for definition in _as_tuple(definitions):
                parsed = Transition.parse(str(trigger), definition)
                if parsed.is_err():
                    return parsed
                table.add_transition(str(trigger), parsed.unwrap())

        logger.debug(
            "instructions_loaded",
            states=len(table.states),
            triggers=len(table),
        )
        return Ok(table)

    @classmethod
    def from_yaml(cls, path: Path) -> Result["Instructions", InstructionError]:
        """
        Load a table from a YAML file.

        Args:
            path: Path to YAML machine definition

        Returns:
            Result with the table or an error
        """
        return load_yaml_document(path).and_then(cls.from_dict)

    @property
    def states(self) -> tuple:
        """States in insertion order."""
        return tuple(self._states)

    @property
    def transitions(self) -> Mapping[str, tuple[Transition, ...]]:
        """Read-only view of trigger -> candidate transitions."""
        return MappingProxyType({
            trigger: tuple(candidates)
            for trigger, candidates in self._transitions.items()
        })

    @property
    def triggers(self) -> tuple[str, ...]:
        """Trigger names in declaration order."""
        return tuple(self._transitions)

    def has_state(self, state: Any) -> bool:
        return state in self._states

    def candidates(self, trigger: str) -> tuple[Transition, ...]:
        """Candidates for a trigger in declaration order; empty if unknown."""
        return tuple(self._transitions.get(trigger, ()))

    def origins(self, trigger: str) -> frozenset:
        """Union of the origins of every candidate for a trigger."""
        return frozenset(
            origin
            for transition in self._transitions.get(trigger, ())
            for origin in transition.origins
        )

    def add_state(self, state: Any) -> None:
        """
        Add a state to the set.

        Existing triggers are left alone. A table synthesized from a state
        list also gets the new state's own ``to_<state>`` trigger, reachable
        from every state already known.

        Raises:
            DuplicateStateError: If the state is already present
        """
        if state in self._states:
            raise DuplicateStateError(state)

        others = tuple(self._states)
        self._states[state] = None

        if self._generated:
            self._synthesize(state, others)

    def _synthesize(self, state: Any, origins: tuple) -> None:
        self._transitions[trigger_name(state)] = [
            Transition(origins=origins, destination=state)
        ]

    def add_transition(self, trigger: str, transition: TransitionDefinition) -> None:
        """
        Append a candidate to a trigger, registering any new states.

        Raises:
            InvalidInstructionsError: If a plain definition is malformed
        """
        parsed = Transition.parse(trigger, transition)
        if parsed.is_err():
            raise InvalidInstructionsError(parsed.unwrap_err())
        transition = parsed.unwrap()

        for state in (transition.destination, *transition.origins):
            if state not in self._states:
                self._states[state] = None

        self._transitions.setdefault(trigger, []).append(transition)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "states": list(self._states),
            "transitions": {
                trigger: [transition.to_dict() for transition in candidates]
                for trigger, candidates in self._transitions.items()
            },
        }

    def __iter__(self) -> Iterator[tuple[str, tuple[Transition, ...]]]:
        for trigger, candidates in self._transitions.items():
            yield trigger, tuple(candidates)

    def __contains__(self, trigger: object) -> bool:
        return trigger in self._transitions

    def __len__(self) -> int:
        return len(self._transitions)

    def __repr__(self) -> str:
        return f"Instructions(states={list(self._states)!r}, triggers={list(self._transitions)!r})"


def instructions(
    source: Optional[Union[Iterable[Any], Mapping[str, Any]]] = None,
) -> Instructions:
    """Build an instruction table from a state list or a transition map."""
    return Instructions(source)


def load_yaml_document(path: Path) -> Result[dict, InstructionError]:
    """Read a YAML machine definition into a dictionary."""
    path = Path(path)

    if not path.exists():
        return Err(InstructionError(
            trigger="",
            message=f"Machine file not found: {path}",
        ))

    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        return Err(InstructionError(
            trigger="",
            message=f"Failed to parse YAML: {e}",
        ))
    except OSError as e:
        return Err(InstructionError(
            trigger="",
            message=f"Failed to read machine file: {e}",
        ))

    if not isinstance(data, dict):
        return Err(InstructionError(
            trigger="",
            message="Machine file must contain a mapping",
        ))

    return Ok(data)
