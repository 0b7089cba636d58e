"""Attach machine behavior to an existing object.

``add_state_machine`` wraps a context in a MachineProxy: engine members are
served by the machine, everything else is read from and written to the
context, so callers can keep using their object as before:

    matter = add_state_machine(Matter("solid"), transitions)
    matter.trigger("melt")
    matter.temperature  # read from the Matter instance
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, Optional, Union

from soter.config.settings import MachineConfig
from soter.instructions import Instructions
from soter.machine import StateMachine

# Members served by the engine rather than the context
ENGINE_MEMBERS = frozenset({
    "trigger",
    "to",
    "states",
    "history",
    "potential_transitions",
    "validated_transitions",
    "can",
    "instructions",
})


class MachineProxy:
    """Composition of a context and the StateMachine driving it."""

    __slots__ = ("_machine",)

    def __init__(self, machine: StateMachine) -> None:
        object.__setattr__(self, "_machine", machine)

    @property
    def machine(self) -> StateMachine:
        return self._machine

    @property
    def context(self) -> Any:
        return self._machine.context

    def __getattr__(self, name: str) -> Any:
        # Only called when normal lookup fails, i.e. for anything that is
        # not `machine`, `context` or a dunder.
        if name == "_machine":
            raise AttributeError(name)
        if name in ENGINE_MEMBERS:
            return getattr(self._machine, name)
        context = self._machine.context
        if isinstance(context, Mapping):
            try:
                return context[name]
            except KeyError:
                raise AttributeError(name) from None
        return getattr(context, name)

    def __setattr__(self, name: str, value: Any) -> None:
        if name in ENGINE_MEMBERS or name in ("machine", "context"):
            raise AttributeError(f"'{name}' is managed by the state machine")
        context = self._machine.context
        if isinstance(context, Mapping):
            context[name] = value
        else:
            setattr(context, name, value)

    def __repr__(self) -> str:
        return f"MachineProxy({self._machine.context!r})"


def add_state_machine(
    context: Any,
    instructions: Union[Instructions, Iterable[Any], Mapping[str, Any]],
    config: Optional[MachineConfig] = None,
    **options: Any,
) -> MachineProxy:
    """
    Wrap a context with state machine behavior.

    Args:
        context: Object to drive; its state lives under ``key``
            (default "state")
        instructions: Instruction table, state list or transition map
        config: Base configuration
        **options: MachineConfig fields to override

    Returns:
        MachineProxy forwarding to the machine and the context
    """
    return MachineProxy(StateMachine(context, instructions, config, **options))


machine = add_state_machine
