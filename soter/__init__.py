"""soter - finite state machines for plain Python objects.

A machine augments a context object with named triggers that move it
between states. Each trigger has one or more candidate transitions, gated
by conditions and accompanied by effects, all referenced by name on the
context:

    walker = add_state_machine(Walker(), {
        "walk": {"origins": "stopped", "destination": "walking",
                 "conditions": "has_energy", "effects": "speed_up"},
        "stop": {"origins": "walking", "destination": "stopped"},
    })
    result = walker.trigger("walk")

Every call returns a TransitionResult with the attempts made and context
snapshots; failures raise TransitionError unless ``throw_exceptions`` is off.
"""

__version__ = "0.4.0"

from soter.augment import MachineProxy, add_state_machine, machine
from soter.config import MachineConfig, load_config
from soter.errors import (
    ConfigurationError,
    DuplicateStateError,
    StateMachineError,
    StateUndefinedError,
    TransitionError,
)
from soter.instructions import (
    Instructions,
    InvalidInstructionsError,
    Transition,
    instructions,
)
from soter.machine import StateMachine, TriggerOptions
from soter.results import (
    AvailableTransition,
    ConditionAttempt,
    ConditionStatus,
    EffectAttempt,
    FailureKind,
    TransitionAttempt,
    TransitionFailure,
    TransitionResult,
)

__all__ = [
    "__version__",
    # Engine
    "StateMachine",
    "TriggerOptions",
    "MachineProxy",
    "add_state_machine",
    "machine",
    # Instructions
    "Instructions",
    "Transition",
    "instructions",
    # Results
    "FailureKind",
    "TransitionFailure",
    "ConditionAttempt",
    "EffectAttempt",
    "TransitionAttempt",
    "TransitionResult",
    "AvailableTransition",
    "ConditionStatus",
    # Config
    "MachineConfig",
    "load_config",
    # Errors
    "StateMachineError",
    "TransitionError",
    "StateUndefinedError",
    "DuplicateStateError",
    "ConfigurationError",
    "InvalidInstructionsError",
]
