"""Utility modules for soter."""

from soter.utils.logging import (
    configure_logging,
    get_logger,
    reset_trigger,
    set_trigger,
)
from soter.utils.result import ConfigError, Err, InstructionError, Ok, Result
from soter.utils.snapshot import MISSING, resolve_member, snapshot, to_plain

__all__ = [
    # Logging
    "configure_logging",
    "get_logger",
    "set_trigger",
    "reset_trigger",
    # Result
    "Ok",
    "Err",
    "Result",
    "ConfigError",
    "InstructionError",
    # Snapshots
    "MISSING",
    "resolve_member",
    "snapshot",
    "to_plain",
]
