"""Machine configuration.

Every engine instance owns its own resolved MachineConfig; there are no
module-level mutable defaults. The plain-data fields can be loaded from a
YAML file and validated before a machine is built.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

import yaml

from soter.utils.result import ConfigError, Err, Ok, Result
from soter.utils.snapshot import resolve_member, snapshot

DEFAULT_KEY = "state"
LOG_LEVELS = ("debug", "info", "warn", "warning", "error")


def default_condition_evaluator(value: Any, context: Any) -> bool:
    """Call the resolved condition if it is callable, else use its truthiness."""
    if callable(value):
        return bool(value())
    return bool(value)


def default_get_state(context: Any, key: str) -> Any:
    """Read the state from a mapping key or an attribute."""
    if isinstance(context, Mapping):
        return context.get(key)
    return getattr(context, key, None)


def default_set_state(context: Any, state: Any, key: str) -> None:
    """Write the state to a mapping key or an attribute."""
    if isinstance(context, MutableMapping):
        context[key] = state
    else:
        setattr(context, key, state)


def _noop(*args: Any) -> None:
    pass


@dataclass
class LoggingConfig:
    """Logging settings."""

    level: str = "info"
    format: str = "text"


@dataclass
class MachineConfig:
    """
    Complete engine configuration.

    Attributes:
        key: Name the default accessors read and write the state under
        verbose: Log state changes and recoverable failures at info level
        throw_exceptions: Raise TransitionError on failure instead of
            returning a failed result
        strict_origins: Accepted and reported; does not change behavior
        track_history: Append every trigger result to the machine history
        name: Optional label attached to log events
        condition_evaluator: (resolved value, context) -> bool
        context_copier: Produces independent snapshots of the context
        resolver: (context, name) -> value or MISSING
        get_state: (context, key) -> state
        set_state: (context, state, key) -> None
        on_before_transition: (planned state, old state, context), before
            the state is written
        on_transition: (new state, old state, context), after the state is
            written
    """

    key: str = DEFAULT_KEY
    verbose: bool = False
    throw_exceptions: bool = True
    strict_origins: bool = False
    track_history: bool = True
    name: str = ""

    condition_evaluator: Callable[[Any, Any], bool] = default_condition_evaluator
    context_copier: Callable[[Any], Any] = snapshot
    resolver: Callable[[Any, str], Any] = resolve_member
    get_state: Callable[[Any, str], Any] = default_get_state
    set_state: Callable[[Any, Any, str], None] = default_set_state
    on_before_transition: Callable[[Any, Any, Any], None] = _noop
    on_transition: Callable[[Any, Any, Any], None] = _noop

    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_yaml(cls, path: Path) -> Result["MachineConfig", ConfigError]:
        """
        Load configuration from a YAML file.

        The options may sit at the top level or under an ``options`` key,
        so a machine definition file can be passed directly.

        Args:
            path: Path to YAML configuration file

        Returns:
            Result with loaded config or error
        """
        path = Path(path)

        if not path.exists():
            return Err(ConfigError(
                field="path",
                message=f"Configuration file not found: {path}",
            ))

        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            return Err(ConfigError(
                field="yaml",
                message=f"Failed to parse YAML: {e}",
            ))
        except OSError as e:
            return Err(ConfigError(
                field="file",
                message=f"Failed to read config file: {e}",
            ))

        if not isinstance(data, dict):
            return Err(ConfigError(
                field="yaml",
                message="Configuration file must contain a mapping",
            ))

        return cls.from_dict(data.get("options", data))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Result["MachineConfig", ConfigError]:
        """
        Create configuration from plain data.

        Only the plain-data options are read; hooks and accessors are
        supplied in code.

        Returns:
            Result with loaded config or error
        """
        if data is None:
            data = {}
        if not isinstance(data, Mapping):
            return Err(ConfigError(
                field="options",
                message=f"Expected a mapping, got {type(data).__name__}",
            ))

        for flag in ("verbose", "throw_exceptions", "strict_origins", "track_history"):
            if flag in data and not isinstance(data[flag], bool):
                return Err(ConfigError(
                    field=flag,
                    message=f"Must be a boolean, got {data[flag]!r}",
                ))

        logging_data = data.get("logging") or {}
        if not isinstance(logging_data, Mapping):
            return Err(ConfigError(
                field="logging",
                message="Must be a mapping",
            ))

        config = cls(
            key=data.get("key", DEFAULT_KEY),
            verbose=data.get("verbose", False),
            throw_exceptions=data.get("throw_exceptions", True),
            strict_origins=data.get("strict_origins", False),
            track_history=data.get("track_history", True),
            name=str(data.get("name", "")),
            logging=LoggingConfig(
                level=str(logging_data.get("level", "info")),
                format=str(logging_data.get("format", "text")),
            ),
        )

        return config.validate().map(lambda _: config)

    def validate(self) -> Result[None, ConfigError]:
        """
        Validate configuration values.

        Returns:
            Result indicating success or validation error
        """
        if not isinstance(self.key, str) or not self.key:
            return Err(ConfigError(
                field="key",
                message=f"Must be a non-empty string, got {self.key!r}",
            ))

        for name in (
            "condition_evaluator",
            "context_copier",
            "resolver",
            "get_state",
            "set_state",
            "on_before_transition",
            "on_transition",
        ):
            if not callable(getattr(self, name)):
                return Err(ConfigError(
                    field=name,
                    message="Must be callable",
                ))

        if str(self.logging.level).lower() not in LOG_LEVELS:
            return Err(ConfigError(
                field="logging.level",
                message=f"Must be one of {', '.join(LOG_LEVELS)}, got {self.logging.level!r}",
            ))

        if self.logging.format not in ("json", "text"):
            return Err(ConfigError(
                field="logging.format",
                message=f"Must be 'json' or 'text', got {self.logging.format!r}",
            ))

        return Ok(None)

    def replace(self, **overrides: Any) -> "MachineConfig":
        """
        Return a copy with some fields replaced.

        ``None`` values are ignored so optional keyword arguments can be
        passed straight through.

        Raises:
            TypeError: If an override names an unknown option
        """
        known = {f.name for f in dataclasses.fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise TypeError(f"Unknown machine options: {', '.join(sorted(unknown))}")
        changes = {k: v for k, v in overrides.items() if v is not None}
        return dataclasses.replace(self, **changes)


def load_config(path: Optional[Path] = None) -> Result[MachineConfig, ConfigError]:
    """
    Load configuration from a file, or the defaults when no path is given.

    Args:
        path: YAML file with machine options

    Returns:
        Result with loaded config or error
    """
    if path is None:
        return Ok(MachineConfig())
    return MachineConfig.from_yaml(path)
