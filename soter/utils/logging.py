"""Structured logging for state machines, with trigger context support."""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any

import structlog

# Trigger currently being run, attached to every event logged inside it
trigger_var: ContextVar[str] = ContextVar("trigger", default="")


def set_trigger(trigger: str) -> Token:
    """Set the trigger for the current context."""
    return trigger_var.set(trigger)


def reset_trigger(token: Token) -> None:
    """Restore the trigger that was current before ``set_trigger``."""
    trigger_var.reset(token)


def add_context_info(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Add the running trigger to log events."""
    trigger = trigger_var.get()
    if trigger:
        event_dict.setdefault("trigger", trigger)
    return event_dict


def add_timestamp(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Add ISO format timestamp to log events."""
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def configure_logging(
    level: str = "info",
    format_type: str = "text",
    stream: Any = None,
) -> None:
    """
    Configure structured logging.

    Args:
        level: Log level (debug, info, warn, error)
        format_type: Output format ('json' or 'text')
        stream: Output stream (default: sys.stderr)
    """
    if stream is None:
        stream = sys.stderr

    level_map = {
        "debug": logging.DEBUG,
        "info": logging.INFO,
        "warn": logging.WARNING,
        "warning": logging.WARNING,
        "error": logging.ERROR,
    }
    log_level = level_map.get(level.lower(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=stream,
        level=log_level,
    )

    processors: list[structlog.types.Processor] = [
        structlog.stdlib.add_log_level,
        add_timestamp,
        add_context_info,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if format_type == "json":
        processors.append(structlog.processors.JSONRenderer(default=str))
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    # Loggers are not cached so a later configure_logging() call (the CLI
    # does one) also applies to module-level loggers already in use.
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(stream),
        cache_logger_on_first_use=False,
    )


def get_logger(
    name: str | None = None,
    **initial_values: Any,
) -> structlog.stdlib.BoundLogger:
    """
    Get a configured logger instance.

    The logger stays lazy: every call is assembled from the configuration
    current at that time, so a later configure_logging() still applies.

    Args:
        name: Optional logger name for context
        **initial_values: Extra context bound to every event

    Returns:
        Configured structlog logger
    """
    if name:
        initial_values["logger_name"] = name
    return structlog.get_logger(**initial_values)


# Initialize with defaults on import
configure_logging()
