"""Tests for structured logging of engine events."""
from __future__ import annotations

import json

import pytest

from soter import StateMachine, TransitionError
from soter.utils.logging import configure_logging, get_logger, trigger_var


def json_events(text: str) -> list[dict]:
    return [json.loads(line) for line in text.splitlines() if line.strip()]


class TestVerbose:
    """Tests for the verbose option."""

    def test_verbose_state_change_passes_default_level(self, capsys) -> None:
        """A verbose machine logs state changes under the default setup."""
        configure_logging()
        machine = StateMachine({"state": "a"}, ["a", "b"], verbose=True)
        machine.trigger("to_b")
        assert "state_changed" in capsys.readouterr().err

    def test_quiet_machine_logs_at_debug(self, capsys) -> None:
        """Without verbose, state changes stay below the default level."""
        configure_logging()
        machine = StateMachine({"state": "a"}, ["a", "b"])
        machine.trigger("to_b")
        assert "state_changed" not in capsys.readouterr().err

    def test_debug_level_shows_quiet_events(self, capsys) -> None:
        """Lowering the level reveals non-verbose events."""
        configure_logging(level="debug")
        StateMachine({"state": "a"}, ["a", "b"]).trigger("to_b")
        assert "state_changed" in capsys.readouterr().err

    def test_recoverable_failure_logged(self, capsys) -> None:
        """A failed trigger is reported in verbose mode."""
        configure_logging()
        machine = StateMachine(
            {"state": "a"}, ["a", "b"], verbose=True, throw_exceptions=False,
        )
        machine.trigger("to_a")
        assert "transition_failed" in capsys.readouterr().err


class TestTriggerContext:
    """Tests for the trigger attached to events logged inside a trigger call."""

    def test_events_carry_running_trigger(self, capsys) -> None:
        """Events without an explicit trigger field get the running one."""
        configure_logging(format_type="json")
        machine = StateMachine({"state": "a"}, ["a", "b"], verbose=True, name="door")
        machine.trigger("to_b")
        (event,) = [
            e for e in json_events(capsys.readouterr().err)
            if e["event"] == "state_changed"
        ]
        assert event["trigger"] == "to_b"
        assert event["machine"] == "door"
        assert event["logger_name"] == "machine"

    def test_effect_logs_carry_trigger(self, capsys) -> None:
        """Logs written by an effect are tagged with the trigger running it."""
        configure_logging(format_type="json")
        log = get_logger("effects")
        context = {
            "state": "closed",
            "announce": lambda: log.info("announced"),
        }
        machine = StateMachine(
            context,
            {"open": {"origins": "closed", "destination": "open", "effects": "announce"}},
        )
        machine.trigger("open")
        (event,) = [
            e for e in json_events(capsys.readouterr().err)
            if e["event"] == "announced"
        ]
        assert event["trigger"] == "open"

    def test_trigger_cleared_after_call(self) -> None:
        """The trigger context is restored once the call returns or raises."""
        machine = StateMachine({"state": "a"}, ["a", "b"], throw_exceptions=True)
        machine.trigger("to_b")
        assert trigger_var.get() == ""
        with pytest.raises(TransitionError):
            machine.trigger("to_b")
        assert trigger_var.get() == ""
