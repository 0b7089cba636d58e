"""Tests for soter.instructions."""
from __future__ import annotations

from enum import Enum

import pytest

from domain import HERO_TRANSITIONS, MATTER_TRANSITIONS
from soter.errors import DuplicateStateError
from soter.instructions import (
    Instructions,
    InvalidInstructionsError,
    Transition,
    instructions,
    trigger_name,
)

STATES = ["solid", "liquid", "gas", "plasma"]


class Phase(Enum):
    """States declared as an enum."""

    SOLID = "solid"
    LIQUID = "liquid"


class TestTransition:
    """Tests for the Transition value object."""

    def test_single_values_are_normalized(self) -> None:
        """Single names are stored as one-item tuples."""
        t = Transition(origins="solid", destination="liquid", conditions="can_melt", effects="heat")
        assert t.origins == ("solid",)
        assert t.conditions == ("can_melt",)
        assert t.effects == ("heat",)

    def test_missing_conditions_and_effects_are_empty(self) -> None:
        """Omitted conditions and effects become empty tuples."""
        t = Transition(origins=["a", "b"], destination="c")
        assert t.origins == ("a", "b")
        assert t.conditions == ()
        assert t.effects == ()

    def test_allows(self) -> None:
        """allows() checks the origins."""
        t = Transition(origins=["a", "b"], destination="c")
        assert t.allows("a")
        assert not t.allows("c")

    def test_parse_rejects_missing_destination(self) -> None:
        """A definition without a destination is rejected."""
        result = Transition.parse("melt", {"origins": "solid"})
        assert result.is_err()
        assert "destination" in str(result.unwrap_err())

    def test_parse_rejects_unknown_keys(self) -> None:
        """Unknown definition keys are rejected by name."""
        result = Transition.parse("melt", {"origins": "a", "destination": "b", "guard": "x"})
        assert result.is_err()
        assert "guard" in str(result.unwrap_err())

    def test_parse_rejects_non_string_names(self) -> None:
        """Condition and effect names must be strings."""
        result = Transition.parse("melt", {"origins": "a", "destination": "b", "effects": [1]})
        assert result.is_err()


class TestFromStateList:
    """Tests for tables built from a list of states."""

    def test_one_trigger_per_state(self) -> None:
        """Each state gets a to_<state> trigger in list order."""
        table = Instructions(STATES)
        assert table.states == tuple(STATES)
        assert table.triggers == ("to_solid", "to_liquid", "to_gas", "to_plasma")

    def test_synthesized_origins_are_all_other_states(self) -> None:
        """A synthesized trigger starts from every other state."""
        table = Instructions(["a", "b", "c"])
        (only,) = table.candidates("to_b")
        assert only.destination == "b"
        assert set(only.origins) == {"a", "c"}
        assert only.conditions == ()
        assert only.effects == ()

    def test_first_state_reachable_from_later_states(self) -> None:
        """Earlier states are reachable from states listed after them."""
        table = Instructions(["a", "b", "c"])
        (to_a,) = table.candidates("to_a")
        assert to_a.origins == ("b", "c")
        assert table.origins("to_c") == frozenset({"a", "b"})

    def test_duplicate_state_raises(self) -> None:
        """A repeated state is rejected."""
        with pytest.raises(DuplicateStateError):
            Instructions(["a", "a"])

    def test_enum_states_use_value_for_trigger_name(self) -> None:
        """Enum states name their trigger after the enum value."""
        table = Instructions(list(Phase))
        assert "to_solid" in table
        assert trigger_name(Phase.LIQUID) == "to_liquid"


class TestFromTransitionMap:
    """Tests for tables built from a trigger map."""

    def test_states_derived_from_origins_and_destinations(self) -> None:
        """Origins and destinations make up the state set."""
        table = Instructions(MATTER_TRANSITIONS)
        assert set(table.states) == {"solid", "liquid", "gas"}
        assert len(table) == 4

    def test_list_of_candidates_keeps_order(self) -> None:
        """Candidates keep their declaration order."""
        table = Instructions(HERO_TRANSITIONS)
        first, second = table.candidates("patrol")
        assert first.destination == "patrolling"
        assert second.destination == "sleeping"

    def test_origins_union(self) -> None:
        """origins() is the union over all candidates."""
        table = Instructions(HERO_TRANSITIONS)
        assert table.origins("patrol") == frozenset({"idle", "patrolling"})
        assert table.origins("missing") == frozenset()

    def test_malformed_definition_raises(self) -> None:
        """A malformed definition raises InvalidInstructionsError."""
        with pytest.raises(InvalidInstructionsError):
            Instructions({"melt": {"destination": "liquid"}})

    def test_transition_objects_accepted(self) -> None:
        """Transition instances can be used as definitions."""
        table = Instructions({"go": Transition(origins="a", destination="b")})
        assert table.states == ("b", "a")

    def test_iteration_yields_trigger_and_candidates(self) -> None:
        """Iterating yields each trigger with its candidates."""
        table = Instructions(MATTER_TRANSITIONS)
        pairs = dict(table)
        assert set(pairs) == set(MATTER_TRANSITIONS)
        assert all(isinstance(c, tuple) for c in pairs.values())

    def test_transitions_view_is_read_only(self) -> None:
        """The transitions view cannot be modified."""
        table = Instructions(MATTER_TRANSITIONS)
        with pytest.raises(TypeError):
            table.transitions["melt"] = ()  # type: ignore[index]


class TestAddState:
    """Tests for Instructions.add_state."""

    def test_add_state_to_state_list_table(self) -> None:
        """A state-list table synthesizes a trigger for the new state."""
        table = Instructions(STATES)
        table.add_state("obsidian")
        assert len(table.states) == 5
        assert len(table.transitions) == 5
        (only,) = table.candidates("to_obsidian")
        assert set(only.origins) == set(STATES)

    def test_add_state_leaves_existing_triggers_alone(self) -> None:
        """Existing triggers keep their origins."""
        table = Instructions(["a", "b"])
        table.add_state("c")
        (to_a,) = table.candidates("to_a")
        assert to_a.origins == ("b",)

    def test_add_state_to_map_table_adds_no_trigger(self) -> None:
        """A map table only grows its state set."""
        table = Instructions(MATTER_TRANSITIONS)
        table.add_state("plasma")
        assert "plasma" in table.states
        assert len(table) == 4

    def test_add_duplicate_state_raises(self) -> None:
        """Adding a known state raises DuplicateStateError."""
        table = Instructions(STATES)
        with pytest.raises(DuplicateStateError):
            table.add_state("gas")


class TestAddTransition:
    """Tests for Instructions.add_transition."""

    def test_appends_to_existing_trigger(self) -> None:
        """A second candidate is appended to the trigger."""
        table = Instructions({"melt": [{"origins": "solid", "destination": "liquid"}]})
        table.add_transition("melt", {"origins": "solid", "destination": "liquid"})
        assert len(table.states) == 2
        assert len(table.transitions) == 1
        assert len(table.candidates("melt")) == 2

    def test_new_trigger_registers_new_states(self) -> None:
        """A new trigger registers its unknown states."""
        table = Instructions({"melt": {"origins": "solid", "destination": "liquid"}})
        table.add_transition("to_obsidian", Transition(origins="solid", destination="obsidian"))
        assert len(table.states) == 3
        assert len(table.transitions) == 2

    def test_factory_function(self) -> None:
        """instructions() builds the same table as the class."""
        table = instructions(STATES)
        table.add_state("obsidian")
        assert "to_obsidian" in table


class TestLoading:
    """Tests for loading tables from plain data and YAML."""

    def test_from_dict_with_transitions_key(self) -> None:
        """A states list fixes order and adds unmentioned states."""
        result = Instructions.from_dict({
            "states": ["idle", "busy", "broken"],
            "transitions": {"work": {"origins": "idle", "destination": "busy"}},
        })
        table = result.unwrap()
        assert table.states == ("idle", "busy", "broken")

    def test_from_dict_bare_map(self) -> None:
        """A bare trigger map is accepted."""
        table = Instructions.from_dict(MATTER_TRANSITIONS).unwrap()
        assert "boil" in table

    def test_from_dict_reports_bad_definition(self) -> None:
        """A bad definition is reported with its trigger."""
        result = Instructions.from_dict({"transitions": {"work": {"origins": "idle"}}})
        assert result.is_err()
        assert result.unwrap_err().trigger == "work"

    def test_from_yaml(self, tmp_path) -> None:
        """A YAML machine file loads into a table."""
        path = tmp_path / "machine.yaml"
        path.write_text(
            "transitions:\n"
            "  walk:\n"
            "    origins: stopped\n"
            "    destination: walking\n"
            "    conditions: [has_energy]\n"
            "  stop: {origins: walking, destination: stopped}\n"
        )
        table = Instructions.from_yaml(path).unwrap()
        assert table.states == ("walking", "stopped")
        (walk,) = table.candidates("walk")
        assert walk.conditions == ("has_energy",)

    def test_from_yaml_missing_file(self, tmp_path) -> None:
        """A missing file is reported as not found."""
        result = Instructions.from_yaml(tmp_path / "nope.yaml")
        assert result.is_err()
        assert "not found" in str(result.unwrap_err())

    def test_from_yaml_invalid_yaml(self, tmp_path) -> None:
        """Unparseable YAML is an error result."""
        path = tmp_path / "bad.yaml"
        path.write_text("transitions: [unclosed\n")
        assert Instructions.from_yaml(path).is_err()

    def test_to_dict_round_trips_through_from_dict(self) -> None:
        """to_dict output loads back into an equal table."""
        table = Instructions(HERO_TRANSITIONS)
        again = Instructions.from_dict(table.to_dict()).unwrap()
        assert again.states == table.states
        assert again.candidates("patrol") == table.candidates("patrol")
