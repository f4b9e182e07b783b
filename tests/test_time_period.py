"""Tests for the per-tick provenance ledger."""

import pytest

from tempo_kernel.errors import InternalConsistencyError, StartStateOverrideError
from tempo_kernel.timeline.period import TimePeriod, carries_across_periods
from tempo_kernel.variables.graph import VariableGraph
from tempo_kernel.variables.kinds import DerivedVariable, MutableVariable, TriggeredVariable


def _make_period(time: int = 0):
    lever1 = MutableVariable("lever1", True)
    lever2 = MutableVariable("lever2", False)
    door_a = DerivedVariable("doorAOpen", [lever1], lambda s: not s.get(lever1))
    door_c = TriggeredVariable("doorCOpen", [door_a], lambda s: s.get(door_a))
    beacon = TriggeredVariable("beaconLit", [lever2], lambda s: s.get(lever2), is_persistent=True)
    graph = VariableGraph([lever1, lever2, door_a, door_c, beacon])
    return TimePeriod(time, graph), lever1, lever2, door_a, door_c, beacon


class TestObservation:
    def test_first_observation_fixes_start(self):
        period, lever1, *_ = _make_period()
        period.variable_was_observed(lever1, True)
        record = period.record(lever1)
        assert record.start_value is True
        assert record.observed_value is True
        assert period.start_value_of(lever1) is True
        assert period.peek_value(lever1) is True

    def test_observation_after_modification_keeps_start_open(self):
        period, _, lever2, *_ = _make_period()
        period.variable_was_modified(lever2, True)
        period.variable_was_observed(lever2, True)
        assert period.start_value_of(lever2) is None
        assert period.peek_value(lever2) is True
        assert period.record(lever2).modified_since_observed is False

    def test_unknown_until_observed(self):
        period, lever1, _, door_a, *_ = _make_period()
        assert period.peek_value(lever1) is None
        assert period.peek_value(door_a) is None
        assert len(period.to_partial_current_state()) == 0


class TestModification:
    def test_modification_clears_derived_dependents(self):
        period, lever1, _, door_a, door_c, _ = _make_period()
        period.variable_was_observed(lever1, True)
        period.variable_was_observed(door_a, False)
        period.variable_was_modified(lever1, False)

        record = period.record(door_a)
        assert record.current_value is None
        assert record.modified_since_observed is True
        assert record.modified_since_start is True
        assert period.peek_value(door_a) is None
        # Latches are not recomputed here
        assert period.peek_value(door_c) is None

    def test_returning_to_start_restores_derived_start(self):
        period, lever1, _, door_a, *_ = _make_period()
        period.variable_was_observed(lever1, True)
        period.variable_was_observed(door_a, False)
        period.variable_was_modified(lever1, False)
        period.variable_was_modified(lever1, True)

        assert period.record(door_a).modified_since_start is False
        assert period.peek_value(door_a) is False

    def test_unobserved_root_is_assumed_default(self):
        period, lever1, _, door_a, *_ = _make_period()
        period.variable_was_modified(lever1, True)
        assert period.record(door_a).modified_since_start is False


class TestTriggering:
    def test_antecedent_captures_known_dependencies(self):
        period, lever1, _, door_a, door_c, _ = _make_period()
        period.variable_was_observed(lever1, False)
        antecedent = period.variable_was_triggered(door_c)

        assert antecedent.trigger == "doorCOpen"
        assert antecedent.recorded == {"lever1": False}
        assert antecedent.unrecorded == ["doorAOpen"]
        assert period.antecedent_for(door_c) == antecedent
        assert period.antecedents == [antecedent]
        assert period.peek_value(door_c) is True
        assert period.record(door_c).modified_since_start is True

    def test_no_antecedent_before_firing(self):
        period, *_, door_c, _ = _make_period()
        assert period.antecedent_for(door_c) is None
        assert period.antecedents == []


class TestStartOverride:
    def test_override_once(self):
        period, _, lever2, *_ = _make_period()
        assert period.can_override_start(lever2)
        period.override_start_state(lever2, True)
        assert period.start_value_of(lever2) is True
        assert period.peek_value(lever2) is True
        assert not period.can_override_start(lever2)

    def test_second_override_is_fatal(self):
        period, _, lever2, *_ = _make_period()
        period.override_start_state(lever2, True)
        with pytest.raises(StartStateOverrideError) as excinfo:
            period.override_start_state(lever2, False)
        assert isinstance(excinfo.value, InternalConsistencyError)
        assert str(excinfo.value).startswith("internal error:")

    def test_override_after_observation_is_fatal(self):
        period, lever1, *_ = _make_period()
        period.variable_was_observed(lever1, True)
        with pytest.raises(StartStateOverrideError):
            period.override_start_state(lever1, False)


class TestBoundaryKnowledge:
    def test_end_state_drops_stale_values(self):
        period, lever1, lever2, door_a, *_ = _make_period()
        period.variable_was_observed(lever1, True)
        period.variable_was_modified(lever2, True)

        end = period.to_partial_concrete_end_state()
        assert end.to_dict() == {"lever1": True}

        period.variable_was_observed(lever2, True)
        end = period.to_partial_concrete_end_state()
        assert end.to_dict() == {"lever1": True, "lever2": True}

    def test_end_state_leaves_transient_triggers_behind(self):
        period, lever1, lever2, door_a, door_c, beacon = _make_period()
        period.variable_was_observed(door_c, True)
        period.variable_was_observed(beacon, True)
        assert period.to_partial_concrete_end_state().to_dict() == {"beaconLit": True}

    def test_start_state(self):
        period, lever1, lever2, *_ = _make_period()
        period.variable_was_observed(lever1, True)
        period.variable_was_modified(lever1, False)
        period.override_start_state(lever2, True)
        assert period.to_partial_concrete_start_state().to_dict() == {
            "lever1": True,
            "lever2": True,
        }

    def test_carries_across_periods(self):
        _, lever1, _, door_a, door_c, beacon = _make_period()
        assert carries_across_periods(lever1)
        assert carries_across_periods(door_a)
        assert not carries_across_periods(door_c)
        assert carries_across_periods(beacon)

    def test_snapshot(self):
        period, lever1, *_ = _make_period(time=-1)
        period.variable_was_observed(lever1, True)
        snapshot = period.snapshot()
        assert snapshot["time"] == -1
        assert snapshot["variables"]["lever1"]["start_value"] is True
        assert snapshot["antecedents"] == []
