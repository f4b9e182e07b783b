"""
Time Period — the provenance ledger of one integer tick.

For every variable a period records what was known at its start, what is
known now, and whether either may have gone stale. Triggered variables that
fire here also leave an antecedent: the dependency values that were reliably
known at the moment of firing.

Updated by: World.set / World.travel_to
Queried by: World reads and travel reconciliation
"""

import logging
from typing import Dict, List, Optional

from tempo_kernel.errors import StartStateOverrideError
from tempo_kernel.models.ledger import AntecedentRecord, VariableRecord
from tempo_kernel.state.partial import PartialState
from tempo_kernel.variables.graph import VariableGraph
from tempo_kernel.variables.kinds import TriggeredVariable, Variable, VariableKind

logger = logging.getLogger(__name__)


def carries_across_periods(variable: Variable) -> bool:
    """False for non-persistent triggers and anything derived from them."""
    return not any(
        v.kind == VariableKind.TRIGGERED and not v.is_persistent
        for v in (variable, *variable.closure)
    )


class TimePeriod:
    """
    Per-tick ledger. Owned by the World; nothing else mutates it.

    Per-variable transitions:
      observed:  latest observed value; locks the start value unless the
                 variable may already have been modified; clears staleness
      modified:  sets the current value, flags the variable and its derived
                 dependents as possibly modified
      triggered: a modification to true plus an antecedent snapshot
    """

    def __init__(self, time: int, graph: VariableGraph):
        self.time = time
        self.graph = graph
        self._records: Dict[str, VariableRecord] = {v.name: VariableRecord() for v in graph}
        self._antecedents: Dict[str, AntecedentRecord] = {}

    def record(self, variable: Variable) -> VariableRecord:
        return self._records[self.graph.require(variable).name]

    @property
    def antecedents(self) -> List[AntecedentRecord]:
        return list(self._antecedents.values())

    def antecedent_for(self, trigger: TriggeredVariable) -> Optional[AntecedentRecord]:
        return self._antecedents.get(trigger.name)

    # --- Transitions ---

    def variable_was_observed(self, variable: Variable, value: bool) -> None:
        record = self.record(variable)
        value = bool(value)
        record.observed_value = value
        record.current_value = value
        if not record.modified_since_start:
            record.start_value = value
        record.modified_since_observed = False

    def variable_was_modified(self, variable: Variable, value: bool) -> None:
        record = self.record(variable)
        record.current_value = bool(value)
        record.modified_since_observed = True
        record.modified_since_start = True

        for dependent in self.graph.derived_dependents_of(variable):
            dep_record = self._records[dependent.name]
            dep_record.current_value = None
            dep_record.modified_since_observed = True
            dep_record.modified_since_start = not self._could_equal_start(dependent)

    def variable_was_triggered(self, trigger: TriggeredVariable) -> AntecedentRecord:
        recorded: Dict[str, bool] = {}
        unrecorded: List[str] = []
        for dep in self.graph:
            if not trigger.is_dependent_on(dep):
                continue
            value = self.peek_value(dep)
            if value is None:
                unrecorded.append(dep.name)
            else:
                recorded[dep.name] = value
        antecedent = AntecedentRecord(
            trigger=trigger.name, recorded=recorded, unrecorded=unrecorded
        )
        self._antecedents[trigger.name] = antecedent
        self.variable_was_modified(trigger, True)
        logger.debug(f"t={self.time}: {trigger.name} fired with antecedent {recorded}")
        return antecedent

    def _could_equal_start(self, derived: Variable) -> bool:
        """Whether every root of ``derived`` still holds its start value."""
        for root in self.graph.roots_of(derived):
            record = self._records[root.name]
            start = record.known_start
            if start is None:
                if root.kind != VariableKind.MUTABLE:
                    return False
                start = root.default_value
            current = self.peek_value(root)
            if current is not None and current != start:
                return False
        return True

    def override_start_state(self, variable: Variable, value: bool) -> None:
        """Write-once correction of a start value that was never fixed."""
        record = self.record(variable)
        if not self.can_override_start(variable):
            raise StartStateOverrideError(
                f"t={self.time}: start state of {variable.name!r} is already fixed "
                f"(start={record.known_start}, current={record.current_value})"
            )
        record.start_override = bool(value)
        logger.debug(f"t={self.time}: start of {variable.name} overridden to {value}")

    def can_override_start(self, variable: Variable) -> bool:
        record = self.record(variable)
        return record.known_start is None and record.current_value is None

    # --- Queries ---

    def peek_value(self, variable: Variable) -> Optional[bool]:
        """Best-known current value, or None when unknown."""
        record = self.record(variable)
        if record.current_value is not None:
            return record.current_value
        if not record.modified_since_start:
            return record.known_start
        return None

    def start_value_of(self, variable: Variable) -> Optional[bool]:
        return self.record(variable).known_start

    def to_partial_current_state(self) -> PartialState:
        """Everything currently known about this period."""
        values = {}
        for variable in self.graph:
            value = self.peek_value(variable)
            if value is not None:
                values[variable] = value
        return PartialState(self.graph, values)

    def to_partial_concrete_end_state(self) -> PartialState:
        """
        Outgoing knowledge: values known and not stale since last observed.

        Non-persistent triggers, and whatever is derived from them, stay
        behind; their firing belongs to this period only.
        """
        values = {}
        for variable in self.graph:
            if not carries_across_periods(variable):
                continue
            record = self._records[variable.name]
            if record.current_value is not None:
                if not record.modified_since_observed:
                    values[variable] = record.current_value
            elif not record.modified_since_start and record.known_start is not None:
                values[variable] = record.known_start
        return PartialState(self.graph, values)

    def to_partial_concrete_start_state(self) -> PartialState:
        """Incoming knowledge: start values fixed before any modification."""
        values = {}
        for variable in self.graph:
            start = self._records[variable.name].known_start
            if start is not None:
                values[variable] = start
        return PartialState(self.graph, values)

    def snapshot(self) -> dict:
        """Serializable view of the ledger."""
        return {
            "time": self.time,
            "variables": {
                name: record.model_dump() for name, record in self._records.items()
            },
            "antecedents": [a.model_dump() for a in self._antecedents.values()],
        }

    def __repr__(self) -> str:
        return f"TimePeriod(time={self.time})"
