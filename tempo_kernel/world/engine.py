"""
World — the single entry point of the tempo kernel.

Owns the variable graph and every time period. Reads consult the current
period and fall back to the solver; writes mutate the current period and
re-examine latches; travel reconciles the departing period's end knowledge
with the destination's start knowledge.

States of a travel_to(t) call:
  t == now  → STAYED
  t <  now  → REWOUND (always allowed; the caller guards backward travel)
  t >  now  → MERGE → (DIRECT_CONTRADICTION | SEARCH → (LOGICAL_CONTRADICTION | ARRIVED))

Irrevocable changes (writes to non-reversible variables, persistent trigger
firings) cannot wait for a later travel: the future is reconciled at once.
"""

import logging
from collections import deque
from typing import Deque, Dict, Iterable, List, Optional, Tuple

from tempo_kernel.errors import (
    AntecedentReconciliationError,
    InternalConsistencyError,
    IrreversibleWriteError,
    StartStateOverrideError,
    VariableGraphError,
)
from tempo_kernel.models.config import WorldConfig
from tempo_kernel.models.ledger import AntecedentRecord
from tempo_kernel.models.travel import ReconciliationReport, TravelReport, TravelVerdict
from tempo_kernel.state.partial import (
    ConcreteState,
    PartialState,
    TriggerMode,
    conflicting_variables,
    merge_partial_states,
)
from tempo_kernel.timeline.period import TimePeriod, carries_across_periods
from tempo_kernel.variables.graph import VariableGraph
from tempo_kernel.variables.kinds import (
    MutableVariable,
    NumericVariableProxy,
    TriggeredVariable,
    Variable,
    VariableKind,
)

logger = logging.getLogger(__name__)


class World:
    """
    A boolean world observed across revisitable integer ticks.

    Time periods are created on first visit and kept for the World's
    lifetime; history is patched, never forked.
    """

    def __init__(
        self,
        variables: Iterable[Variable],
        numeric_proxies: Iterable[NumericVariableProxy] = (),
        start_time: Optional[int] = None,
        config: Optional[WorldConfig] = None,
    ):
        self.config = config or WorldConfig()
        self.graph = VariableGraph(variables, numeric_proxies)
        time = self.config.start_time if start_time is None else start_time

        self._periods: Dict[int, TimePeriod] = {}
        self._current = self._period(time)
        self.travel_log: Deque[TravelReport] = deque(maxlen=self.config.max_log_entries)
        self.reconciliation_log: Deque[ReconciliationReport] = deque(
            maxlen=self.config.max_log_entries
        )

    # --- Accessors ---

    @property
    def current_time(self) -> int:
        return self._current.time

    @property
    def current_period(self) -> TimePeriod:
        return self._current

    @property
    def periods(self) -> List[int]:
        """Ticks visited so far, in order."""
        return sorted(self._periods)

    @property
    def last_travel(self) -> Optional[TravelReport]:
        return self.travel_log[-1] if self.travel_log else None

    def period_at(self, time: int) -> Optional[TimePeriod]:
        return self._periods.get(time)

    def _period(self, time: int) -> TimePeriod:
        """Get or lazily create the period at ``time``."""
        period = self._periods.get(time)
        if period is None:
            period = TimePeriod(time, self.graph)
            self._periods[time] = period
        return period

    # --- Reads ---

    def peek(self, variable: Variable) -> bool:
        """The variable's value now, without recording an observation."""
        self.graph.require(variable)
        value = self._current.peek_value(variable)
        if value is not None:
            return value
        return self._resolve(self._current.to_partial_current_state()).get(variable)

    def get(self, variable: Variable) -> bool:
        """The variable's value now, recorded as an observation."""
        value = self.peek(variable)
        self._current.variable_was_observed(variable, value)
        return value

    def _resolve(self, knowledge: PartialState) -> ConcreteState:
        resolved = knowledge.find_consistent_state()
        if resolved is None:
            raise InternalConsistencyError(
                f"t={self.current_time}: knowledge {knowledge.describe()} "
                f"has no consistent completion"
            )
        return resolved.to_concrete_state()

    # --- Writes ---

    def set(self, variable: MutableVariable, value: bool) -> None:
        """Write a mutable variable in the current period."""
        self.graph.require(variable)
        if variable.kind != VariableKind.MUTABLE:
            raise VariableGraphError(f"{variable.name!r} is {variable.kind.value}, not mutable")
        value = bool(value)
        period = self._current
        observe = self.config.observe_on_write

        prior = self.get(variable) if observe else self.peek(variable)
        if (
            not variable.reversible
            and prior != variable.default_value
            and value == variable.default_value
        ):
            raise IrreversibleWriteError(
                f"{variable.name!r} is not reversible and has already left its default"
            )

        period.variable_was_modified(variable, value)
        if observe:
            period.variable_was_observed(variable, value)
        logger.debug(f"t={period.time}: {variable.name} set {prior} -> {value}")

        if not variable.reversible and self.config.reconcile_irreversible_writes:
            # Before latches are re-examined, so they see the corrections
            self._reconcile_future(variable)

        for trigger in self._fire_triggers(variable):
            if trigger.is_persistent and self.config.reconcile_irreversible_writes:
                self._reconcile_future(trigger)

    def _fire_triggers(self, variable: Variable) -> List[TriggeredVariable]:
        """Fire every latch on ``variable`` that is not yet known true and now holds."""
        period = self._current
        fired = []
        for trigger in self.graph.triggers_dependent_on(variable):
            if period.peek_value(trigger) is True:
                continue
            knowledge = period.to_partial_current_state().without(
                [trigger, *self.graph.derived_dependents_of(trigger)]
            )
            if not trigger.should_trigger(self._resolve(knowledge)):
                continue
            period.variable_was_triggered(trigger)
            if trigger.is_persistent:
                period.variable_was_observed(trigger, True)
            fired.append(trigger)
            logger.info(f"t={period.time}: {trigger.name} fired after {variable.name} changed")
        return fired

    # --- Travel ---

    def can_travel_to(self, time: int) -> bool:
        return self.travel_to(time, dry_run=True)

    def travel_to(self, time: int, dry_run: bool = False) -> bool:
        """
        Move to ``time``. Returns False when the destination cannot be
        reconciled with what is known; the current period is then unchanged.
        """
        source = self._current

        if time == source.time:
            return self._report(source.time, time, TravelVerdict.STAYED, dry_run)

        if time < source.time:
            if not dry_run:
                self._current = self._period(time)
            return self._report(source.time, time, TravelVerdict.REWOUND, dry_run)

        destination = self._periods.get(time) or TimePeriod(time, self.graph)
        end_state = source.to_partial_concrete_end_state()
        start_state = destination.to_partial_concrete_start_state()
        # A query should not fill the log with refusals
        log = logger.debug if dry_run else logger.warning

        conflicts = conflicting_variables(end_state, start_state)
        if conflicts:
            log(
                f"Travel {source.time} -> {time} refused: direct contradiction on "
                f"{[v.name for v in conflicts]}"
            )
            return self._report(
                source.time, time, TravelVerdict.DIRECT_CONTRADICTION, dry_run,
                conflicting_variables=[v.name for v in conflicts],
            )

        merged = merge_partial_states(end_state, start_state)
        outcome = self._resolve_arrival(merged, destination)
        if outcome is None:
            log(
                f"Travel {source.time} -> {time} refused: no consistent history for "
                f"{merged.describe()}"
            )
            return self._report(source.time, time, TravelVerdict.LOGICAL_CONTRADICTION, dry_run)

        applied: Dict[str, bool] = {}
        if not dry_run:
            candidate, resolved, overrides = outcome
            applied = self._apply_start_overrides(
                destination, overrides, resolved.flips_from(candidate)
            )
            self._periods[time] = destination
            self._current = destination
            logger.info(f"Arrived at t={time} from t={source.time}; overrides {applied}")
        return self._report(
            source.time, time, TravelVerdict.ARRIVED, dry_run, overrides=applied
        )

    def _report(
        self,
        from_time: int,
        to_time: int,
        verdict: TravelVerdict,
        dry_run: bool,
        **details,
    ) -> bool:
        report = TravelReport(
            from_time=from_time, to_time=to_time, verdict=verdict, dry_run=dry_run, **details
        )
        self.travel_log.append(report)
        return report.succeeded

    # --- Reconciliation ---

    def _resolve_arrival(
        self, merged: PartialState, destination: TimePeriod
    ) -> Optional[Tuple[PartialState, PartialState, Dict[Variable, bool]]]:
        """
        The first completion of ``merged`` under which every latch that fired
        in ``destination`` could still have fired, and which keeps what
        ``destination`` has seen since its start consistent.

        Returns (candidate, resolved, overrides): the main search result, the
        same with the antecedent corrections added, and the start values it
        fixes in ``destination``.
        """
        antecedents = destination.antecedents
        known = destination.to_partial_current_state()
        for candidate in merged.iter_consistent_states():
            resolved = self._replay_antecedents(candidate, antecedents)
            if resolved is None:
                continue
            overrides = self._start_overrides(destination, resolved)
            # A correction that cannot be written would leave the firing unexplained
            if any(v not in overrides for v in resolved.flips_from(candidate)):
                continue
            if known.with_values(overrides).find_consistent_state() is None:
                logger.debug(
                    f"t={destination.time}: {candidate.describe()} contradicts "
                    f"{known.describe()}"
                )
                continue
            return candidate, resolved, overrides
        return None

    def _replay_antecedents(
        self, candidate: PartialState, antecedents: List[AntecedentRecord]
    ) -> Optional[PartialState]:
        resolved = candidate
        for antecedent in antecedents:
            context = self._firing_context(resolved, antecedent)
            for firing in context.iter_consistent_states(TriggerMode.EXACT):
                patched = resolved.with_values(firing.flips_from(context))
                if not patched.is_default_contradictory():
                    resolved = patched
                    break
            else:
                return None

        # Later corrections must not undo an earlier firing
        for antecedent in antecedents:
            if self._firing_context(resolved, antecedent).is_default_contradictory(
                TriggerMode.EXACT
            ):
                return None
        return resolved

    def _firing_context(
        self, resolved: PartialState, antecedent: AntecedentRecord
    ) -> PartialState:
        """The resolved history as the trigger saw it when it fired."""
        trigger = self.graph.get(antecedent.trigger)
        relevant = set(self.graph.relevant_to(trigger))
        recorded = {self.graph.get(name): value for name, value in antecedent.recorded.items()}
        return (
            resolved.restricted_to(lambda v: v in relevant)
            .with_values(recorded)
            .with_values({trigger: True})
        )

    def _start_overrides(
        self, period: TimePeriod, resolved: PartialState
    ) -> Dict[Variable, bool]:
        """
        Resolved values the period would not otherwise assume at its start.

        Only variables whose start is still open are returned. One already
        written since the start keeps its unknown start; its current value
        is checked against the resolution with the rest of the period.
        """
        overrides = {}
        for variable in self.graph:
            if variable not in resolved.observed_values:
                continue
            if not period.can_override_start(variable):
                continue
            value = resolved.observed_values[variable]
            if variable.kind == VariableKind.MUTABLE and value != variable.default_value:
                overrides[variable] = value
            elif variable.kind == VariableKind.TRIGGERED and value:
                overrides[variable] = value
        return overrides

    def _apply_start_overrides(
        self,
        period: TimePeriod,
        overrides: Dict[Variable, bool],
        corrections: Dict[Variable, bool],
    ) -> Dict[str, bool]:
        applied = {}
        for variable, value in overrides.items():
            try:
                period.override_start_state(variable, value)
            except StartStateOverrideError as e:
                if variable in corrections:
                    raise AntecedentReconciliationError(
                        f"t={period.time}: cannot patch {variable.name!r} into the "
                        f"start state to explain a trigger firing"
                    ) from e
                raise
            applied[variable.name] = value
        return applied

    def _reconcile_future(self, cause: Variable) -> None:
        """
        Reconcile the current period with every later period, now.

        Corrections found by the search are fixed into the start state of the
        current period and of the later period. The search only flips
        variables the current period knows nothing about, so their start
        value is their value now. A failure leaves the write in place; the
        later travel reports the contradiction.
        """
        source = self._current
        for time in self.periods:
            if time <= source.time:
                continue
            target = self._periods[time]
            knowledge = source.to_partial_current_state().restricted_to(
                carries_across_periods
            )
            start_state = target.to_partial_concrete_start_state()

            conflicts = conflicting_variables(knowledge, start_state)
            if conflicts:
                self._record_reconciliation(
                    cause, source, target, success=False,
                    reason=f"direct contradiction on {[v.name for v in conflicts]}",
                )
                continue

            merged = merge_partial_states(knowledge, start_state)
            outcome = self._resolve_arrival(merged, target)
            if outcome is None:
                self._record_reconciliation(
                    cause, source, target, success=False,
                    reason="no consistent history",
                )
                continue

            corrections = outcome[1].flips_from(merged)
            source_overrides = {}
            for variable, value in corrections.items():
                if source.can_override_start(variable):
                    source.override_start_state(variable, value)
                    source_overrides[variable.name] = value
            target_overrides = {}
            fixed = self._start_overrides(target, PartialState(self.graph, corrections))
            for variable, value in fixed.items():
                target.override_start_state(variable, value)
                target_overrides[variable.name] = value
            self._record_reconciliation(
                cause, source, target, success=True,
                source_overrides=source_overrides, target_overrides=target_overrides,
            )

    def _record_reconciliation(
        self,
        cause: Variable,
        source: TimePeriod,
        target: TimePeriod,
        success: bool,
        **details,
    ) -> None:
        report = ReconciliationReport(
            cause=cause.name,
            source_time=source.time,
            target_time=target.time,
            success=success,
            **details,
        )
        self.reconciliation_log.append(report)
        if success:
            logger.info(
                f"{cause.name} at t={source.time} reconciled with t={target.time}: "
                f"{report.source_overrides} / {report.target_overrides}"
            )
        else:
            logger.warning(
                f"{cause.name} at t={source.time} cannot be reconciled with "
                f"t={target.time}: {report.reason}"
            )

    # --- Introspection ---

    def snapshot(self) -> dict:
        """Serializable view of every period's ledger."""
        return {
            "current_time": self.current_time,
            "periods": {t: self._periods[t].snapshot() for t in self.periods},
        }
