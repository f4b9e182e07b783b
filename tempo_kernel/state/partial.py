"""
Concrete and Partial State — boolean assignments and their completion.

A PartialState holds observed values for some variables. Completing it fills
every unobserved mutable variable with its default, evaluates derived and
triggered variables in dependency order, and checks numeric ranges. A
completion either satisfies every constraint or does not exist.

When the default completion is contradictory, a depth-first search flips
unobserved mutable variables away from their defaults until a consistent
completion is found. The traversal order is fixed: callers rely on which
variable gets flipped when several solutions exist.
"""

import logging
from enum import Enum
from typing import Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from tempo_kernel.errors import ContradictionError, VariableGraphError
from tempo_kernel.variables.graph import VariableGraph
from tempo_kernel.variables.kinds import MutableVariable, Variable, VariableKind

logger = logging.getLogger(__name__)


class TriggerMode(str, Enum):
    """How a recorded trigger value is checked against its predicate."""
    LATCHED = "latched"  # Recorded false must not fire; recorded true always stands
    EXACT = "exact"      # Recorded value must equal the predicate (firing contexts)


class ConcreteState:
    """A total assignment of every declared variable."""

    def __init__(self, values: Dict[Variable, bool]):
        self._values = values

    def get(self, variable: Variable) -> bool:
        try:
            return self._values[variable]
        except KeyError:
            raise VariableGraphError(
                f"{variable.name!r} has no value yet; is it a declared dependency?"
            ) from None

    def __getitem__(self, variable: Variable) -> bool:
        return self.get(variable)

    def __contains__(self, variable: object) -> bool:
        return variable in self._values

    def __iter__(self) -> Iterator[Variable]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def items(self):
        return self._values.items()

    def to_dict(self) -> Dict[str, bool]:
        return {v.name: value for v, value in self._values.items()}

    def __repr__(self) -> str:
        inner = ", ".join(f"{v.name}={value}" for v, value in self._values.items())
        return f"ConcreteState({inner})"


class PartialState:
    """Observed values for a subset of a graph's variables."""

    def __init__(
        self,
        graph: VariableGraph,
        observed_values: Optional[Mapping[Variable, bool]] = None,
    ):
        self.graph = graph
        self.observed_values: Dict[Variable, bool] = {}
        for variable, value in (observed_values or {}).items():
            graph.require(variable)
            self.observed_values[variable] = bool(value)

    # --- Completion ---

    def _complete(self, mode: TriggerMode) -> Tuple[Optional[ConcreteState], Optional[str]]:
        """Default-fill and evaluate. Returns the state, or the reason there is none."""
        values: Dict[Variable, bool] = dict(self.observed_values)
        for mutable in self.graph.mutables:
            values.setdefault(mutable, mutable.default_value)
        state = ConcreteState(values)

        for variable in self.graph.evaluation_order:
            recorded = values.get(variable)
            if variable.kind == VariableKind.DERIVED:
                computed = variable.derive_value(state)
                if recorded is not None and recorded != computed:
                    return None, f"{variable.name} observed {recorded}, derives {computed}"
                values[variable] = computed
            elif variable.kind == VariableKind.TRIGGERED:
                fires = variable.should_trigger(state)
                if recorded is None:
                    values[variable] = fires
                elif mode == TriggerMode.EXACT:
                    if recorded != fires:
                        return None, f"{variable.name} recorded {recorded}, predicate {fires}"
                elif fires and not recorded:
                    # Once fired, a latch cannot read false
                    return None, f"{variable.name} recorded False but fires"

        for proxy in self.graph.numeric_proxies:
            if not proxy.is_valid(state):
                return None, (
                    f"{proxy.name} decodes to {proxy.get_value(state)} > {proxy.max_value}"
                )
        return state, None

    def to_concrete_state(
        self, mode: TriggerMode = TriggerMode.LATCHED
    ) -> Optional[ConcreteState]:
        """The default completion, or None when it is contradictory."""
        state, reason = self._complete(mode)
        if state is None:
            logger.debug(f"Contradiction in {self.describe()}: {reason}")
        return state

    def is_default_contradictory(self, mode: TriggerMode = TriggerMode.LATCHED) -> bool:
        return self.to_concrete_state(mode) is None

    def get_concrete_value(self, variable: Variable) -> bool:
        if variable in self.observed_values:
            return self.observed_values[variable]
        state = self.to_concrete_state()
        if state is None:
            raise ContradictionError(
                f"Cannot read {variable.name!r}: {self.describe()} is contradictory"
            )
        return state.get(variable)

    # --- Search ---

    def iter_consistent_states(
        self, mode: TriggerMode = TriggerMode.LATCHED
    ) -> Iterator["PartialState"]:
        """
        Yield every consistent completion candidate in search order.

        Depth-first over the unobserved mutable variables in declaration
        order; each candidate is a copy with one more variable pinned to the
        opposite of its default. A child only flips variables declared after
        its parent's last flip, which skips subsets already tried without
        changing which solution is found first.
        """
        candidates = [m for m in self.graph.mutables if m not in self.observed_values]
        return self._search(candidates, mode)

    def _search(
        self, candidates: List[MutableVariable], mode: TriggerMode
    ) -> Iterator["PartialState"]:
        if self._complete(mode)[0] is not None:
            yield self
        for i, variable in enumerate(candidates):
            flipped = self.with_values({variable: not variable.default_value})
            yield from flipped._search(candidates[i + 1:], mode)

    def find_consistent_state(
        self, mode: TriggerMode = TriggerMode.LATCHED
    ) -> Optional["PartialState"]:
        """This state if consistent, else the first consistent flip, else None."""
        found = next(self.iter_consistent_states(mode), None)
        if found is None:
            logger.debug(f"No consistent completion for {self.describe()}")
        elif found is not self:
            flips = ", ".join(f"{v.name}={value}" for v, value in found.flips_from(self).items())
            logger.debug(f"Resolved {self.describe()} by flipping {flips}")
        return found

    # --- Copies ---

    def with_values(self, values: Mapping[Variable, bool]) -> "PartialState":
        merged = dict(self.observed_values)
        merged.update(values)
        return PartialState(self.graph, merged)

    def without(self, variables: Iterable[Variable]) -> "PartialState":
        dropped = set(variables)
        return PartialState(
            self.graph,
            {v: value for v, value in self.observed_values.items() if v not in dropped},
        )

    def restricted_to(self, keep: Callable[[Variable], bool]) -> "PartialState":
        return PartialState(
            self.graph,
            {v: value for v, value in self.observed_values.items() if keep(v)},
        )

    def flips_from(self, base: "PartialState") -> Dict[Variable, bool]:
        """Values pinned here that ``base`` does not pin."""
        return {
            v: value for v, value in self.observed_values.items()
            if v not in base.observed_values
        }

    # --- Presentation ---

    def to_dict(self) -> Dict[str, bool]:
        return {v.name: value for v, value in self._ordered()}

    def _ordered(self) -> List[Tuple[Variable, bool]]:
        return [(v, self.observed_values[v]) for v in self.graph if v in self.observed_values]

    def describe(self) -> str:
        if not self.observed_values:
            return "{}"
        return "{" + ", ".join(f"{v.name}={value}" for v, value in self._ordered()) + "}"

    def __len__(self) -> int:
        return len(self.observed_values)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PartialState):
            return NotImplemented
        return self.graph is other.graph and self.observed_values == other.observed_values

    __hash__ = None

    def __repr__(self) -> str:
        return f"PartialState({self.describe()})"


def conflicting_variables(a: PartialState, b: PartialState) -> List[Variable]:
    """Variables both states pin, to different values."""
    return [
        v for v in a.graph
        if v in a.observed_values and v in b.observed_values
        and a.observed_values[v] != b.observed_values[v]
    ]


def merge_partial_states(a: PartialState, b: PartialState) -> Optional[PartialState]:
    """The union of two partial states, or None when they directly contradict."""
    if conflicting_variables(a, b):
        return None
    return a.with_values(b.observed_values)
