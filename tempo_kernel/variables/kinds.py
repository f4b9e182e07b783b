"""
Variable kinds — the declarative vocabulary of a world.

A world is a set of named boolean variables:
  mutable:   inputs the player changes; default value assumed when unknown
  derived:   pure formulas over other variables, never a source of truth
  triggered: one-way latches that fire when a predicate first holds

Variables are immutable after construction and compare by name. Only their
values in a given time period change.
"""

from __future__ import annotations

import random
from enum import Enum
from functools import total_ordering
from typing import TYPE_CHECKING, Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from tempo_kernel.errors import VariableGraphError

if TYPE_CHECKING:
    from tempo_kernel.state.partial import ConcreteState


class VariableKind(str, Enum):
    MUTABLE = "mutable"
    DERIVED = "derived"
    TRIGGERED = "triggered"


@total_ordering
class Variable:
    """A named boolean. The name is the variable's identity."""

    kind: VariableKind

    def __init__(self, name: str):
        if not name:
            raise VariableGraphError("Variable name must be non-empty")
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    @property
    def dependencies(self) -> Tuple["Variable", ...]:
        return ()

    @property
    def closure(self) -> FrozenSet["Variable"]:
        """Every variable this one depends on, directly or transitively."""
        return frozenset()

    def is_dependent_on(self, other: "Variable") -> bool:
        return other in self.closure

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Variable):
            return NotImplemented
        return self._name == other._name

    def __lt__(self, other: "Variable") -> bool:
        if not isinstance(other, Variable):
            return NotImplemented
        return self._name < other._name

    def __hash__(self) -> int:
        return hash(self._name)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._name!r})"


class MutableVariable(Variable):
    """
    An input variable.

    A non-reversible variable, once changed from its default, can never be
    changed back. It models a permanent world-altering action.
    """

    kind = VariableKind.MUTABLE

    def __init__(self, name: str, default_value: bool, reversible: bool = True):
        super().__init__(name)
        self.default_value = bool(default_value)
        self.reversible = reversible


class _DependentVariable(Variable):
    """Shared dependency handling for derived and triggered variables."""

    def __init__(self, name: str, dependencies: Iterable[Variable]):
        super().__init__(name)
        self._dependencies = tuple(dependencies)
        for dep in self._dependencies:
            if not isinstance(dep, Variable):
                raise VariableGraphError(
                    f"Dependency {dep!r} of {name!r} is not a Variable"
                )
            if dep.name == name:
                raise VariableGraphError(f"Variable {name!r} depends on itself")
        # Dependencies exist before their dependents, so the closure is
        # built once here and never needs recomputing.
        closure = set(self._dependencies)
        for dep in self._dependencies:
            closure.update(dep.closure)
        if self in closure:
            raise VariableGraphError(f"Variable {name!r} depends on itself")
        self._closure = frozenset(closure)

    @property
    def dependencies(self) -> Tuple[Variable, ...]:
        return self._dependencies

    @property
    def closure(self) -> FrozenSet[Variable]:
        return self._closure


class DerivedVariable(_DependentVariable):
    """A variable whose value is always a pure formula over others."""

    kind = VariableKind.DERIVED

    def __init__(
        self,
        name: str,
        dependencies: Iterable[Variable],
        formula: Callable[["ConcreteState"], bool],
    ):
        super().__init__(name, dependencies)
        self._formula = formula

    def derive_value(self, state: "ConcreteState") -> bool:
        return bool(self._formula(state))


class TriggeredVariable(_DependentVariable):
    """
    A one-way latch.

    Once known to have fired it stays true, whatever happens to its
    dependencies, until time travel rewinds past the firing. A persistent
    trigger is an irrevocable story event: when it fires, the future is
    reconciled immediately.
    """

    kind = VariableKind.TRIGGERED

    def __init__(
        self,
        name: str,
        dependencies: Iterable[Variable],
        predicate: Callable[["ConcreteState"], bool],
        is_persistent: bool = False,
    ):
        super().__init__(name, dependencies)
        self._predicate = predicate
        self.is_persistent = is_persistent

    def should_trigger(self, state: "ConcreteState") -> bool:
        return bool(self._predicate(state))


class NumericVariableProxy:
    """
    An unsigned integer in [0, max_value], stored little-endian in mutable bits.

    Not a Variable itself. Its bits must be declared in the world alongside
    everything else; bit combinations decoding above max_value are
    contradictions.
    """

    def __init__(self, name: str, starting_value: int, max_value: int):
        if max_value < 0:
            raise VariableGraphError(f"{name!r}: max_value must be non-negative")
        if not 0 <= starting_value <= max_value:
            raise VariableGraphError(
                f"{name!r}: starting value {starting_value} outside [0, {max_value}]"
            )
        self.name = name
        self.starting_value = starting_value
        self.max_value = max_value
        self.variables: List[MutableVariable] = [
            MutableVariable(f"{name}_bit{i}", bool((starting_value >> i) & 1))
            for i in range(max_value.bit_length())
        ]

    @classmethod
    def from_weights(
        cls,
        name: str,
        weights: Sequence[float],
        rng: Optional[random.Random] = None,
    ) -> "NumericVariableProxy":
        """Draw the starting value from ``weights``; max_value is len(weights) - 1."""
        if not weights:
            raise VariableGraphError(f"{name!r}: at least one weight is required")
        rng = rng or random.Random()
        starting_value = rng.choices(range(len(weights)), weights=weights)[0]
        return cls(name, starting_value, len(weights) - 1)

    def encode(self, value: int) -> Dict[MutableVariable, bool]:
        if not 0 <= value <= self.max_value:
            raise VariableGraphError(
                f"{self.name!r}: value {value} outside [0, {self.max_value}]"
            )
        return {bit: bool((value >> i) & 1) for i, bit in enumerate(self.variables)}

    def get_value(self, state: "ConcreteState") -> int:
        return sum(1 << i for i, bit in enumerate(self.variables) if state.get(bit))

    def is_valid(self, state: "ConcreteState") -> bool:
        return self.get_value(state) <= self.max_value

    def __repr__(self) -> str:
        return f"NumericVariableProxy({self.name!r}, max_value={self.max_value})"
