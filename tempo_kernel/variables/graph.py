"""
Variable Graph — the immutable declaration of a world's variables.

Built once at world-setup time. Partitions variables by kind for fast
iteration, fixes a single evaluation order for derived and triggered
variables, and indexes which variables depend on which.
"""

from typing import Dict, Iterable, Iterator, List, Sequence, Tuple

from tempo_kernel.errors import VariableGraphError
from tempo_kernel.variables.kinds import (
    DerivedVariable,
    MutableVariable,
    NumericVariableProxy,
    TriggeredVariable,
    Variable,
    VariableKind,
)


class VariableGraph:
    """
    All declared variables of one world.

    Declaration order matters: mutable variables are searched in the order
    they were declared, and evaluation order is stable with respect to it.
    """

    def __init__(
        self,
        variables: Iterable[Variable],
        numeric_proxies: Iterable[NumericVariableProxy] = (),
    ):
        self._variables: List[Variable] = list(variables)
        self._by_name: Dict[str, Variable] = {}
        for variable in self._variables:
            if not isinstance(variable, Variable):
                raise VariableGraphError(f"{variable!r} is not a Variable")
            if variable.name in self._by_name:
                raise VariableGraphError(f"Duplicate variable name: {variable.name!r}")
            self._by_name[variable.name] = variable

        for variable in self._variables:
            for dep in variable.dependencies:
                if self._by_name.get(dep.name) is not dep:
                    raise VariableGraphError(
                        f"{variable.name!r} depends on undeclared variable {dep.name!r}"
                    )

        self.numeric_proxies: Tuple[NumericVariableProxy, ...] = tuple(numeric_proxies)
        for proxy in self.numeric_proxies:
            for bit in proxy.variables:
                if self._by_name.get(bit.name) is not bit:
                    raise VariableGraphError(
                        f"Bit {bit.name!r} of numeric proxy {proxy.name!r} is not declared"
                    )

        self.mutables: Tuple[MutableVariable, ...] = tuple(
            v for v in self._variables if v.kind == VariableKind.MUTABLE
        )
        self.deriveds: Tuple[DerivedVariable, ...] = tuple(
            v for v in self._variables if v.kind == VariableKind.DERIVED
        )
        self.triggereds: Tuple[TriggeredVariable, ...] = tuple(
            v for v in self._variables if v.kind == VariableKind.TRIGGERED
        )
        self.evaluation_order: Tuple[Variable, ...] = self._topological_order()
        self._dependents: Dict[Variable, Tuple[Variable, ...]] = self._index_dependents()

    def _topological_order(self) -> Tuple[Variable, ...]:
        """Order derived and triggered variables so dependencies come first."""
        pending = [v for v in self._variables if v.kind != VariableKind.MUTABLE]
        placed = set(self.mutables)
        order: List[Variable] = []
        while pending:
            ready = [v for v in pending if all(d in placed for d in v.dependencies)]
            if not ready:
                names = ", ".join(v.name for v in pending)
                raise VariableGraphError(f"Dependency cycle among: {names}")
            for variable in ready:
                order.append(variable)
                placed.add(variable)
            pending = [v for v in pending if v not in placed]
        return tuple(order)

    def _index_dependents(self) -> Dict[Variable, Tuple[Variable, ...]]:
        index: Dict[Variable, List[Variable]] = {v: [] for v in self._variables}
        for dependent in self.evaluation_order:
            for variable in dependent.closure:
                index[variable].append(dependent)
        return {v: tuple(deps) for v, deps in index.items()}

    # --- Lookup ---

    def get(self, name: str) -> Variable:
        """Get a variable by name."""
        try:
            return self._by_name[name]
        except KeyError:
            raise VariableGraphError(f"Unknown variable: {name!r}") from None

    def require(self, variable: Variable) -> Variable:
        """Check that a variable belongs to this graph."""
        if self._by_name.get(variable.name) is not variable:
            raise VariableGraphError(f"Variable {variable.name!r} is not part of this world")
        return variable

    def __contains__(self, variable: object) -> bool:
        return isinstance(variable, Variable) and self._by_name.get(variable.name) is variable

    def __iter__(self) -> Iterator[Variable]:
        return iter(self._variables)

    def __len__(self) -> int:
        return len(self._variables)

    # --- Reverse dependencies ---

    def dependents_of(self, variable: Variable) -> Tuple[Variable, ...]:
        """Derived and triggered variables whose closure contains ``variable``."""
        return self._dependents.get(variable, ())

    def derived_dependents_of(self, variable: Variable) -> List[DerivedVariable]:
        return [v for v in self.dependents_of(variable) if v.kind == VariableKind.DERIVED]

    def triggers_dependent_on(self, variable: Variable) -> List[TriggeredVariable]:
        return [v for v in self.dependents_of(variable) if v.kind == VariableKind.TRIGGERED]

    def roots_of(self, variable: Variable) -> List[Variable]:
        """The mutable and triggered variables a variable ultimately reads."""
        return [
            v for v in self._variables
            if v in variable.closure and v.kind != VariableKind.DERIVED
        ]

    def relevant_to(self, trigger: TriggeredVariable) -> Sequence[Variable]:
        """The trigger itself and everything it depends on."""
        return [v for v in self._variables if v is trigger or trigger.is_dependent_on(v)]
