"""
Exception hierarchy for the tempo kernel.

Two classes of failure exist:
- Expected puzzle feedback (a refused travel) is never an exception. It is
  reported as ``False`` from ``World.travel_to`` / ``World.can_travel_to``.
- Everything below is raised. ``InternalConsistencyError`` and its
  subclasses mean an engine invariant was violated and the operation was
  aborted before it could corrupt the ledger.
"""


class TempoKernelError(Exception):
    """Base class for every error raised by the kernel."""
    pass


class VariableGraphError(TempoKernelError, ValueError):
    """Raised when variable declarations are invalid or a variable is unknown."""
    pass


class ContradictionError(TempoKernelError):
    """Raised when a concrete value is requested from a contradictory partial state."""
    pass


class IrreversibleWriteError(TempoKernelError, ValueError):
    """Raised when a non-reversible variable would be returned to its default."""
    pass


class InternalConsistencyError(TempoKernelError, RuntimeError):
    """Raised when an engine invariant is violated."""

    def __init__(self, message: str):
        super().__init__(f"internal error: {message}")


class StartStateOverrideError(InternalConsistencyError):
    """Raised on a second start-state override, or an override after observation."""
    pass


class AntecedentReconciliationError(InternalConsistencyError):
    """Raised when a trigger's antecedent cannot be patched after travel was accepted."""
    pass
