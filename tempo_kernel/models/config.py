"""World configuration."""

from pydantic import BaseModel, Field


class WorldConfig(BaseModel):
    """Configuration for a World."""

    start_time: int = 0
    observe_on_write: bool = True               # Observe prior and new value on set()
    reconcile_irreversible_writes: bool = True  # Eagerly reconcile later periods
    max_log_entries: int = Field(ge=1, default=1000)  # Travel and reconciliation reports kept
