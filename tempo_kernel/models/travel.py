"""Travel and reconciliation reports."""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel


class TravelVerdict(str, Enum):
    ARRIVED = "arrived"                             # Forward travel reconciled
    STAYED = "stayed"                               # Destination is the current tick
    REWOUND = "rewound"                             # Backward travel, always allowed
    DIRECT_CONTRADICTION = "direct_contradiction"   # End and start knowledge disagree
    LOGICAL_CONTRADICTION = "logical_contradiction" # No consistent completion exists


class TravelReport(BaseModel):
    """Outcome of one travel_to() call."""

    from_time: int
    to_time: int
    verdict: TravelVerdict
    dry_run: bool = False
    conflicting_variables: List[str] = []
    overrides: Dict[str, bool] = {}         # Start-state overrides applied at the destination

    @property
    def succeeded(self) -> bool:
        return self.verdict in (
            TravelVerdict.ARRIVED,
            TravelVerdict.STAYED,
            TravelVerdict.REWOUND,
        )


class ReconciliationReport(BaseModel):
    """
    Outcome of eagerly reconciling the future after an irrevocable change.

    ``cause`` names the non-reversible variable that was written, or the
    persistent trigger that fired.
    """

    cause: str
    source_time: int
    target_time: int
    success: bool
    source_overrides: Dict[str, bool] = {}
    target_overrides: Dict[str, bool] = {}
    reason: Optional[str] = None
