"""Per-variable provenance and trigger antecedents kept by each time period."""

from typing import Dict, List, Optional

from pydantic import BaseModel


class VariableRecord(BaseModel):
    """
    What one time period knows about one variable, and how reliably.

    Start values describe the variable as the period began; current values
    describe it as the period stands now.
    """

    modified_since_start: bool = False      # Could have been altered since start was fixed
    modified_since_observed: bool = False   # Could have changed since last observation
    start_value: Optional[bool] = None      # Observed before any modification
    start_override: Optional[bool] = None   # Write-once correction from reconciliation
    current_value: Optional[bool] = None
    observed_value: Optional[bool] = None

    @property
    def known_start(self) -> Optional[bool]:
        if self.start_override is not None:
            return self.start_override
        return self.start_value


class AntecedentRecord(BaseModel):
    """
    The dependency snapshot present when a triggered variable fired.

    Replayed during travel to validate, and if needed repair, the
    destination's history.
    """

    trigger: str
    recorded: Dict[str, bool] = {}          # Dependencies reliably known at firing time
    unrecorded: List[str] = []              # Dependencies that were not
