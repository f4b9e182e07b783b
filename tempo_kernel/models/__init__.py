"""Tempo kernel data models."""

from tempo_kernel.models.config import WorldConfig
from tempo_kernel.models.ledger import AntecedentRecord, VariableRecord
from tempo_kernel.models.travel import (
    ReconciliationReport,
    TravelReport,
    TravelVerdict,
)

__all__ = [
    "AntecedentRecord",
    "ReconciliationReport",
    "TravelReport",
    "TravelVerdict",
    "VariableRecord",
    "WorldConfig",
]
