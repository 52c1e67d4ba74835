"""
Pure domain layer.

Data transfer objects, quantity validation, consumption plans and the
clock abstraction.  Nothing here touches the database.
"""

from inventory_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from inventory_kernel.domain.dtos import (
    AdjustmentReason,
    AdjustmentType,
    AllocationStrategy,
    Destination,
    ExpiryStatus,
    ItemSnapshot,
    LotFields,
    LotSnapshot,
    MovementMetadata,
    MovementRecord,
    MovementSummary,
    MovementType,
    ReconciliationResult,
    StockStatus,
    format_reason_notes,
)
from inventory_kernel.domain.plan import ConsumptionPlan, PlanLine

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "AdjustmentReason",
    "AdjustmentType",
    "AllocationStrategy",
    "Destination",
    "ExpiryStatus",
    "ItemSnapshot",
    "LotFields",
    "LotSnapshot",
    "MovementMetadata",
    "MovementRecord",
    "MovementSummary",
    "MovementType",
    "ReconciliationResult",
    "StockStatus",
    "format_reason_notes",
    "ConsumptionPlan",
    "PlanLine",
]
