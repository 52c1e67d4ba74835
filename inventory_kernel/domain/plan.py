"""
Plan -- consumption plan value objects.

Responsibility:
    The hand-off between the allocation planner (which produces a plan from
    a snapshot) and the ledger writer (which re-validates and applies it).

Architecture position:
    Kernel > Domain -- pure, zero I/O.  Lives in the kernel so that the
    ledger writer can accept plans without importing the engines package.

Invariants enforced:
    - Every line quantity is > 0 and <= the lot's snapshot availability.
    - Lines reference distinct lots.
    - Line quantities sum to exactly the requested quantity.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from inventory_kernel.domain.dtos import AllocationStrategy


@dataclass(frozen=True)
class PlanLine:
    """
    One (lot, quantity) pair of a plan.

    ``available_snapshot`` is the lot's quantity_remaining when the plan was
    computed; commit re-checks the live value against ``quantity``.
    """

    lot_id: UUID
    quantity: Decimal
    available_snapshot: Decimal
    lot_code: str | None = None
    storage_location: str | None = None
    unit_cost: Decimal | None = None

    def __post_init__(self) -> None:
        if self.quantity <= 0:
            raise ValueError(f"Plan line quantity must be positive, got {self.quantity}")
        if self.quantity > self.available_snapshot:
            raise ValueError(
                f"Plan line quantity {self.quantity} exceeds snapshot "
                f"availability {self.available_snapshot}"
            )


@dataclass(frozen=True)
class ConsumptionPlan:
    """
    Ordered allocation of a requested quantity over lots.

    Contract:
        Advisory only -- produced against a snapshot and re-validated by the
        ledger writer at commit time.  Abandoning a plan has no effect.
    """

    item_id: UUID
    requested_quantity: Decimal
    strategy: AllocationStrategy
    lines: tuple[PlanLine, ...]
    location_filter: str | None = None

    def __post_init__(self) -> None:
        if not self.lines:
            raise ValueError("ConsumptionPlan requires at least one line")
        lot_ids = [line.lot_id for line in self.lines]
        if len(set(lot_ids)) != len(lot_ids):
            raise ValueError("ConsumptionPlan lines must reference distinct lots")
        if self.total_quantity != self.requested_quantity:
            raise ValueError(
                f"Plan lines sum to {self.total_quantity}, "
                f"requested {self.requested_quantity}"
            )

    @property
    def total_quantity(self) -> Decimal:
        return sum((line.quantity for line in self.lines), Decimal("0"))

    @property
    def lot_ids(self) -> tuple[UUID, ...]:
        return tuple(line.lot_id for line in self.lines)
