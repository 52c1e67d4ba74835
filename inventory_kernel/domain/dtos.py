"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable data structures that cross the boundary between
    persistence and the pure planner/projector code: item and lot snapshots,
    movement records, consumption destinations, receipt lot fields, and
    caller metadata.  Also the enumerations shared by every layer.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    from_model() class methods exist as boundary converters but are only
    invoked from selectors and services (never from engine logic).

Invariants enforced:
    - Engines accept/return DTOs, never ORM entities.
    - A Destination names exactly one of batch, task, or location.

Failure modes:
    - InvalidDestinationError on a Destination with zero or several targets.
    - ValidationError on LotFields without a lot_code.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from inventory_kernel.exceptions import InvalidDestinationError, ValidationError

if TYPE_CHECKING:
    from inventory_kernel.models.item import InventoryItem
    from inventory_kernel.models.lot import InventoryLot
    from inventory_kernel.models.movement import InventoryMovement


class MovementType(str, Enum):
    """
    Kind of ledger entry.

    Contract:
        receive/consume/dispose quantities are unsigned magnitudes whose
        direction is implied by the type; adjust carries the signed delta;
        transfer carries the signed delta of its lot leg.
    """

    RECEIVE = "receive"
    CONSUME = "consume"
    ADJUST = "adjust"
    TRANSFER = "transfer"
    DISPOSE = "dispose"

    @property
    def direction(self) -> int:
        """Multiplier applied to the stored quantity when replaying a lot."""
        if self in (MovementType.CONSUME, MovementType.DISPOSE):
            return -1
        return 1


class AllocationStrategy(str, Enum):
    FIFO = "fifo"
    LIFO = "lifo"
    FEFO = "fefo"
    MANUAL = "manual"


class StockStatus(str, Enum):
    """Item availability classification, in precedence order."""

    OUT_OF_STOCK = "out_of_stock"
    REORDER = "reorder"
    BELOW_PAR = "below_par"
    OK = "ok"


class ExpiryStatus(str, Enum):
    EXPIRED = "expired"
    EXPIRING_SOON = "expiring_soon"
    OK = "ok"


class AdjustmentType(str, Enum):
    INCREASE = "increase"
    DECREASE = "decrease"


class AdjustmentReason(str, Enum):
    """Reason codes offered for manual corrections."""

    DAMAGED = "damaged"
    SPOILED = "spoiled"
    COUNT_CORRECTION = "count_correction"
    FOUND = "found"
    THEFT = "theft"
    OTHER = "other"

    @property
    def label(self) -> str:
        return _REASON_LABELS[self]


_REASON_LABELS = {
    AdjustmentReason.DAMAGED: "Damaged",
    AdjustmentReason.SPOILED: "Spoiled/Expired",
    AdjustmentReason.COUNT_CORRECTION: "Count Correction",
    AdjustmentReason.FOUND: "Found/Recovered",
    AdjustmentReason.THEFT: "Theft/Loss",
    AdjustmentReason.OTHER: "Other",
}


def format_reason_notes(reason: AdjustmentReason, notes: str | None) -> str:
    """Render the ``"Label: notes"`` string stored on adjust movements."""
    cleaned = (notes or "").strip()
    if cleaned:
        return f"{reason.label}: {cleaned}"
    return reason.label


@dataclass(frozen=True)
class ItemSnapshot:
    """
    Point-in-time view of an inventory item.

    Guarantees:
        - Immutable (frozen dataclass)
        - Quantities are Decimal
    """

    id: UUID
    name: str
    unit_of_measure: str
    current_quantity: Decimal
    reserved_quantity: Decimal = Decimal("0")
    sku: str | None = None
    item_type: str | None = None
    minimum_quantity: Decimal | None = None
    reorder_point: Decimal | None = None
    storage_location: str | None = None
    is_active: bool = True

    @classmethod
    def from_model(cls, model: InventoryItem) -> ItemSnapshot:
        return cls(
            id=model.id,
            name=model.name,
            unit_of_measure=model.unit_of_measure,
            current_quantity=Decimal(model.current_quantity),
            reserved_quantity=Decimal(model.reserved_quantity or 0),
            sku=model.sku,
            item_type=model.item_type,
            minimum_quantity=model.minimum_quantity,
            reorder_point=model.reorder_point,
            storage_location=model.storage_location,
            is_active=model.is_active,
        )


@dataclass(frozen=True)
class LotSnapshot:
    """
    Point-in-time view of an inventory lot.

    Contract:
        The planner orders and allocates against these; they are never
        written back.  ``sequence`` is the lot's creation order within its
        item and breaks received-date ties.
    """

    id: UUID
    item_id: UUID
    lot_code: str
    sequence: int
    quantity_received: Decimal
    quantity_remaining: Decimal
    unit_of_measure: str
    received_date: date
    expiry_date: date | None = None
    manufacture_date: date | None = None
    storage_location: str | None = None
    cost_per_unit: Decimal | None = None
    supplier_name: str | None = None
    compliance_package_uid: str | None = None
    notes: str | None = None
    is_active: bool = True

    @classmethod
    def from_model(cls, model: InventoryLot) -> LotSnapshot:
        return cls(
            id=model.id,
            item_id=model.item_id,
            lot_code=model.lot_code,
            sequence=model.sequence,
            quantity_received=Decimal(model.quantity_received),
            quantity_remaining=Decimal(model.quantity_remaining),
            unit_of_measure=model.unit_of_measure,
            received_date=model.received_date,
            expiry_date=model.expiry_date,
            manufacture_date=model.manufacture_date,
            storage_location=model.storage_location,
            cost_per_unit=model.cost_per_unit,
            supplier_name=model.supplier_name,
            compliance_package_uid=model.compliance_package_uid,
            notes=model.notes,
            is_active=model.is_active,
        )


@dataclass(frozen=True)
class MovementRecord:
    """
    A persisted ledger entry.

    Guarantees:
        - Immutable (frozen dataclass); the row behind it is immutable too.
    """

    id: UUID
    item_id: UUID
    movement_type: MovementType
    quantity: Decimal
    timestamp: datetime
    lot_id: UUID | None = None
    unit_cost: Decimal | None = None
    from_location: str | None = None
    to_location: str | None = None
    batch_id: str | None = None
    task_id: str | None = None
    reason: str | None = None
    notes: str | None = None
    performed_by: str | None = None

    @property
    def lot_delta(self) -> Decimal:
        """Signed effect of this movement on its lot (or item) quantity."""
        return self.quantity * self.movement_type.direction

    @classmethod
    def from_model(cls, model: InventoryMovement) -> MovementRecord:
        return cls(
            id=model.id,
            item_id=model.item_id,
            movement_type=MovementType(model.movement_type),
            quantity=Decimal(model.quantity),
            timestamp=model.timestamp,
            lot_id=model.lot_id,
            unit_cost=model.unit_cost,
            from_location=model.from_location,
            to_location=model.to_location,
            batch_id=model.batch_id,
            task_id=model.task_id,
            reason=model.reason,
            notes=model.notes,
            performed_by=model.performed_by,
        )


@dataclass(frozen=True)
class Destination:
    """
    Where issued stock goes.

    Contract:
        Exactly one of ``batch_id``, ``task_id`` or ``to_location`` is set.
        A location destination is a transfer; the others are consumption.
    """

    batch_id: str | None = None
    task_id: str | None = None
    to_location: str | None = None

    def __post_init__(self) -> None:
        targets = [
            value
            for value in (self.batch_id, self.task_id, self.to_location)
            if value is not None and str(value).strip()
        ]
        if len(targets) != 1:
            raise InvalidDestinationError(
                "exactly one of batch_id, task_id or to_location is required"
            )

    @property
    def is_transfer(self) -> bool:
        return bool(self.to_location and self.to_location.strip())

    @property
    def movement_type(self) -> MovementType:
        return MovementType.TRANSFER if self.is_transfer else MovementType.CONSUME


@dataclass(frozen=True)
class LotFields:
    """
    Attributes of the lot a receipt creates.

    ``received_date`` defaults to the clock's date at commit time;
    ``unit_of_measure`` defaults to the item's and must match it if given.
    """

    lot_code: str
    received_date: date | None = None
    expiry_date: date | None = None
    manufacture_date: date | None = None
    storage_location: str | None = None
    cost_per_unit: Decimal | None = None
    supplier_name: str | None = None
    compliance_package_uid: str | None = None
    notes: str | None = None
    unit_of_measure: str | None = None

    def __post_init__(self) -> None:
        if not self.lot_code or not self.lot_code.strip():
            raise ValidationError("lot_code", "lot code is required when creating a lot")
        object.__setattr__(self, "lot_code", self.lot_code.strip())


@dataclass(frozen=True)
class MovementMetadata:
    """Who performed a ledger write, and why."""

    performed_by: str | None = None
    notes: str | None = None
    reason: str | None = None


@dataclass(frozen=True)
class ReconciliationResult:
    """
    Cached quantity compared against the replay of its movements.

    Non-goals:
        Never repairs anything; a mismatch is reported, not fixed.
    """

    entity_type: str
    entity_id: UUID
    cached_quantity: Decimal
    replayed_quantity: Decimal
    movement_count: int

    @property
    def difference(self) -> Decimal:
        return self.cached_quantity - self.replayed_quantity

    @property
    def is_consistent(self) -> bool:
        return self.difference == 0


@dataclass(frozen=True)
class MovementSummary:
    """Per-item movement totals by type."""

    item_id: UUID
    totals: dict[MovementType, Decimal] = field(default_factory=dict)
    movement_count: int = 0
    last_movement_at: datetime | None = None

    def total(self, movement_type: MovementType) -> Decimal:
        return self.totals.get(movement_type, Decimal("0"))
