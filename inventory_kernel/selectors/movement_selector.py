"""
Module: inventory_kernel.selectors.movement_selector
Responsibility: Read access to the movement ledger -- history, per-type
    summaries, and replay of lot and item quantities from their movements.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Replay uses the ledger sign convention: receive adds, consume and
      dispose subtract, adjust and transfer carry their own sign.  A lot's
      replay equals its quantity_remaining; an item's replay equals its
      current_quantity (transfer legs cancel out within an item).

Audit relevance:
    reconcile_lot()/reconcile_item() are the read-only check that the cached
    quantities have not drifted from the system of record.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from inventory_kernel.domain.dtos import (
    MovementRecord,
    MovementSummary,
    MovementType,
    ReconciliationResult,
)
from inventory_kernel.exceptions import ItemNotFoundError, LotNotFoundError
from inventory_kernel.models.item import InventoryItem
from inventory_kernel.models.lot import InventoryLot
from inventory_kernel.models.movement import InventoryMovement
from inventory_kernel.selectors.base import BaseSelector


def replay(movements: list[MovementRecord]) -> Decimal:
    """Net quantity produced by a sequence of movements."""
    return sum((m.lot_delta for m in movements), Decimal("0"))


class MovementSelector(BaseSelector[InventoryMovement]):
    """Movement ledger queries."""

    def history(
        self,
        item_id: UUID,
        lot_id: UUID | None = None,
        limit: int | None = None,
    ) -> list[MovementRecord]:
        """Movements of an item (or one of its lots), oldest first."""
        stmt = (
            select(InventoryMovement)
            .where(InventoryMovement.item_id == item_id)
            .order_by(InventoryMovement.timestamp, InventoryMovement.id)
        )
        if lot_id is not None:
            stmt = stmt.where(InventoryMovement.lot_id == lot_id)
        if limit is not None:
            stmt = stmt.limit(limit)
        return [MovementRecord.from_model(m) for m in self.session.scalars(stmt)]

    def for_destination(
        self,
        batch_id: str | None = None,
        task_id: str | None = None,
    ) -> list[MovementRecord]:
        """Everything issued to a batch or task."""
        stmt = select(InventoryMovement).order_by(InventoryMovement.timestamp, InventoryMovement.id)
        if batch_id is not None:
            stmt = stmt.where(InventoryMovement.batch_id == batch_id)
        if task_id is not None:
            stmt = stmt.where(InventoryMovement.task_id == task_id)
        return [MovementRecord.from_model(m) for m in self.session.scalars(stmt)]

    def summary(self, item_id: UUID) -> MovementSummary:
        """Totals per movement type, count, and time of the last movement."""
        rows = self.session.execute(
            select(
                InventoryMovement.movement_type,
                func.sum(InventoryMovement.quantity),
                func.count(InventoryMovement.id),
                func.max(InventoryMovement.timestamp),
            )
            .where(InventoryMovement.item_id == item_id)
            .group_by(InventoryMovement.movement_type)
        ).all()

        totals: dict[MovementType, Decimal] = {}
        count = 0
        last: datetime | None = None
        for movement_type, total, n, latest in rows:
            totals[MovementType(movement_type)] = Decimal(str(total))
            count += n
            if latest is not None and (last is None or latest > last):
                last = latest

        return MovementSummary(
            item_id=item_id,
            totals=totals,
            movement_count=count,
            last_movement_at=last,
        )

    def reconcile_lot(self, lot_id: UUID) -> ReconciliationResult:
        lot = self.session.get(InventoryLot, lot_id, populate_existing=True)
        if lot is None:
            raise LotNotFoundError(str(lot_id))
        movements = self.history(lot.item_id, lot_id=lot_id)
        return ReconciliationResult(
            entity_type="InventoryLot",
            entity_id=lot_id,
            cached_quantity=Decimal(lot.quantity_remaining),
            replayed_quantity=replay(movements),
            movement_count=len(movements),
        )

    def reconcile_item(self, item_id: UUID) -> ReconciliationResult:
        item = self.session.get(InventoryItem, item_id, populate_existing=True)
        if item is None:
            raise ItemNotFoundError(str(item_id))
        movements = self.history(item_id)
        return ReconciliationResult(
            entity_type="InventoryItem",
            entity_id=item_id,
            cached_quantity=Decimal(item.current_quantity),
            replayed_quantity=replay(movements),
            movement_count=len(movements),
        )
