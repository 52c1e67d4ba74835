"""
Module: inventory_kernel.selectors.lot_selector
Responsibility: Read access to items and lots -- point lookups by id and
    filtered scans by item and active flag.  This is the only place that
    decides which lots are allocation candidates.
Architecture position: Kernel > Selectors.  Returns ItemSnapshot/LotSnapshot
    DTOs; the planner never sees ORM objects.

Invariants enforced:
    - A candidate lot is active, has quantity_remaining > 0, belongs to the
      item, and (optionally) sits at the requested storage location.
    - Candidates come back in (received_date, sequence) order; the planner
      applies the strategy's own ordering on top.

Failure modes:
    - ItemNotFoundError / LotNotFoundError from the require_* lookups.
"""

from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from inventory_kernel.domain.dtos import ItemSnapshot, LotSnapshot
from inventory_kernel.exceptions import ItemNotFoundError, LotNotFoundError
from inventory_kernel.models.item import InventoryItem
from inventory_kernel.models.lot import InventoryLot
from inventory_kernel.selectors.base import BaseSelector


class LotSelector(BaseSelector[InventoryLot]):
    """
    Lot repository (read side).

    Non-goals:
        - No ordering policy beyond the stable baseline order.
        - No locking; the ledger writer re-reads what it mutates.
    """

    # Items

    def get_item(self, item_id: UUID) -> ItemSnapshot | None:
        item = self.session.get(InventoryItem, item_id, populate_existing=True)
        if item is None:
            return None
        return ItemSnapshot.from_model(item)

    def require_item(self, item_id: UUID, active_only: bool = True) -> ItemSnapshot:
        """Item snapshot or ItemNotFoundError (also for inactive items)."""
        item = self.get_item(item_id)
        if item is None or (active_only and not item.is_active):
            raise ItemNotFoundError(str(item_id))
        return item

    def list_items(self, include_inactive: bool = False) -> list[ItemSnapshot]:
        stmt = select(InventoryItem).order_by(InventoryItem.name, InventoryItem.id)
        if not include_inactive:
            stmt = stmt.where(InventoryItem.is_active.is_(True))
        return [ItemSnapshot.from_model(i) for i in self.session.scalars(stmt)]

    # Lots

    def get_lot(self, lot_id: UUID) -> LotSnapshot | None:
        lot = self.session.get(InventoryLot, lot_id, populate_existing=True)
        if lot is None:
            return None
        return LotSnapshot.from_model(lot)

    def require_lot(
        self,
        lot_id: UUID,
        item_id: UUID | None = None,
        active_only: bool = False,
    ) -> LotSnapshot:
        """
        Lot snapshot or LotNotFoundError.

        With ``item_id`` the lot must belong to that item.
        """
        lot = self.get_lot(lot_id)
        if lot is None or (active_only and not lot.is_active):
            raise LotNotFoundError(str(lot_id), str(item_id) if item_id else None)
        if item_id is not None and lot.item_id != item_id:
            raise LotNotFoundError(str(lot_id), str(item_id))
        return lot

    def list_lots(self, item_id: UUID, include_inactive: bool = False) -> list[LotSnapshot]:
        stmt = (
            select(InventoryLot)
            .where(InventoryLot.item_id == item_id)
            .order_by(InventoryLot.received_date, InventoryLot.sequence)
        )
        if not include_inactive:
            stmt = stmt.where(InventoryLot.is_active.is_(True))
        return [LotSnapshot.from_model(lot) for lot in self.session.scalars(stmt)]

    def candidate_lots(
        self,
        item_id: UUID,
        location_filter: str | None = None,
        not_expired_on: date | None = None,
    ) -> list[LotSnapshot]:
        """
        Lots eligible for allocation.

        Args:
            location_filter: Only lots whose storage_location equals this.
            not_expired_on: When set, lots with expiry_date before this date
                are left out.
        """
        stmt = (
            select(InventoryLot)
            .where(
                InventoryLot.item_id == item_id,
                InventoryLot.is_active.is_(True),
                InventoryLot.quantity_remaining > 0,
            )
            .order_by(InventoryLot.received_date, InventoryLot.sequence)
        )
        if location_filter is not None:
            stmt = stmt.where(InventoryLot.storage_location == location_filter)
        if not_expired_on is not None:
            stmt = stmt.where(
                (InventoryLot.expiry_date.is_(None))
                | (InventoryLot.expiry_date >= not_expired_on)
            )
        return [LotSnapshot.from_model(lot) for lot in self.session.scalars(stmt)]

    def expiring_lots(
        self,
        as_of: date,
        within_days: int,
        item_id: UUID | None = None,
    ) -> list[LotSnapshot]:
        """Active stocked lots expiring between ``as_of`` and ``as_of + within_days``."""
        horizon = as_of + timedelta(days=within_days)
        stmt = (
            select(InventoryLot)
            .where(
                InventoryLot.is_active.is_(True),
                InventoryLot.quantity_remaining > 0,
                InventoryLot.expiry_date.is_not(None),
                InventoryLot.expiry_date >= as_of,
                InventoryLot.expiry_date <= horizon,
            )
            .order_by(InventoryLot.expiry_date, InventoryLot.sequence)
        )
        if item_id is not None:
            stmt = stmt.where(InventoryLot.item_id == item_id)
        return [LotSnapshot.from_model(lot) for lot in self.session.scalars(stmt)]

    def expired_lots(self, as_of: date, item_id: UUID | None = None) -> list[LotSnapshot]:
        """Active lots still holding stock past their expiry date."""
        stmt = (
            select(InventoryLot)
            .where(
                InventoryLot.is_active.is_(True),
                InventoryLot.quantity_remaining > 0,
                InventoryLot.expiry_date < as_of,
            )
            .order_by(InventoryLot.expiry_date, InventoryLot.sequence)
        )
        if item_id is not None:
            stmt = stmt.where(InventoryLot.item_id == item_id)
        return [LotSnapshot.from_model(lot) for lot in self.session.scalars(stmt)]

    def active_lot_total(self, item_id: UUID) -> Decimal:
        """Sum of quantity_remaining over the item's active lots."""
        total = self.session.scalar(
            select(func.coalesce(func.sum(InventoryLot.quantity_remaining), 0)).where(
                InventoryLot.item_id == item_id,
                InventoryLot.is_active.is_(True),
            )
        )
        return Decimal(str(total))

    def lot_code_exists(self, item_id: UUID, lot_code: str) -> bool:
        found = self.session.scalar(
            select(InventoryLot.id).where(
                InventoryLot.item_id == item_id,
                InventoryLot.lot_code == lot_code,
            )
        )
        return found is not None
