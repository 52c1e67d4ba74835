"""
CatalogService -- item registration and non-ledger item/lot attributes.

Responsibility:
    Creates the items the ledger writes against and maintains the fields
    that are not quantities of record: reserved quantity, par level,
    reorder point, and the manual deactivation of lots.

Architecture position:
    Kernel > Services -- flush-only, caller owns the transaction.

Invariants enforced:
    - New items start at current_quantity = 0; stock arrives only through
      receipts.
    - reserved_quantity >= 0.  Reservations do not create movements.
    - Deactivating a lot never changes its quantity and never deletes it.
"""

from decimal import Decimal
from uuid import UUID, uuid4

from inventory_kernel.domain.dtos import ItemSnapshot, LotSnapshot
from inventory_kernel.domain.values import non_negative_quantity
from inventory_kernel.exceptions import (
    ItemNotFoundError,
    LotNotFoundError,
    ValidationError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.item import InventoryItem
from inventory_kernel.models.lot import InventoryLot
from inventory_kernel.services.base import BaseService

logger = get_logger("services.catalog")


class CatalogService(BaseService[InventoryItem]):
    """Item catalog writes."""

    def register_item(
        self,
        name: str,
        unit_of_measure: str,
        sku: str | None = None,
        item_type: str | None = None,
        minimum_quantity: Decimal | int | str | None = None,
        reorder_point: Decimal | int | str | None = None,
        storage_location: str | None = None,
        created_by: str | None = None,
    ) -> ItemSnapshot:
        if not name or not name.strip():
            raise ValidationError("name", "item name is required")
        if not unit_of_measure or not unit_of_measure.strip():
            raise ValidationError("unit_of_measure", "unit of measure is required")

        item = InventoryItem(
            id=uuid4(),
            name=name.strip(),
            sku=sku,
            unit_of_measure=unit_of_measure.strip(),
            item_type=item_type,
            current_quantity=Decimal("0"),
            reserved_quantity=Decimal("0"),
            minimum_quantity=(
                non_negative_quantity(minimum_quantity, "minimum_quantity")
                if minimum_quantity is not None else None
            ),
            reorder_point=(
                non_negative_quantity(reorder_point, "reorder_point")
                if reorder_point is not None else None
            ),
            storage_location=storage_location,
            is_active=True,
            lot_sequence=0,
            created_by=created_by,
        )
        self.session.add(item)
        self.session.flush()

        logger.info("item_registered", extra={
            "item_id": str(item.id),
            "item_name": item.name,
            "sku": sku,
            "unit_of_measure": item.unit_of_measure,
        })
        return ItemSnapshot.from_model(item)

    def set_reserved_quantity(
        self,
        item_id: UUID,
        quantity: Decimal | int | str,
    ) -> ItemSnapshot:
        """Record how much of the on-hand stock is spoken for."""
        reserved = non_negative_quantity(quantity, "reserved_quantity")
        item = self._require_item(item_id)
        item.reserved_quantity = reserved
        self.session.flush()
        logger.info("reserved_quantity_set", extra={
            "item_id": str(item_id),
            "reserved_quantity": str(reserved),
        })
        return ItemSnapshot.from_model(item)

    def set_thresholds(
        self,
        item_id: UUID,
        minimum_quantity: Decimal | int | str | None = None,
        reorder_point: Decimal | int | str | None = None,
    ) -> ItemSnapshot:
        """Replace the par level and reorder point (None clears them)."""
        item = self._require_item(item_id)
        item.minimum_quantity = (
            non_negative_quantity(minimum_quantity, "minimum_quantity")
            if minimum_quantity is not None else None
        )
        item.reorder_point = (
            non_negative_quantity(reorder_point, "reorder_point")
            if reorder_point is not None else None
        )
        self.session.flush()
        return ItemSnapshot.from_model(item)

    def deactivate_lot(self, item_id: UUID, lot_id: UUID) -> LotSnapshot:
        """Take a lot out of allocation without touching its quantity."""
        lot = self.session.get(
            InventoryLot, lot_id, with_for_update=True, populate_existing=True
        )
        if lot is None or lot.item_id != item_id:
            raise LotNotFoundError(str(lot_id), str(item_id))
        if lot.is_active:
            lot.is_active = False
            self.session.flush()
            logger.info("lot_deactivated", extra={
                "item_id": str(item_id),
                "lot_id": str(lot_id),
                "quantity_remaining": str(lot.quantity_remaining),
            })
        return LotSnapshot.from_model(lot)

    def _require_item(self, item_id: UUID) -> InventoryItem:
        item = self.session.get(
            InventoryItem, item_id, with_for_update=True, populate_existing=True
        )
        if item is None or not item.is_active:
            raise ItemNotFoundError(str(item_id))
        return item
