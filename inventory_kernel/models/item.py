"""
Module: inventory_kernel.models.item
Responsibility: ORM persistence for stocked items.  An item carries the
    cached on-hand quantity that every ledger write keeps in step with the
    movements recorded against it.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - current_quantity >= 0 and reserved_quantity >= 0 (CHECK constraints).
    - current_quantity, reserved_quantity and lot_sequence are written only by
      the ledger writer and catalog service, never by callers directly.
    - lot_sequence only ever increases; each receipt that creates a lot takes
      the next value under the item's row lock.

Failure modes:
    - IntegrityError on duplicate sku.

Audit relevance:
    current_quantity is a cache of the ledger; reconciliation replays the
    item's movements and compares against it.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, CheckConstraint, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import TrackedBase

if TYPE_CHECKING:
    from inventory_kernel.models.lot import InventoryLot


class InventoryItem(TrackedBase):
    """
    A stocked item (nutrient, media, packaging, chemical, ...).

    Guarantees:
        - unit_of_measure is shared by every lot of the item.
        - is_active=False hides the item from planning but keeps its history.

    Non-goals:
        - No unit conversion; quantities are always in unit_of_measure.
    """

    __tablename__ = "inventory_items"

    __table_args__ = (
        CheckConstraint("current_quantity >= 0", name="ck_inventory_items_qty_non_negative"),
        CheckConstraint("reserved_quantity >= 0", name="ck_inventory_items_reserved_non_negative"),
        Index("idx_inventory_items_active", "is_active"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    sku: Mapped[str | None] = mapped_column(String(100), nullable=True, unique=True)
    unit_of_measure: Mapped[str] = mapped_column(String(20), nullable=False)
    item_type: Mapped[str | None] = mapped_column(String(50), nullable=True)

    current_quantity: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    reserved_quantity: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    # Par level and reorder threshold; both optional
    minimum_quantity: Mapped[Decimal | None] = mapped_column(nullable=True)
    reorder_point: Mapped[Decimal | None] = mapped_column(nullable=True)

    storage_location: Mapped[str | None] = mapped_column(String(200), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    lot_sequence: Mapped[int] = mapped_column(nullable=False, default=0)

    lots: Mapped[list[InventoryLot]] = relationship(
        back_populates="item",
        lazy="raise",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<InventoryItem {self.name}: {self.current_quantity} {self.unit_of_measure}>"
