"""
Module: inventory_kernel.models.lot
Responsibility: ORM persistence for inventory lots.  Each lot is one receipt
    of an item, tracked separately for expiry, cost and traceability.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - quantity_remaining >= 0 (CHECK constraint; the ledger writer's guarded
      UPDATE never lets it get there).
    - quantity_received > 0 and immutable after creation (ORM listener).
    - lot_code unique per item; sequence unique per item.
    - Never deleted, only deactivated (ORM listener).

Failure modes:
    - IntegrityError on duplicate (item_id, lot_code) or (item_id, sequence).

Audit relevance:
    quantity_remaining must always equal the replay of the lot's movements.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from inventory_kernel.models.item import InventoryItem


class InventoryLot(TrackedBase):
    """
    Persistent storage for one received lot.

    Contract:
        quantity_received is frozen at creation.  quantity_remaining only
        moves through the ledger writer: down on consume/dispose/transfer
        and decrease adjustments, up on increase adjustments.

    Guarantees:
        - (item_id, received_date, sequence) index supports FIFO/LIFO ordering.
        - (item_id, expiry_date) index supports FEFO ordering.
    """

    __tablename__ = "inventory_lots"

    __table_args__ = (
        UniqueConstraint("item_id", "lot_code", name="uq_inventory_lots_item_code"),
        UniqueConstraint("item_id", "sequence", name="uq_inventory_lots_item_sequence"),
        CheckConstraint("quantity_remaining >= 0", name="ck_inventory_lots_remaining_non_negative"),
        CheckConstraint("quantity_received > 0", name="ck_inventory_lots_received_positive"),
        # Query: candidate lots for an item (planner)
        Index("idx_inventory_lots_item_active", "item_id", "is_active"),
        Index("idx_inventory_lots_item_received", "item_id", "received_date", "sequence"),
        Index("idx_inventory_lots_item_expiry", "item_id", "expiry_date"),
        Index("idx_inventory_lots_location", "storage_location"),
    )

    item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("inventory_items.id"),
        nullable=False,
    )
    lot_code: Mapped[str] = mapped_column(String(100), nullable=False)
    sequence: Mapped[int] = mapped_column(nullable=False)

    quantity_received: Mapped[Decimal] = mapped_column(nullable=False)
    quantity_remaining: Mapped[Decimal] = mapped_column(nullable=False)
    unit_of_measure: Mapped[str] = mapped_column(String(20), nullable=False)

    received_date: Mapped[date] = mapped_column(Date, nullable=False)
    expiry_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    manufacture_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    storage_location: Mapped[str | None] = mapped_column(String(200), nullable=True)
    cost_per_unit: Mapped[Decimal | None] = mapped_column(nullable=True)
    supplier_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    compliance_package_uid: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    item: Mapped[InventoryItem] = relationship(back_populates="lots", lazy="raise")

    def __repr__(self) -> str:
        return f"<InventoryLot {self.lot_code}: {self.quantity_remaining}/{self.quantity_received}>"
