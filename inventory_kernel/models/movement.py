"""
Module: inventory_kernel.models.movement
Responsibility: ORM persistence for the movement ledger, the system of record
    for every quantity-affecting event.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Append-only: rows are never updated or deleted (ORM listeners in
      db/immutability.py).
    - movement_type is one of receive, consume, adjust, transfer, dispose.
    - Unsigned magnitudes (receive, consume, dispose) are > 0; signed
      quantities (adjust, transfer) are non-zero.

Audit relevance:
    Replaying a lot's movements reproduces its quantity_remaining; replaying
    an item's movements reproduces its current_quantity.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import Base, UUIDString


class InventoryMovement(Base):
    """
    One immutable ledger entry.

    Contract:
        lot_id is NULL for item-level (general) receipts and adjustments.
        At most one of batch_id, task_id, to_location identifies where
        issued stock went.
    """

    __tablename__ = "inventory_movements"

    __table_args__ = (
        CheckConstraint(
            "movement_type IN ('receive', 'consume', 'adjust', 'transfer', 'dispose')",
            name="ck_inventory_movements_valid_type",
        ),
        CheckConstraint(
            "(movement_type IN ('adjust', 'transfer') AND quantity <> 0) "
            "OR quantity > 0",
            name="ck_inventory_movements_quantity_sign",
        ),
        # Query: item history and replay
        Index("idx_inventory_movements_item_ts", "item_id", "timestamp"),
        # Query: lot replay
        Index("idx_inventory_movements_lot", "lot_id"),
        Index("idx_inventory_movements_batch", "batch_id"),
        Index("idx_inventory_movements_task", "task_id"),
    )

    item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("inventory_items.id"),
        nullable=False,
    )
    lot_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("inventory_lots.id"),
        nullable=True,
    )

    movement_type: Mapped[str] = mapped_column(String(20), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit_cost: Mapped[Decimal | None] = mapped_column(nullable=True)

    from_location: Mapped[str | None] = mapped_column(String(200), nullable=True)
    to_location: Mapped[str | None] = mapped_column(String(200), nullable=True)
    batch_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    task_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    reason: Mapped[str | None] = mapped_column(String(50), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    performed_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Set from the injected clock, not the server
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return f"<InventoryMovement {self.movement_type} {self.quantity}>"
