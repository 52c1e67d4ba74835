"""
Append-only ledger tests.

Verifies:
- Movements can never be updated or deleted through the ORM
- Lots and items can never be deleted; a lot's identity and received
  quantity never change
- Mutable lot attributes (remaining quantity, active flag, location) stay
  writable
- Database CHECK constraints reject negative quantities even when the ORM
  is bypassed
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import insert, update
from sqlalchemy.exc import IntegrityError

from inventory_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from inventory_kernel.domain.clock import DeterministicClock
from inventory_kernel.domain.dtos import LotFields, MovementMetadata
from inventory_kernel.exceptions import ImmutabilityViolationError
from inventory_kernel.models.item import InventoryItem
from inventory_kernel.models.lot import InventoryLot
from inventory_kernel.models.movement import InventoryMovement
from inventory_kernel.services.catalog_service import CatalogService
from inventory_kernel.services.ledger_writer import MovementLedgerWriter


@pytest.fixture
def received(session):
    """An item with one committed lot receipt."""
    item = CatalogService(session).register_item("Oats", "kg")
    writer = MovementLedgerWriter(session, clock=DeterministicClock())
    record, lot = writer.apply_receipt(
        item.id,
        Decimal("10"),
        LotFields("OAT-1", received_date=date(2024, 1, 1)),
        MovementMetadata(performed_by="auditor"),
    )
    session.commit()
    return item, lot, record


class TestMovementImmutability:
    def test_update_rejected(self, session, received):
        _, _, record = received
        movement = session.get(InventoryMovement, record.id)
        movement.notes = "rewritten"

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()

        assert exc_info.value.code == "IMMUTABILITY_VIOLATION"
        assert exc_info.value.entity_type == "InventoryMovement"

    def test_quantity_update_rejected(self, session, received):
        _, _, record = received
        movement = session.get(InventoryMovement, record.id)
        movement.quantity = Decimal("1000")

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_delete_rejected(self, session, received):
        _, _, record = received
        session.delete(session.get(InventoryMovement, record.id))

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_violation_is_logged(self, session, received, captured_logs):
        _, _, record = received
        session.get(InventoryMovement, record.id).performed_by = "someone else"

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

        assert any(
            r["message"] == "immutability_violation_blocked" for r in captured_logs()
        )


class TestLotImmutability:
    @pytest.mark.parametrize(
        "field, value",
        [
            ("quantity_received", Decimal("99")),
            ("lot_code", "OAT-REWRITTEN"),
            ("sequence", 42),
        ],
    )
    def test_identity_fields_frozen(self, session, received, field, value):
        _, lot, _ = received
        model = session.get(InventoryLot, lot.id)
        setattr(model, field, value)

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_operational_fields_writable(self, session, received):
        _, lot, _ = received
        model = session.get(InventoryLot, lot.id)
        model.storage_location = "Dry Store"
        model.notes = "relabelled"
        session.flush()
        session.commit()

        assert session.get(InventoryLot, lot.id).storage_location == "Dry Store"

    def test_lot_delete_rejected(self, session, received):
        _, lot, _ = received
        session.delete(session.get(InventoryLot, lot.id))

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_item_delete_rejected(self, session, received):
        item, _, _ = received
        session.delete(session.get(InventoryItem, item.id))

        with pytest.raises(ImmutabilityViolationError):
            session.flush()


class TestListenerRegistration:
    def test_registration_is_idempotent(self, session, received):
        register_immutability_listeners()
        register_immutability_listeners()
        _, _, record = received
        session.get(InventoryMovement, record.id).notes = "x"

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_unregistered_listeners_allow_update(self, session, received):
        _, _, record = received
        unregister_immutability_listeners()
        try:
            session.get(InventoryMovement, record.id).notes = "tampered"
            session.flush()
        finally:
            register_immutability_listeners()


class TestDatabaseConstraints:
    def test_negative_lot_quantity_rejected_by_database(self, session, received):
        _, lot, _ = received
        with pytest.raises(IntegrityError):
            session.execute(
                update(InventoryLot.__table__)
                .where(InventoryLot.__table__.c.id == lot.id)
                .values(quantity_remaining=Decimal("-1"))
            )

    def test_negative_item_quantity_rejected_by_database(self, session, received):
        item, _, _ = received
        with pytest.raises(IntegrityError):
            session.execute(
                update(InventoryItem.__table__)
                .where(InventoryItem.__table__.c.id == item.id)
                .values(current_quantity=Decimal("-0.5"))
            )

    def test_receive_movement_must_be_positive(self, session, received):
        item, _, _ = received
        with pytest.raises(IntegrityError):
            session.execute(
                insert(InventoryMovement.__table__).values(
                    id=uuid4(),
                    item_id=item.id,
                    movement_type="receive",
                    quantity=Decimal("-5"),
                    timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
                )
            )
