"""
Ledger replay: the movements are the system of record.

Summing a lot's receive/consume/adjust/transfer/dispose movements since its
creation reproduces its quantity_remaining exactly; summing an item's
movements reproduces its current_quantity.  Replaying twice gives the same
answer.
"""

from datetime import date
from decimal import Decimal

from inventory_kernel.domain.dtos import (
    Destination,
    MovementMetadata,
    MovementType,
)
from inventory_kernel.selectors.movement_selector import replay
from inventory_services import AdjustmentRequest


def _build_history(service, item, receive_lot, metadata):
    lot_a = receive_lot(item.id, 100, "A", date(2024, 1, 1))
    lot_b = receive_lot(item.id, "12.5", "B", date(2024, 1, 3), expiry_date=date(2024, 2, 1))
    service.commit_receipt(item.id, Decimal("4"), metadata=metadata)

    service.issue_stock(item.id, Decimal("30"), Destination(batch_id="B-1"), metadata=metadata)
    service.commit_adjustment(
        AdjustmentRequest(item.id, "decrease", "2.5", "damaged", "torn sack", lot_id=lot_b.id),
        metadata,
    )
    transfer = service.plan_consumption(item.id, Decimal("20"))
    service.commit_consumption(transfer, Destination(to_location="Cold Room"), metadata)
    service.commit_disposal(
        service.plan_consumption(item.id, Decimal("5"), lot_id=lot_b.id),
        MovementMetadata(performed_by=metadata.performed_by, notes="expired"),
    )
    service.commit_adjustment(
        AdjustmentRequest(item.id, "increase", "1", "found", lot_id=lot_a.id), metadata,
    )
    return lot_a, lot_b


class TestLotReplay:
    def test_every_lot_reproduces_its_quantity(self, service, item, receive_lot, metadata):
        _build_history(service, item, receive_lot, metadata)

        for lot in service.list_lots(item.id, include_inactive=True):
            movements = service.get_movements(item.id, lot_id=lot.id)
            assert replay(movements) == lot.quantity_remaining, lot.lot_code

    def test_expected_quantities(self, service, item, receive_lot, metadata):
        lot_a, lot_b = _build_history(service, item, receive_lot, metadata)
        lots = {lot.lot_code: lot for lot in service.list_lots(item.id, include_inactive=True)}

        assert lots["A"].quantity_remaining == Decimal("51")  # 100 - 30 - 20 + 1
        assert lots["A-SPLIT"].quantity_remaining == Decimal("20")
        assert lots["B"].quantity_remaining == Decimal("5")  # 12.5 - 2.5 - 5

    def test_item_replay_includes_item_level_movements(self, service, item, receive_lot, metadata):
        _build_history(service, item, receive_lot, metadata)

        result = service.reconcile_item(item.id)

        assert result.is_consistent
        assert result.cached_quantity == Decimal("80")  # 116.5 - 30 - 2.5 - 5 + 1
        assert result.movement_count == len(service.get_movements(item.id))

    def test_replay_is_idempotent(self, service, item, receive_lot, metadata):
        lot_a, _ = _build_history(service, item, receive_lot, metadata)

        first = service.reconcile_lot(lot_a.id)
        second = service.reconcile_lot(lot_a.id)

        assert first == second

    def test_summary_matches_history(self, service, item, receive_lot, metadata):
        _build_history(service, item, receive_lot, metadata)

        summary = service.get_movement_summary(item.id)

        assert summary.total(MovementType.RECEIVE) == Decimal("116.5")
        assert summary.total(MovementType.CONSUME) == Decimal("30")
        assert summary.total(MovementType.DISPOSE) == Decimal("5")
        # Transfer legs cancel within the item
        assert summary.total(MovementType.TRANSFER) == Decimal("0")
        assert summary.total(MovementType.ADJUST) == Decimal("-1.5")
