"""
Tests for AdjustmentHandler through InventoryService.

Verifies:
- Signed delta from {increase|decrease, magnitude}
- Notes required on decrease, before any mutation
- preview() is advisory and writes nothing
- Lot-targeted vs general corrections
- A lot brought back by an increase must fit inside the item quantity
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from inventory_kernel.domain.dtos import AdjustmentType, MovementType
from inventory_kernel.exceptions import (
    InvalidAdjustmentError,
    InvalidQuantityError,
    NotesRequiredError,
    ValidationError,
)
from inventory_services import AdjustmentHandler, AdjustmentRequest


class TestSignedDelta:
    @pytest.mark.parametrize(
        "adjustment_type, magnitude, expected",
        [
            (AdjustmentType.INCREASE, "5", Decimal("5")),
            (AdjustmentType.DECREASE, "5", Decimal("-5")),
            ("Decrease", Decimal("0.25"), Decimal("-0.25")),
        ],
    )
    def test_delta(self, adjustment_type, magnitude, expected):
        request = AdjustmentRequest(uuid4(), adjustment_type, magnitude, "other", "n")
        assert AdjustmentHandler.signed_delta(request) == expected

    @pytest.mark.parametrize("magnitude", ["0", "-5", "NaN"])
    def test_magnitude_must_be_positive(self, magnitude):
        request = AdjustmentRequest(uuid4(), "increase", magnitude, "other")
        with pytest.raises(InvalidQuantityError):
            AdjustmentHandler.signed_delta(request)

    def test_unknown_type(self):
        request = AdjustmentRequest(uuid4(), "sideways", "1", "other")
        with pytest.raises(ValidationError):
            AdjustmentHandler.signed_delta(request)


class TestSubmit:
    def test_decrease_with_empty_notes_rejected(self, service, item, receive_lot):
        lot = receive_lot(item.id, 20, "L1", date(2024, 1, 2))

        with pytest.raises(NotesRequiredError) as exc_info:
            service.commit_adjustment(
                AdjustmentRequest(item.id, "decrease", "3", "damaged", notes="", lot_id=lot.id)
            )

        assert isinstance(exc_info.value, ValidationError)
        assert service.list_lots(item.id)[0].quantity_remaining == Decimal("20")
        assert [m.movement_type for m in service.get_movements(item.id)] == [MovementType.RECEIVE]

    def test_increase_with_empty_notes_succeeds(self, service, item, receive_lot):
        lot = receive_lot(item.id, 20, "L1", date(2024, 1, 2))

        record = service.commit_adjustment(
            AdjustmentRequest(item.id, "increase", "3", "found", lot_id=lot.id)
        )

        assert record.quantity == Decimal("3")
        assert service.get_stock_balance(item.id).on_hand == Decimal("23")

    def test_lot_decrease_below_zero_rolls_back(self, service, item, receive_lot):
        lot = receive_lot(item.id, 2, "L1", date(2024, 1, 2))

        with pytest.raises(InvalidAdjustmentError):
            service.commit_adjustment(
                AdjustmentRequest(item.id, "decrease", "3", "theft", "missing", lot_id=lot.id)
            )

        assert service.get_stock_balance(item.id).on_hand == Decimal("2")

    def test_general_correction(self, service, item, metadata):
        service.commit_receipt(item.id, Decimal("10"), metadata=metadata)

        record = service.commit_adjustment(
            AdjustmentRequest(item.id, "decrease", "4", "count_correction", "cycle count"),
            metadata,
        )

        assert record.lot_id is None
        assert record.notes == "Count Correction: cycle count"
        assert record.performed_by == metadata.performed_by
        assert service.get_stock_balance(item.id).on_hand == Decimal("6")

    def test_reactivation_above_item_quantity_rolls_back(self, service, item, receive_lot, metadata):
        lot_a = receive_lot(item.id, 60, "A", date(2024, 1, 1))
        lot_b = receive_lot(item.id, 40, "B", date(2024, 1, 2))
        service.deactivate_lot(item.id, lot_b.id)
        service.commit_adjustment(
            AdjustmentRequest(item.id, "decrease", "40", "count_correction", "recount"),
            metadata,
        )

        with pytest.raises(InvalidAdjustmentError):
            service.commit_adjustment(
                AdjustmentRequest(item.id, "increase", "1", "found", lot_id=lot_b.id),
                metadata,
            )

        lots = {lot.id: lot for lot in service.list_lots(item.id, include_inactive=True)}
        assert lots[lot_b.id].is_active is False
        assert lots[lot_b.id].quantity_remaining == Decimal("40")
        assert lots[lot_a.id].quantity_remaining == Decimal("60")
        assert service.get_stock_balance(item.id).on_hand == Decimal("60")
        assert service.reconcile_item(item.id).is_consistent


class TestPreview:
    def test_preview_shows_resulting_quantities_without_writing(self, service, item, receive_lot):
        lot = receive_lot(item.id, 20, "L1", date(2024, 1, 2))

        preview = service.preview_adjustment(
            AdjustmentRequest(item.id, "decrease", "5", "damaged", "crushed", lot_id=lot.id)
        )

        assert preview.delta == Decimal("-5")
        assert preview.current_item_quantity == Decimal("20")
        assert preview.resulting_item_quantity == Decimal("15")
        assert preview.current_lot_quantity == Decimal("20")
        assert preview.resulting_lot_quantity == Decimal("15")
        assert preview.is_valid
        assert service.list_lots(item.id)[0].quantity_remaining == Decimal("20")

    def test_preview_reports_problems(self, service, item, receive_lot):
        lot = receive_lot(item.id, 2, "L1", date(2024, 1, 2))

        preview = service.preview_adjustment(
            AdjustmentRequest(item.id, "decrease", "5", "damaged", "crushed", lot_id=lot.id)
        )

        assert not preview.is_valid
        assert any("lot quantity" in p for p in preview.problems)

    def test_preview_general_decrease_below_lot_total(self, service, item, receive_lot):
        receive_lot(item.id, 10, "L1", date(2024, 1, 2))

        preview = service.preview_adjustment(
            AdjustmentRequest(item.id, "decrease", "1", "count_correction", "recount")
        )

        assert not preview.is_valid
        assert preview.resulting_lot_quantity is None

    def test_preview_reactivation_above_item_quantity(self, service, item, receive_lot, metadata):
        receive_lot(item.id, 60, "A", date(2024, 1, 1))
        lot_b = receive_lot(item.id, 40, "B", date(2024, 1, 2))
        service.deactivate_lot(item.id, lot_b.id)
        service.commit_adjustment(
            AdjustmentRequest(item.id, "decrease", "40", "count_correction", "recount"),
            metadata,
        )

        preview = service.preview_adjustment(
            AdjustmentRequest(item.id, "increase", "1", "found", lot_id=lot_b.id)
        )

        assert preview.resulting_lot_quantity == Decimal("41")
        assert any("reactivating lot" in p for p in preview.problems)

    def test_preview_inactive_lot_decrease_below_lot_total(self, service, item, receive_lot, metadata):
        receive_lot(item.id, 60, "A", date(2024, 1, 1))
        lot_b = receive_lot(item.id, 40, "B", date(2024, 1, 2))
        service.deactivate_lot(item.id, lot_b.id)
        service.commit_adjustment(
            AdjustmentRequest(item.id, "decrease", "40", "count_correction", "recount"),
            metadata,
        )

        preview = service.preview_adjustment(
            AdjustmentRequest(item.id, "decrease", "5", "damaged", "wet", lot_id=lot_b.id)
        )

        assert any("fall below" in p for p in preview.problems)
        with pytest.raises(InvalidAdjustmentError):
            service.commit_adjustment(
                AdjustmentRequest(item.id, "decrease", "5", "damaged", "wet", lot_id=lot_b.id),
                metadata,
            )
        assert service.get_stock_balance(item.id).on_hand == Decimal("60")

    def test_preview_enforces_notes_too(self, service, item):
        with pytest.raises(NotesRequiredError):
            service.preview_adjustment(AdjustmentRequest(item.id, "decrease", "1", "other"))
