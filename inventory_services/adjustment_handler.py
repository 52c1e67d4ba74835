"""
AdjustmentHandler -- manual stock corrections from an {type, magnitude} pair.

Responsibility:
    Resolves whether a correction targets one lot or the item as a whole,
    converts ``increase``/``decrease`` plus a magnitude into the signed delta
    the ledger writer takes, and refuses a decrease without notes before
    anything is written.  ``preview()`` shows the quantities the correction
    would produce; ``submit()`` hands it to MovementLedgerWriter.

Architecture position:
    Services -- thin orchestration over the kernel ledger writer.  Shares the
    caller's session; the ledger writer is the authority at commit time.

Invariants enforced:
    - delta = magnitude for increase, -magnitude for decrease.
    - magnitude is finite and > 0.
    - A decrease with empty notes raises NotesRequiredError (a
      ValidationError) with no side effects.
    - preview() flags any correction that would leave the item quantity
      below the total of its active lots.

Failure modes:
    - ValidationError / InvalidQuantityError / NotesRequiredError on bad input.
    - InvalidAdjustmentError, ItemNotFoundError, LotNotFoundError from the
      ledger writer at submit time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from inventory_kernel.domain.dtos import (
    AdjustmentReason,
    AdjustmentType,
    MovementMetadata,
    MovementRecord,
)
from inventory_kernel.domain.values import positive_quantity
from inventory_kernel.exceptions import NotesRequiredError, ValidationError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.selectors.lot_selector import LotSelector
from inventory_kernel.services.ledger_writer import MovementLedgerWriter, coerce_reason

logger = get_logger("services.adjustment_handler")


def coerce_adjustment_type(value: AdjustmentType | str) -> AdjustmentType:
    if isinstance(value, AdjustmentType):
        return value
    try:
        return AdjustmentType(str(value).strip().lower())
    except ValueError as e:
        raise ValidationError(
            "adjustment_type", f"expected 'increase' or 'decrease', got {value!r}"
        ) from e


@dataclass(frozen=True)
class AdjustmentRequest:
    """
    A correction as entered by a user.

    ``lot_id`` None means a general correction of the item quantity only.
    """

    item_id: UUID
    adjustment_type: AdjustmentType | str
    magnitude: Decimal | int | str
    reason: AdjustmentReason | str
    notes: str | None = None
    lot_id: UUID | None = None

    @property
    def is_lot_adjustment(self) -> bool:
        return self.lot_id is not None


@dataclass(frozen=True)
class AdjustmentPreview:
    """
    Quantities a correction would produce.  Advisory only.

    ``problems`` lists what would make the submit fail given the state read
    for the preview; an empty tuple means it is expected to succeed.
    """

    item_id: UUID
    delta: Decimal
    current_item_quantity: Decimal
    resulting_item_quantity: Decimal
    lot_id: UUID | None = None
    current_lot_quantity: Decimal | None = None
    resulting_lot_quantity: Decimal | None = None
    problems: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_valid(self) -> bool:
        return not self.problems


class AdjustmentHandler:
    """
    Preview and submit manual corrections.

    Non-goals:
        - Does NOT commit; the caller owns the transaction.
        - Does NOT lock anything in preview().
    """

    def __init__(self, session: Session, writer: MovementLedgerWriter):
        self._session = session
        self._writer = writer
        self._lots = LotSelector(session)

    @staticmethod
    def signed_delta(request: AdjustmentRequest) -> Decimal:
        magnitude = positive_quantity(request.magnitude, "magnitude")
        match coerce_adjustment_type(request.adjustment_type):
            case AdjustmentType.INCREASE:
                return magnitude
            case AdjustmentType.DECREASE:
                return -magnitude

    def validate(self, request: AdjustmentRequest) -> Decimal:
        """Check the request's own fields and return the signed delta."""
        delta = self.signed_delta(request)
        coerce_reason(request.reason)
        if delta < 0 and not (request.notes and request.notes.strip()):
            logger.warning("adjustment_notes_missing", extra={
                "item_id": str(request.item_id),
                "lot_id": str(request.lot_id) if request.lot_id else None,
                "delta": str(delta),
            })
            raise NotesRequiredError("decrease adjustment")
        return delta

    def preview(self, request: AdjustmentRequest) -> AdjustmentPreview:
        """
        Resulting item and lot quantities for ``request``.

        Raises the same input errors as submit() but never writes.
        """
        delta = self.validate(request)
        item = self._lots.require_item(request.item_id)
        problems: list[str] = []

        lot = current_lot = resulting_lot = None
        if request.lot_id is not None:
            lot = self._lots.require_lot(request.lot_id)
            if lot.item_id != request.item_id:
                problems.append("lot does not belong to this item")
            current_lot = lot.quantity_remaining
            resulting_lot = current_lot + delta
            if resulting_lot < 0:
                problems.append(f"lot quantity would become {resulting_lot}")

        # Active lot total as it would stand after the adjustment
        lot_total = self._lots.active_lot_total(request.item_id)
        reactivates = False
        if lot is not None and lot.item_id == request.item_id and resulting_lot >= 0:
            if lot.is_active:
                lot_total += delta
            elif delta > 0:
                lot_total += resulting_lot
                reactivates = True
        if item.current_quantity + delta < lot_total:
            if reactivates:
                problems.append(f"reactivating lot would raise active lot total to {lot_total}")
            else:
                problems.append(f"item quantity would fall below active lot total {lot_total}")

        resulting_item = item.current_quantity + delta
        if resulting_item < 0:
            problems.append(f"item quantity would become {resulting_item}")

        return AdjustmentPreview(
            item_id=request.item_id,
            delta=delta,
            current_item_quantity=item.current_quantity,
            resulting_item_quantity=resulting_item,
            lot_id=request.lot_id,
            current_lot_quantity=current_lot,
            resulting_lot_quantity=resulting_lot,
            problems=tuple(problems),
        )

    def submit(
        self,
        request: AdjustmentRequest,
        metadata: MovementMetadata | None = None,
    ) -> MovementRecord:
        delta = self.validate(request)
        logger.info("adjustment_submitted", extra={
            "item_id": str(request.item_id),
            "lot_id": str(request.lot_id) if request.lot_id else None,
            "delta": str(delta),
            "general": not request.is_lot_adjustment,
        })
        return self._writer.apply_adjustment(
            item_id=request.item_id,
            lot_id=request.lot_id,
            delta=delta,
            reason=request.reason,
            notes=request.notes,
            metadata=metadata,
        )
