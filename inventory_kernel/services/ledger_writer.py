"""
MovementLedgerWriter -- atomic application of plans, receipts and adjustments.

Responsibility:
    Turns a consumption plan, a receipt or a signed adjustment into lot and
    item quantity changes plus the immutable movement rows that record
    them.  Everything one call does lands in the caller's transaction; a
    raised error leaves nothing behind once the caller rolls back.

Architecture position:
    Kernel > Services -- imperative shell.  Called by InventoryService
    inside ``unit_of_work``; accepts ConsumptionPlan objects produced by the
    allocation planner.

Invariants enforced:
    - quantity_remaining >= 0: every lot decrement is a guarded
      ``UPDATE ... WHERE quantity_remaining >= :q`` whose row count is
      checked (compare-and-commit).  A planned lot that no longer covers its
      line raises StaleAllocationError.
    - Lots reaching zero are deactivated in the same statement.
    - sum(active lot quantities) <= item.current_quantity: consumption and
      disposal move lot and item by the same total; transfers move neither
      total; any adjustment that would break the bound is rejected,
      including one that reactivates a lot.
    - Movements are only ever inserted.
    - Lock order is lots (by id) then item, for every write path.

Failure modes:
    - StaleAllocationError: planned lot depleted/deactivated since planning.
    - InvalidDestinationError / NotesRequiredError / InvalidQuantityError:
      malformed input, raised before any write.
    - InvalidAdjustmentError: adjustment would go negative, or lot belongs
      to another item.
    - ItemNotFoundError / LotNotFoundError: unknown or inactive targets.
    - DuplicateLotCodeError / UnitOfMeasureMismatchError on receipts.

Audit relevance:
    Each movement carries performed_by, timestamp (injected clock), notes
    and the destination it went to.  Adjustments store "Reason label: notes".
"""

from __future__ import annotations

import time
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import case, func, update

from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import (
    AdjustmentReason,
    Destination,
    LotFields,
    LotSnapshot,
    MovementMetadata,
    MovementRecord,
    MovementType,
    format_reason_notes,
)
from inventory_kernel.domain.plan import ConsumptionPlan, PlanLine
from inventory_kernel.domain.values import positive_quantity, signed_delta
from inventory_kernel.exceptions import (
    DuplicateLotCodeError,
    InsufficientStockError,
    InvalidAdjustmentError,
    InvalidDestinationError,
    ItemNotFoundError,
    LotNotFoundError,
    NotesRequiredError,
    StaleAllocationError,
    UnitOfMeasureMismatchError,
    ValidationError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.item import InventoryItem
from inventory_kernel.models.lot import InventoryLot
from inventory_kernel.models.movement import InventoryMovement
from inventory_kernel.selectors.lot_selector import LotSelector
from inventory_kernel.services.base import BaseService

logger = get_logger("services.ledger_writer")

_lots = InventoryLot.__table__
_items = InventoryItem.__table__

ZERO = Decimal("0")


def coerce_reason(reason: AdjustmentReason | str) -> AdjustmentReason:
    if isinstance(reason, AdjustmentReason):
        return reason
    try:
        return AdjustmentReason(str(reason).strip().lower())
    except ValueError as e:
        raise ValidationError("reason", f"unknown adjustment reason {reason!r}") from e


def _has_text(value: str | None) -> bool:
    return bool(value and value.strip())


class MovementLedgerWriter(BaseService[InventoryMovement]):
    """
    Applies ledger writes within the caller's transaction.

    Contract:
        Every public method either completes all of its lot/item updates and
        movement inserts (flushed, not committed) or raises.  On raise the
        caller must roll back; partial writes may be pending in the session.

    Non-goals:
        - Does NOT commit or roll back.
        - Does NOT choose lots; plans come from the allocation planner.
    """

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        transfer_split_suffix: str = "-SPLIT",
        require_notes_on_dispose: bool = True,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._split_suffix = transfer_split_suffix
        self._require_notes_on_dispose = require_notes_on_dispose
        self._lots = LotSelector(session)

    # ------------------------------------------------------------------
    # Consumption, transfer, disposal
    # ------------------------------------------------------------------

    def apply_consumption(
        self,
        plan: ConsumptionPlan,
        destination: Destination,
        metadata: MovementMetadata | None = None,
    ) -> list[MovementRecord]:
        """
        Apply a plan to a batch, a task, or another storage location.

        A batch or task destination records ``consume`` movements and lowers
        the item's on-hand quantity by the plan total.  A location
        destination records ``transfer`` movements: each line moves its
        quantity out of the source lot into a new lot at the destination
        and the item's on-hand quantity is unchanged.

        Raises:
            InvalidDestinationError: destination is not a Destination.
            StaleAllocationError: a line is no longer satisfiable.
        """
        if not isinstance(destination, Destination):
            raise InvalidDestinationError("destination must be a Destination")
        if destination.is_transfer:
            for line in plan.lines:
                if line.storage_location == destination.to_location.strip():
                    raise InvalidDestinationError(
                        f"lot {line.lot_id} is already at {line.storage_location}"
                    )
        metadata = metadata or MovementMetadata()

        t0 = time.monotonic()
        logger.info("ledger_consumption_started", extra={
            "item_id": str(plan.item_id),
            "movement_type": destination.movement_type.value,
            "line_count": len(plan.lines),
            "total_quantity": str(plan.total_quantity),
        })

        sources = self._decrement_plan_lots(plan)

        if destination.is_transfer:
            records = self._write_transfer(plan, sources, destination, metadata)
        else:
            self._decrement_item(plan.item_id, plan.total_quantity)
            records = [
                self._insert_movement(
                    item_id=plan.item_id,
                    lot_id=line.lot_id,
                    movement_type=MovementType.CONSUME,
                    quantity=line.quantity,
                    unit_cost=sources[line.lot_id].cost_per_unit,
                    from_location=sources[line.lot_id].storage_location,
                    batch_id=destination.batch_id,
                    task_id=destination.task_id,
                    metadata=metadata,
                )
                for line in plan.lines
            ]

        self.session.flush()
        logger.info("ledger_consumption_applied", extra={
            "item_id": str(plan.item_id),
            "movement_type": destination.movement_type.value,
            "movement_count": len(records),
            "total_quantity": str(plan.total_quantity),
            "duration_ms": round((time.monotonic() - t0) * 1000, 2),
        })
        return records

    def apply_disposal(
        self,
        plan: ConsumptionPlan,
        metadata: MovementMetadata | None = None,
    ) -> list[MovementRecord]:
        """
        Write off stock as waste: ``dispose`` movements, lots and item decremented.

        Raises:
            NotesRequiredError: disposal without notes (when required).
            StaleAllocationError: a line is no longer satisfiable.
        """
        metadata = metadata or MovementMetadata()
        if self._require_notes_on_dispose and not _has_text(metadata.notes):
            raise NotesRequiredError("disposal")

        sources = self._decrement_plan_lots(plan)
        self._decrement_item(plan.item_id, plan.total_quantity)
        records = [
            self._insert_movement(
                item_id=plan.item_id,
                lot_id=line.lot_id,
                movement_type=MovementType.DISPOSE,
                quantity=line.quantity,
                unit_cost=sources[line.lot_id].cost_per_unit,
                from_location=sources[line.lot_id].storage_location,
                metadata=metadata,
            )
            for line in plan.lines
        ]
        self.session.flush()
        logger.info("ledger_disposal_applied", extra={
            "item_id": str(plan.item_id),
            "movement_count": len(records),
            "total_quantity": str(plan.total_quantity),
        })
        return records

    def apply_untracked_consumption(
        self,
        item_id: UUID,
        quantity: Decimal | int | str,
        destination: Destination,
        metadata: MovementMetadata | None = None,
    ) -> list[MovementRecord]:
        """
        Issue stock that was received without a lot.

        Draws on the part of the item's on-hand quantity not held by active
        lots and records a single ``consume`` movement with no lot.

        Raises:
            InvalidDestinationError: not a batch or task destination.
            InsufficientStockError: untracked quantity does not cover it.
        """
        if not isinstance(destination, Destination):
            raise InvalidDestinationError("destination must be a Destination")
        if destination.is_transfer:
            raise InvalidDestinationError("stock without a lot cannot be transferred")
        qty = positive_quantity(quantity)
        metadata = metadata or MovementMetadata()

        item = self._lock_item(item_id)
        untracked = Decimal(item.current_quantity) - self._lots.active_lot_total(item_id)
        if qty > untracked:
            logger.warning("untracked_stock_insufficient", extra={
                "item_id": str(item_id),
                "requested": str(qty),
                "untracked_quantity": str(untracked),
            })
            raise InsufficientStockError(
                item_id=str(item_id),
                requested=qty,
                available=max(untracked, ZERO),
            )

        self._decrement_item(item_id, qty)
        record = self._insert_movement(
            item_id=item_id,
            lot_id=None,
            movement_type=MovementType.CONSUME,
            quantity=qty,
            from_location=item.storage_location,
            batch_id=destination.batch_id,
            task_id=destination.task_id,
            metadata=metadata,
        )
        self.session.flush()
        logger.info("ledger_untracked_consumption_applied", extra={
            "item_id": str(item_id),
            "quantity": str(qty),
        })
        return [record]

    def _decrement_plan_lots(self, plan: ConsumptionPlan) -> dict[UUID, LotSnapshot]:
        """
        Re-read, compare and decrement every planned lot.

        Returns the pre-decrement snapshots keyed by lot id.
        """
        lines_by_lot = {line.lot_id: line for line in plan.lines}
        snapshots: dict[UUID, LotSnapshot] = {}

        # Lock in id order so concurrent writers cannot deadlock on lots
        for lot_id in sorted(lines_by_lot, key=str):
            line = lines_by_lot[lot_id]
            lot = self.session.get(
                InventoryLot, lot_id, with_for_update=True, populate_existing=True
            )
            if lot is None:
                raise LotNotFoundError(str(lot_id), str(plan.item_id))
            if lot.item_id != plan.item_id:
                raise ValidationError(
                    "plan", f"lot {lot_id} does not belong to item {plan.item_id}"
                )
            if not lot.is_active or lot.quantity_remaining < line.quantity:
                self._raise_stale(plan, line, lot.quantity_remaining if lot.is_active else ZERO)

            snapshots[lot_id] = LotSnapshot.from_model(lot)
            self._guarded_lot_decrement(plan, line, lot)

        return snapshots

    def _guarded_lot_decrement(
        self,
        plan: ConsumptionPlan,
        line: PlanLine,
        lot: InventoryLot,
    ) -> None:
        q = line.quantity
        result = self.session.execute(
            update(_lots)
            .where(
                _lots.c.id == line.lot_id,
                _lots.c.is_active.is_(True),
                _lots.c.quantity_remaining >= q,
            )
            .values(
                quantity_remaining=_lots.c.quantity_remaining - q,
                is_active=case((_lots.c.quantity_remaining - q > 0, True), else_=False),
                updated_at=func.now(),
            )
        )
        if result.rowcount != 1:
            self.session.refresh(lot)
            self._raise_stale(plan, line, lot.quantity_remaining)
        self.session.refresh(lot)
        if not lot.is_active:
            logger.info("lot_exhausted", extra={
                "item_id": str(plan.item_id),
                "lot_id": str(line.lot_id),
            })

    def _raise_stale(self, plan: ConsumptionPlan, line: PlanLine, current: Decimal) -> None:
        logger.warning("stale_allocation_detected", extra={
            "item_id": str(plan.item_id),
            "lot_id": str(line.lot_id),
            "planned_quantity": str(line.quantity),
            "available_snapshot": str(line.available_snapshot),
            "current_quantity": str(current),
        })
        raise StaleAllocationError(
            item_id=str(plan.item_id),
            lot_id=str(line.lot_id),
            planned_quantity=line.quantity,
            current_quantity=current,
        )

    def _write_transfer(
        self,
        plan: ConsumptionPlan,
        sources: dict[UUID, LotSnapshot],
        destination: Destination,
        metadata: MovementMetadata,
    ) -> list[MovementRecord]:
        to_location = destination.to_location.strip()
        item = self._lock_item(plan.item_id)
        records: list[MovementRecord] = []

        for line in plan.lines:
            source = sources[line.lot_id]
            sequence = self._next_lot_sequence(item)
            split = InventoryLot(
                id=uuid4(),
                item_id=plan.item_id,
                lot_code=self._split_code(plan.item_id, source.lot_code),
                sequence=sequence,
                quantity_received=line.quantity,
                quantity_remaining=line.quantity,
                unit_of_measure=source.unit_of_measure,
                received_date=source.received_date,
                expiry_date=source.expiry_date,
                manufacture_date=source.manufacture_date,
                storage_location=to_location,
                cost_per_unit=source.cost_per_unit,
                supplier_name=source.supplier_name,
                compliance_package_uid=source.compliance_package_uid,
                notes=source.notes,
                is_active=True,
                created_by=metadata.performed_by,
            )
            self.session.add(split)
            self.session.flush()

            records.append(self._insert_movement(
                item_id=plan.item_id,
                lot_id=source.id,
                movement_type=MovementType.TRANSFER,
                quantity=-line.quantity,
                unit_cost=source.cost_per_unit,
                from_location=source.storage_location,
                to_location=to_location,
                metadata=metadata,
            ))
            records.append(self._insert_movement(
                item_id=plan.item_id,
                lot_id=split.id,
                movement_type=MovementType.TRANSFER,
                quantity=line.quantity,
                unit_cost=source.cost_per_unit,
                from_location=source.storage_location,
                to_location=to_location,
                metadata=metadata,
            ))
            logger.info("lot_split_for_transfer", extra={
                "item_id": str(plan.item_id),
                "source_lot_id": str(source.id),
                "split_lot_id": str(split.id),
                "split_lot_code": split.lot_code,
                "quantity": str(line.quantity),
                "to_location": to_location,
            })

        return records

    def _split_code(self, item_id: UUID, lot_code: str) -> str:
        candidate = f"{lot_code}{self._split_suffix}"
        n = 2
        while self._lots.lot_code_exists(item_id, candidate):
            candidate = f"{lot_code}{self._split_suffix}-{n}"
            n += 1
        return candidate

    # ------------------------------------------------------------------
    # Receipts
    # ------------------------------------------------------------------

    def apply_receipt(
        self,
        item_id: UUID,
        quantity: Decimal | int | str,
        lot_fields: LotFields | None = None,
        metadata: MovementMetadata | None = None,
    ) -> tuple[MovementRecord, LotSnapshot | None]:
        """
        Receive stock, optionally as a new lot.

        Raises:
            InvalidQuantityError: quantity not finite and > 0.
            ItemNotFoundError: unknown or inactive item.
            DuplicateLotCodeError / UnitOfMeasureMismatchError: bad lot fields.
        """
        qty = positive_quantity(quantity)
        metadata = metadata or MovementMetadata()
        item = self._lock_item(item_id)

        lot: InventoryLot | None = None
        if lot_fields is not None:
            if lot_fields.unit_of_measure and lot_fields.unit_of_measure != item.unit_of_measure:
                raise UnitOfMeasureMismatchError(
                    str(item_id), item.unit_of_measure, lot_fields.unit_of_measure
                )
            if self._lots.lot_code_exists(item_id, lot_fields.lot_code):
                raise DuplicateLotCodeError(str(item_id), lot_fields.lot_code)
            if lot_fields.cost_per_unit is not None and Decimal(lot_fields.cost_per_unit) < 0:
                raise ValidationError("cost_per_unit", "cost per unit cannot be negative")

            self._increment_item(item, qty, bump_sequence=True)
            lot = InventoryLot(
                id=uuid4(),
                item_id=item_id,
                lot_code=lot_fields.lot_code,
                sequence=item.lot_sequence,
                quantity_received=qty,
                quantity_remaining=qty,
                unit_of_measure=item.unit_of_measure,
                received_date=lot_fields.received_date or self._clock.today(),
                expiry_date=lot_fields.expiry_date,
                manufacture_date=lot_fields.manufacture_date,
                storage_location=lot_fields.storage_location or item.storage_location,
                cost_per_unit=lot_fields.cost_per_unit,
                supplier_name=lot_fields.supplier_name,
                compliance_package_uid=lot_fields.compliance_package_uid,
                notes=lot_fields.notes,
                is_active=True,
                created_by=metadata.performed_by,
            )
            self.session.add(lot)
            self.session.flush()
        else:
            self._increment_item(item, qty)

        record = self._insert_movement(
            item_id=item_id,
            lot_id=lot.id if lot is not None else None,
            movement_type=MovementType.RECEIVE,
            quantity=qty,
            unit_cost=lot.cost_per_unit if lot is not None else None,
            to_location=lot.storage_location if lot is not None else item.storage_location,
            metadata=metadata,
        )
        self.session.flush()

        logger.info("ledger_receipt_applied", extra={
            "item_id": str(item_id),
            "lot_id": str(lot.id) if lot is not None else None,
            "lot_code": lot.lot_code if lot is not None else None,
            "quantity": str(qty),
        })
        return record, LotSnapshot.from_model(lot) if lot is not None else None

    # ------------------------------------------------------------------
    # Adjustments
    # ------------------------------------------------------------------

    def apply_adjustment(
        self,
        item_id: UUID,
        lot_id: UUID | None,
        delta: Decimal | int | str,
        reason: AdjustmentReason | str,
        notes: str | None,
        metadata: MovementMetadata | None = None,
    ) -> MovementRecord:
        """
        Apply a signed manual correction to a lot or to the item only.

        Raises:
            InvalidQuantityError: delta zero or not finite.
            NotesRequiredError: decrease without notes.
            InvalidAdjustmentError: would go negative, or foreign lot.
        """
        amount = signed_delta(delta, "signed_delta")
        reason = coerce_reason(reason)
        if amount < 0 and not _has_text(notes):
            raise NotesRequiredError("decrease adjustment")
        metadata = metadata or MovementMetadata()

        lot: InventoryLot | None = None
        reactivated = False
        if lot_id is not None:
            lot, reactivated = self._adjust_lot(item_id, lot_id, amount)
        item = self._lock_item(item_id)
        self._check_active_lots_covered(item, lot_id, amount, reactivated)

        new_quantity = item.current_quantity + amount
        if new_quantity < 0:
            raise InvalidAdjustmentError(
                str(item_id), str(lot_id) if lot_id else None,
                f"item quantity would become {new_quantity}",
            )
        result = self.session.execute(
            update(_items)
            .where(_items.c.id == item_id, _items.c.current_quantity + amount >= 0)
            .values(current_quantity=_items.c.current_quantity + amount, updated_at=func.now())
        )
        if result.rowcount != 1:
            raise InvalidAdjustmentError(
                str(item_id), str(lot_id) if lot_id else None,
                "item quantity would become negative",
            )
        self.session.refresh(item)

        record = self._insert_movement(
            item_id=item_id,
            lot_id=lot_id,
            movement_type=MovementType.ADJUST,
            quantity=amount,
            unit_cost=lot.cost_per_unit if lot is not None else None,
            from_location=lot.storage_location if lot is not None else None,
            metadata=MovementMetadata(
                performed_by=metadata.performed_by,
                notes=format_reason_notes(reason, notes),
                reason=reason.value,
            ),
        )
        self.session.flush()

        logger.info("ledger_adjustment_applied", extra={
            "item_id": str(item_id),
            "lot_id": str(lot_id) if lot_id else None,
            "delta": str(amount),
            "reason": reason.value,
            "new_item_quantity": str(item.current_quantity),
        })
        return record

    def _adjust_lot(
        self, item_id: UUID, lot_id: UUID, amount: Decimal
    ) -> tuple[InventoryLot, bool]:
        lot = self.session.get(
            InventoryLot, lot_id, with_for_update=True, populate_existing=True
        )
        if lot is None:
            raise LotNotFoundError(str(lot_id), str(item_id))
        if lot.item_id != item_id:
            logger.warning("adjustment_foreign_lot", extra={
                "item_id": str(item_id),
                "lot_id": str(lot_id),
                "lot_item_id": str(lot.item_id),
            })
            raise InvalidAdjustmentError(
                str(item_id), str(lot_id), "lot does not belong to this item"
            )
        if lot.quantity_remaining + amount < 0:
            raise InvalidAdjustmentError(
                str(item_id), str(lot_id),
                f"lot has {lot.quantity_remaining}, cannot adjust by {amount}",
            )

        if amount > 0:
            # An increase is the explicit path that brings a lot back into use
            activation = True
        else:
            activation = case((_lots.c.quantity_remaining + amount > 0, _lots.c.is_active), else_=False)

        result = self.session.execute(
            update(_lots)
            .where(_lots.c.id == lot_id, _lots.c.quantity_remaining + amount >= 0)
            .values(
                quantity_remaining=_lots.c.quantity_remaining + amount,
                is_active=activation,
                updated_at=func.now(),
            )
        )
        if result.rowcount != 1:
            raise InvalidAdjustmentError(
                str(item_id), str(lot_id), "lot quantity would become negative"
            )
        was_active = lot.is_active
        self.session.refresh(lot)
        if was_active != lot.is_active:
            logger.info("lot_reactivated" if lot.is_active else "lot_exhausted", extra={
                "item_id": str(item_id),
                "lot_id": str(lot_id),
            })
        return lot, lot.is_active and not was_active

    def _check_active_lots_covered(
        self,
        item: InventoryItem,
        lot_id: UUID | None,
        amount: Decimal,
        reactivated: bool,
    ) -> None:
        """
        The item quantity after ``amount`` must still cover every active lot.

        Runs after any lot update, so the active total already reflects it.
        """
        lot_total = self._lots.active_lot_total(item.id)
        new_quantity = item.current_quantity + amount
        if new_quantity >= lot_total:
            return
        logger.warning("adjustment_undercuts_active_lots", extra={
            "item_id": str(item.id),
            "lot_id": str(lot_id) if lot_id else None,
            "active_lot_total": str(lot_total),
            "new_item_quantity": str(new_quantity),
            "reactivated": reactivated,
        })
        if reactivated:
            reason = (
                f"reactivating lot would raise active lot total to {lot_total}, "
                f"above item quantity {new_quantity}"
            )
        else:
            reason = (
                f"item quantity {new_quantity} would fall below "
                f"active lot total {lot_total}"
            )
        raise InvalidAdjustmentError(
            str(item.id), str(lot_id) if lot_id else None, reason
        )

    # ------------------------------------------------------------------
    # Item and movement helpers
    # ------------------------------------------------------------------

    def _lock_item(self, item_id: UUID) -> InventoryItem:
        item = self.session.get(
            InventoryItem, item_id, with_for_update=True, populate_existing=True
        )
        if item is None or not item.is_active:
            raise ItemNotFoundError(str(item_id))
        return item

    def _next_lot_sequence(self, item: InventoryItem) -> int:
        self.session.execute(
            update(_items)
            .where(_items.c.id == item.id)
            .values(lot_sequence=_items.c.lot_sequence + 1)
        )
        self.session.refresh(item)
        return item.lot_sequence

    def _increment_item(
        self,
        item: InventoryItem,
        quantity: Decimal,
        bump_sequence: bool = False,
    ) -> None:
        values = {
            "current_quantity": _items.c.current_quantity + quantity,
            "updated_at": func.now(),
        }
        if bump_sequence:
            values["lot_sequence"] = _items.c.lot_sequence + 1
        self.session.execute(update(_items).where(_items.c.id == item.id).values(**values))
        self.session.refresh(item)

    def _decrement_item(self, item_id: UUID, quantity: Decimal) -> None:
        item = self._lock_item(item_id)
        result = self.session.execute(
            update(_items)
            .where(_items.c.id == item_id, _items.c.current_quantity >= quantity)
            .values(current_quantity=_items.c.current_quantity - quantity, updated_at=func.now())
        )
        if result.rowcount != 1:
            self.session.refresh(item)
            logger.error("item_quantity_below_lot_total", extra={
                "item_id": str(item_id),
                "requested": str(quantity),
                "current_quantity": str(item.current_quantity),
            })
            raise InsufficientStockError(
                item_id=str(item_id),
                requested=quantity,
                available=Decimal(item.current_quantity),
            )
        self.session.refresh(item)

    def _insert_movement(
        self,
        item_id: UUID,
        lot_id: UUID | None,
        movement_type: MovementType,
        quantity: Decimal,
        metadata: MovementMetadata,
        unit_cost: Decimal | None = None,
        from_location: str | None = None,
        to_location: str | None = None,
        batch_id: str | None = None,
        task_id: str | None = None,
    ) -> MovementRecord:
        movement = InventoryMovement(
            id=uuid4(),
            item_id=item_id,
            lot_id=lot_id,
            movement_type=movement_type.value,
            quantity=quantity,
            unit_cost=unit_cost,
            from_location=from_location,
            to_location=to_location,
            batch_id=batch_id,
            task_id=task_id,
            reason=metadata.reason,
            notes=metadata.notes,
            performed_by=metadata.performed_by,
            timestamp=self._clock.now(),
        )
        self.session.add(movement)
        return MovementRecord.from_model(movement)

