"""
Inventory Service (``inventory_services.inventory_service``).

Responsibility
--------------
The caller-facing surface of the inventory ledger.  Composes the pure
engines (``AllocationPlanner``, ``StockBalanceProjector``) with the kernel
writers (``MovementLedgerWriter``, ``CatalogService``) and selectors.  It
contains no allocation or availability rules of its own.

Architecture
------------
Layer: **Services** -- stateful orchestration wrapper.

1. Reads candidate lots through ``LotSelector`` and asks ``AllocationPlanner``
   for a plan.
2. Hands plans, receipts and adjustments to ``MovementLedgerWriter``.
3. Derives balances and expiry classes through ``StockBalanceProjector``.

Invariants
----------
- Each public method owns its transaction boundary through
  ``unit_of_work(session_factory)``: commit on success, rollback on failure.
- The service holds a session factory, never a session; it keeps no other
  mutable state.
- Plans are advisory.  ``commit_consumption`` re-validates every line.

Failure Modes
-------------
- Typed ``InventoryKernelError`` subclasses propagate unchanged after the
  unit of work has rolled back.
- ``issue_stock`` retries ``StaleAllocationError`` at most
  ``config.max_commit_retries`` times, then re-raises it.

Usage::

    service = InventoryService(session_factory, clock=clock)
    plan = service.plan_consumption(item_id, Decimal("120"), "fifo")
    service.commit_consumption(
        plan, Destination(batch_id="B-7"), MovementMetadata(performed_by="amy"),
    )
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from inventory_config import InventoryConfig, get_active_config
from inventory_engines.allocation import AllocationPlanner, coerce_strategy
from inventory_engines.stock_balance import (
    StockAlert,
    StockBalance,
    StockBalanceProjector,
)
from inventory_kernel.db.engine import unit_of_work
from inventory_kernel.db.immutability import register_immutability_listeners
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import (
    AllocationStrategy,
    Destination,
    ExpiryStatus,
    ItemSnapshot,
    LotFields,
    LotSnapshot,
    MovementMetadata,
    MovementRecord,
    MovementSummary,
    ReconciliationResult,
)
from inventory_kernel.domain.plan import ConsumptionPlan
from inventory_kernel.exceptions import StaleAllocationError, ValidationError
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.selectors.lot_selector import LotSelector
from inventory_kernel.selectors.movement_selector import MovementSelector
from inventory_kernel.services.catalog_service import CatalogService
from inventory_kernel.services.ledger_writer import MovementLedgerWriter
from inventory_services.adjustment_handler import (
    AdjustmentHandler,
    AdjustmentPreview,
    AdjustmentRequest,
)

logger = get_logger("services.inventory")


def _actor(metadata: MovementMetadata | None) -> str | None:
    return metadata.performed_by if metadata is not None else None


class InventoryService:
    """
    Orchestrates inventory ledger operations.

    Contract
    --------
    Every write method runs in exactly one transaction.  Either every lot
    update, item update and movement insert of the call is committed, or
    none is.

    Non-goals
    ---------
    - Does NOT order lots; ``inventory_engines.allocation`` does.
    - Does NOT compute availability; ``inventory_engines.stock_balance`` does.
    - Does NOT hold sessions between calls.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        config: InventoryConfig | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._config = config or get_active_config()
        self._planner = AllocationPlanner()
        self._projector = StockBalanceProjector()
        register_immutability_listeners()

    @property
    def config(self) -> InventoryConfig:
        return self._config

    def _writer(self, session: Session) -> MovementLedgerWriter:
        return MovementLedgerWriter(
            session,
            clock=self._clock,
            transfer_split_suffix=self._config.transfer_split_suffix,
            require_notes_on_dispose=self._config.require_notes_on_dispose,
        )

    # =========================================================================
    # Catalog
    # =========================================================================

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
        """Create an item with zero stock."""
        with LogContext.bind(actor_id=created_by):
            with unit_of_work(self._session_factory) as session:
                return CatalogService(session).register_item(
                    name=name,
                    unit_of_measure=unit_of_measure,
                    sku=sku,
                    item_type=item_type,
                    minimum_quantity=minimum_quantity,
                    reorder_point=reorder_point,
                    storage_location=storage_location,
                    created_by=created_by,
                )

    def set_reserved_quantity(
        self,
        item_id: UUID,
        quantity: Decimal | int | str,
    ) -> ItemSnapshot:
        with LogContext.bind(item_id=str(item_id)):
            with unit_of_work(self._session_factory) as session:
                return CatalogService(session).set_reserved_quantity(item_id, quantity)

    def set_thresholds(
        self,
        item_id: UUID,
        minimum_quantity: Decimal | int | str | None = None,
        reorder_point: Decimal | int | str | None = None,
    ) -> ItemSnapshot:
        with LogContext.bind(item_id=str(item_id)):
            with unit_of_work(self._session_factory) as session:
                return CatalogService(session).set_thresholds(
                    item_id, minimum_quantity, reorder_point
                )

    def deactivate_lot(self, item_id: UUID, lot_id: UUID) -> LotSnapshot:
        with LogContext.bind(item_id=str(item_id)):
            with unit_of_work(self._session_factory) as session:
                return CatalogService(session).deactivate_lot(item_id, lot_id)

    def list_items(self, include_inactive: bool = False) -> list[ItemSnapshot]:
        with unit_of_work(self._session_factory) as session:
            return LotSelector(session).list_items(include_inactive=include_inactive)

    # =========================================================================
    # Planning and consumption
    # =========================================================================

    def plan_consumption(
        self,
        item_id: UUID,
        quantity: Decimal | int | str,
        strategy: AllocationStrategy | str | None = None,
        location_filter: str | None = None,
        lot_id: UUID | None = None,
    ) -> ConsumptionPlan:
        """
        Propose which lots satisfy ``quantity`` of an item.

        Without ``strategy`` the configured default applies.  Passing
        ``lot_id`` (or strategy MANUAL) plans against that lot alone.

        Raises:
            ItemNotFoundError / LotNotFoundError: unknown targets.
            InsufficientStockError: eligible lots cannot cover the request.
        """
        chosen = coerce_strategy(strategy or self._config.default_strategy)
        if chosen is AllocationStrategy.MANUAL and lot_id is None:
            raise ValidationError("lot_id", "manual allocation requires a lot_id")
        if lot_id is not None and strategy is not None and chosen is not AllocationStrategy.MANUAL:
            raise ValidationError(
                "lot_id", f"lot_id cannot be combined with {chosen.value} allocation"
            )

        with LogContext.bind(item_id=str(item_id)):
            with unit_of_work(self._session_factory) as session:
                lots = LotSelector(session)
                lots.require_item(item_id)

                if lot_id is not None:
                    lot = lots.require_lot(lot_id, item_id=item_id)
                    return self._planner.plan_manual(item_id, lot, quantity)

                not_expired_on = self._clock.today() if self._config.exclude_expired_lots else None
                candidates = lots.candidate_lots(
                    item_id,
                    location_filter=location_filter,
                    not_expired_on=not_expired_on,
                )
                return self._planner.plan(
                    item_id=item_id,
                    requested_quantity=quantity,
                    strategy=chosen,
                    candidates=candidates,
                    location_filter=location_filter,
                )

    def commit_consumption(
        self,
        plan: ConsumptionPlan,
        destination: Destination,
        metadata: MovementMetadata | None = None,
    ) -> list[MovementRecord]:
        """
        Apply a plan to a batch, task or location in one transaction.

        Raises:
            StaleAllocationError: a planned lot no longer covers its line;
                nothing is written and the caller should re-plan.
        """
        with LogContext.bind(item_id=str(plan.item_id), actor_id=_actor(metadata)):
            with unit_of_work(self._session_factory) as session:
                return self._writer(session).apply_consumption(plan, destination, metadata)

    def commit_disposal(
        self,
        plan: ConsumptionPlan,
        metadata: MovementMetadata,
    ) -> list[MovementRecord]:
        """Write planned stock off as waste; notes are required."""
        with LogContext.bind(item_id=str(plan.item_id), actor_id=_actor(metadata)):
            with unit_of_work(self._session_factory) as session:
                return self._writer(session).apply_disposal(plan, metadata)

    def issue_stock(
        self,
        item_id: UUID,
        quantity: Decimal | int | str,
        destination: Destination,
        strategy: AllocationStrategy | str | None = None,
        location_filter: str | None = None,
        metadata: MovementMetadata | None = None,
    ) -> list[MovementRecord]:
        """
        Plan and commit, re-planning after a stale allocation.

        At most ``config.max_commit_retries`` re-plans; the last
        StaleAllocationError is re-raised.  InsufficientStockError from a
        re-plan ends the loop immediately.

        An item with no active lots holding stock issues from its untracked
        quantity instead: one ``consume`` movement without a lot.
        """
        chosen = coerce_strategy(strategy or self._config.default_strategy)
        if location_filter is None and chosen is not AllocationStrategy.MANUAL:
            with LogContext.bind(item_id=str(item_id), actor_id=_actor(metadata)):
                with unit_of_work(self._session_factory) as session:
                    if LotSelector(session).active_lot_total(item_id) == 0:
                        logger.info("issue_from_untracked_stock", extra={
                            "item_id": str(item_id),
                            "quantity": str(quantity),
                        })
                        return self._writer(session).apply_untracked_consumption(
                            item_id, quantity, destination, metadata,
                        )

        attempt = 0
        while True:
            plan = self.plan_consumption(
                item_id, quantity, strategy=strategy, location_filter=location_filter,
            )
            try:
                return self.commit_consumption(plan, destination, metadata)
            except StaleAllocationError as exc:
                if attempt >= self._config.max_commit_retries:
                    logger.error("issue_retries_exhausted", extra={
                        "item_id": str(item_id),
                        "attempts": attempt + 1,
                        "lot_id": exc.lot_id,
                    })
                    raise
                attempt += 1
                logger.info("issue_retrying_after_stale_allocation", extra={
                    "item_id": str(item_id),
                    "attempt": attempt,
                    "lot_id": exc.lot_id,
                })

    # =========================================================================
    # Receipts and adjustments
    # =========================================================================

    def commit_receipt(
        self,
        item_id: UUID,
        quantity: Decimal | int | str,
        lot_fields: LotFields | None = None,
        metadata: MovementMetadata | None = None,
    ) -> tuple[MovementRecord, LotSnapshot | None]:
        """Receive stock; with ``lot_fields`` a new lot is created."""
        with LogContext.bind(item_id=str(item_id), actor_id=_actor(metadata)):
            with unit_of_work(self._session_factory) as session:
                return self._writer(session).apply_receipt(
                    item_id, quantity, lot_fields=lot_fields, metadata=metadata,
                )

    def preview_adjustment(self, request: AdjustmentRequest) -> AdjustmentPreview:
        with LogContext.bind(item_id=str(request.item_id)):
            with unit_of_work(self._session_factory) as session:
                return AdjustmentHandler(session, self._writer(session)).preview(request)

    def commit_adjustment(
        self,
        request: AdjustmentRequest,
        metadata: MovementMetadata | None = None,
    ) -> MovementRecord:
        """
        Apply a manual correction.

        Raises:
            NotesRequiredError: decrease without notes, before any write.
            InvalidAdjustmentError: lot or item would go negative, or the lot
                belongs to another item.
        """
        with LogContext.bind(item_id=str(request.item_id), actor_id=_actor(metadata)):
            with unit_of_work(self._session_factory) as session:
                return AdjustmentHandler(session, self._writer(session)).submit(
                    request, metadata
                )

    # =========================================================================
    # Balances, expiry and alerts
    # =========================================================================

    def get_stock_balance(self, item_id: UUID) -> StockBalance:
        with unit_of_work(self._session_factory) as session:
            item = LotSelector(session).require_item(item_id, active_only=False)
        return self._projector.project(item)

    def get_expiry_status(
        self,
        lot_id: UUID,
        as_of: date | None = None,
        horizon_days: int | None = None,
    ) -> ExpiryStatus:
        with unit_of_work(self._session_factory) as session:
            lot = LotSelector(session).require_lot(lot_id)
        return self._projector.classify_expiry(
            lot,
            as_of or self._clock.today(),
            self._config.expiry_warning_days if horizon_days is None else horizon_days,
        )

    def get_stock_alerts(self, item_id: UUID) -> list[StockAlert]:
        with unit_of_work(self._session_factory) as session:
            lots = LotSelector(session)
            item = lots.require_item(item_id, active_only=False)
            item_lots = lots.list_lots(item_id)
        return self._projector.alerts(
            item, item_lots, self._clock.today(), self._config.expiry_warning_days,
        )

    # =========================================================================
    # Lot and movement queries
    # =========================================================================

    def list_lots(self, item_id: UUID, include_inactive: bool = False) -> list[LotSnapshot]:
        with unit_of_work(self._session_factory) as session:
            lots = LotSelector(session)
            lots.require_item(item_id, active_only=False)
            return lots.list_lots(item_id, include_inactive=include_inactive)

    def get_expiring_lots(
        self,
        item_id: UUID | None = None,
        within_days: int | None = None,
    ) -> list[LotSnapshot]:
        days = self._config.expiry_warning_days if within_days is None else within_days
        with unit_of_work(self._session_factory) as session:
            return LotSelector(session).expiring_lots(self._clock.today(), days, item_id)

    def get_expired_lots(self, item_id: UUID | None = None) -> list[LotSnapshot]:
        with unit_of_work(self._session_factory) as session:
            return LotSelector(session).expired_lots(self._clock.today(), item_id)

    def get_movements(
        self,
        item_id: UUID,
        lot_id: UUID | None = None,
        limit: int | None = None,
    ) -> list[MovementRecord]:
        with unit_of_work(self._session_factory) as session:
            return MovementSelector(session).history(item_id, lot_id=lot_id, limit=limit)

    def get_destination_movements(
        self,
        batch_id: str | None = None,
        task_id: str | None = None,
    ) -> list[MovementRecord]:
        """Every movement issued to a batch or a task, across items."""
        if (batch_id is None) == (task_id is None):
            raise ValidationError("destination", "exactly one of batch_id or task_id is required")
        with unit_of_work(self._session_factory) as session:
            return MovementSelector(session).for_destination(batch_id=batch_id, task_id=task_id)

    def get_movement_summary(self, item_id: UUID) -> MovementSummary:
        with unit_of_work(self._session_factory) as session:
            LotSelector(session).require_item(item_id, active_only=False)
            return MovementSelector(session).summary(item_id)

    def reconcile_lot(self, lot_id: UUID) -> ReconciliationResult:
        with unit_of_work(self._session_factory) as session:
            result = MovementSelector(session).reconcile_lot(lot_id)
        self._log_reconciliation(result)
        return result

    def reconcile_item(self, item_id: UUID) -> ReconciliationResult:
        with unit_of_work(self._session_factory) as session:
            result = MovementSelector(session).reconcile_item(item_id)
        self._log_reconciliation(result)
        return result

    def _log_reconciliation(self, result: ReconciliationResult) -> None:
        extra = {
            "entity_type": result.entity_type,
            "entity_id": str(result.entity_id),
            "cached_quantity": str(result.cached_quantity),
            "replayed_quantity": str(result.replayed_quantity),
            "movement_count": result.movement_count,
        }
        if result.is_consistent:
            logger.info("ledger_reconciled", extra=extra)
        else:
            logger.error("ledger_drift_detected", extra=extra)
