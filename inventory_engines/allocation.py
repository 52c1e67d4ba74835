"""
Module: inventory_engines.allocation
Responsibility:
    Decide which lots of an item satisfy an issue, transfer, or disposal
    request under a FIFO, LIFO, FEFO or MANUAL policy.  This is the single
    place lot ordering is implemented.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Operates on LotSnapshot candidates supplied by the LotSelector and
    returns a ConsumptionPlan for the MovementLedgerWriter.

Invariants enforced:
    - Only active lots of the item with quantity_remaining > 0 (and at the
      filtered location, when given) are eligible.
    - Ordering is total and deterministic:
        FIFO  received_date asc, sequence asc
        LIFO  received_date desc, sequence desc
        FEFO  expiry_date asc with undated lots last, then received_date
              asc, sequence asc
    - Greedy walk: each line takes min(still needed, lot remaining).
    - A plan always covers the full request; otherwise nothing is returned.

Failure modes:
    - InvalidQuantityError when requested_quantity is not finite and > 0.
    - ValidationError for an unknown strategy, or MANUAL passed to plan().
    - InsufficientStockError(available, shortfall) when eligible lots
      cannot cover the request.

Usage:
    planner = AllocationPlanner()
    plan = planner.plan(
        item_id=item.id,
        requested_quantity=Decimal("120"),
        strategy=AllocationStrategy.FIFO,
        candidates=lot_selector.candidate_lots(item.id),
    )
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from uuid import UUID

from inventory_engines.tracer import traced_engine
from inventory_kernel.domain.dtos import AllocationStrategy, LotSnapshot
from inventory_kernel.domain.plan import ConsumptionPlan, PlanLine
from inventory_kernel.domain.values import positive_quantity
from inventory_kernel.exceptions import InsufficientStockError, ValidationError
from inventory_kernel.logging_config import get_logger

logger = get_logger("engines.allocation")

__all__ = [
    "AllocationPlanner",
    "ConsumptionPlan",
    "PlanLine",
    "coerce_strategy",
    "order_candidates",
]


def coerce_strategy(strategy: AllocationStrategy | str) -> AllocationStrategy:
    """Accept the enum or its value ("fifo", "FEFO", ...)."""
    if isinstance(strategy, AllocationStrategy):
        return strategy
    try:
        return AllocationStrategy(str(strategy).strip().lower())
    except ValueError as e:
        raise ValidationError("strategy", f"unknown allocation strategy {strategy!r}") from e


def _fifo_key(lot: LotSnapshot) -> tuple:
    return (lot.received_date, lot.sequence)


def _fefo_key(lot: LotSnapshot) -> tuple:
    # Undated lots never expire, so they sort after every dated lot
    return (
        lot.expiry_date is None,
        lot.expiry_date or date.max,
        lot.received_date,
        lot.sequence,
    )


def order_candidates(
    candidates: Sequence[LotSnapshot],
    strategy: AllocationStrategy,
) -> list[LotSnapshot]:
    """Order eligible lots by the strategy's consumption priority."""
    match strategy:
        case AllocationStrategy.FIFO:
            return sorted(candidates, key=_fifo_key)
        case AllocationStrategy.LIFO:
            return sorted(candidates, key=_fifo_key, reverse=True)
        case AllocationStrategy.FEFO:
            return sorted(candidates, key=_fefo_key)
        case _:
            raise ValidationError(
                "strategy",
                f"{strategy.value} allocation has no candidate ordering",
            )


def _is_eligible(lot: LotSnapshot, item_id: UUID, location_filter: str | None) -> bool:
    if lot.item_id != item_id or not lot.is_active or lot.quantity_remaining <= 0:
        return False
    if location_filter is not None and lot.storage_location != location_filter:
        return False
    return True


class AllocationPlanner:
    """
    Pure allocation planner.

    Contract:
        Same candidates and request always produce the same plan.  The plan
        is advisory; the ledger writer re-validates every line at commit.
    Non-goals:
        - No unit conversion.
        - No reads or writes; candidates are handed in.
    """

    @traced_engine(
        "allocation",
        "1.0",
        fingerprint_fields=("item_id", "requested_quantity", "strategy", "location_filter"),
    )
    def plan(
        self,
        item_id: UUID,
        requested_quantity: Decimal | int | str,
        strategy: AllocationStrategy | str,
        candidates: Sequence[LotSnapshot],
        location_filter: str | None = None,
    ) -> ConsumptionPlan:
        """
        Walk the ordered candidates and allocate greedily.

        Raises:
            InvalidQuantityError: requested_quantity not finite and > 0.
            ValidationError: unknown strategy or MANUAL.
            InsufficientStockError: eligible lots cannot cover the request.
        """
        requested = positive_quantity(requested_quantity, "requested_quantity")
        strategy = coerce_strategy(strategy)
        if strategy is AllocationStrategy.MANUAL:
            raise ValidationError(
                "strategy", "manual allocation needs a target lot; use plan_manual()"
            )

        eligible = [c for c in candidates if _is_eligible(c, item_id, location_filter)]
        ordered = order_candidates(eligible, strategy)

        logger.info("allocation_started", extra={
            "item_id": str(item_id),
            "requested_quantity": str(requested),
            "strategy": strategy.value,
            "location_filter": location_filter,
            "candidate_count": len(ordered),
        })

        remaining = requested
        lines: list[PlanLine] = []
        for lot in ordered:
            if remaining <= 0:
                break
            take = min(remaining, lot.quantity_remaining)
            lines.append(
                PlanLine(
                    lot_id=lot.id,
                    quantity=take,
                    available_snapshot=lot.quantity_remaining,
                    lot_code=lot.lot_code,
                    storage_location=lot.storage_location,
                    unit_cost=lot.cost_per_unit,
                )
            )
            remaining -= take

        if remaining > 0:
            available = requested - remaining
            logger.warning("allocation_insufficient_stock", extra={
                "item_id": str(item_id),
                "requested_quantity": str(requested),
                "available": str(available),
                "shortfall": str(remaining),
                "strategy": strategy.value,
            })
            raise InsufficientStockError(
                item_id=str(item_id),
                requested=requested,
                available=available,
                location=location_filter,
            )

        plan = ConsumptionPlan(
            item_id=item_id,
            requested_quantity=requested,
            strategy=strategy,
            lines=tuple(lines),
            location_filter=location_filter,
        )
        logger.info("consumption_plan_created", extra={
            "item_id": str(item_id),
            "strategy": strategy.value,
            "line_count": len(lines),
            "lot_ids": [str(line.lot_id) for line in lines],
        })
        return plan

    @traced_engine(
        "allocation",
        "1.0",
        fingerprint_fields=("item_id", "lot", "requested_quantity"),
    )
    def plan_manual(
        self,
        item_id: UUID,
        lot: LotSnapshot,
        requested_quantity: Decimal | int | str,
    ) -> ConsumptionPlan:
        """
        One-line plan against a caller-chosen lot.

        Raises:
            InvalidQuantityError: requested_quantity not finite and > 0.
            ValidationError: the lot belongs to another item.
            InsufficientStockError: the lot cannot cover the request.
        """
        requested = positive_quantity(requested_quantity, "requested_quantity")
        if lot.item_id != item_id:
            raise ValidationError("lot_id", f"lot {lot.id} does not belong to item {item_id}")

        available = lot.quantity_remaining if lot.is_active else Decimal("0")
        if available < requested:
            logger.warning("allocation_insufficient_stock", extra={
                "item_id": str(item_id),
                "lot_id": str(lot.id),
                "requested_quantity": str(requested),
                "available": str(available),
                "strategy": AllocationStrategy.MANUAL.value,
            })
            raise InsufficientStockError(
                item_id=str(item_id),
                requested=requested,
                available=available,
            )

        plan = ConsumptionPlan(
            item_id=item_id,
            requested_quantity=requested,
            strategy=AllocationStrategy.MANUAL,
            lines=(
                PlanLine(
                    lot_id=lot.id,
                    quantity=requested,
                    available_snapshot=lot.quantity_remaining,
                    lot_code=lot.lot_code,
                    storage_location=lot.storage_location,
                    unit_cost=lot.cost_per_unit,
                ),
            ),
        )
        logger.info("consumption_plan_created", extra={
            "item_id": str(item_id),
            "strategy": AllocationStrategy.MANUAL.value,
            "line_count": 1,
            "lot_ids": [str(lot.id)],
        })
        return plan
