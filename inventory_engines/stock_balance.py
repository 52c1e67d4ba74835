"""
Module: inventory_engines.stock_balance
Responsibility:
    Derive the read-only stock view callers see: on-hand, reserved and
    available quantities with a status classification, per-lot expiry
    classification, and the stock alerts built from both.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    The single place availability is computed; nothing else subtracts
    reserved from on-hand.

Invariants enforced:
    - available = max(0, on_hand - reserved).
    - Status precedence: out_of_stock > reorder > below_par > ok.
    - Lots without an expiry date are never expired or expiring.
    - Nothing is cached; every call recomputes from the snapshot given.

Failure modes:
    - InvalidQuantityError for a negative expiry horizon.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from inventory_engines.tracer import traced_engine
from inventory_kernel.domain.dtos import (
    ExpiryStatus,
    ItemSnapshot,
    LotSnapshot,
    StockStatus,
)
from inventory_kernel.exceptions import InvalidQuantityError
from inventory_kernel.logging_config import get_logger

logger = get_logger("engines.stock_balance")

ZERO = Decimal("0")


@dataclass(frozen=True)
class StockBalance:
    """Derived availability of one item."""

    item_id: UUID
    on_hand: Decimal
    reserved: Decimal
    available: Decimal
    status: StockStatus
    unit_of_measure: str | None = None


@dataclass(frozen=True)
class StockAlert:
    """
    Something a dashboard should flag.

    alert_type is one of low_stock, out_of_stock, expiring, expired.
    """

    alert_type: str
    item_id: UUID
    message: str
    lot_id: UUID | None = None
    expiry_date: date | None = None
    quantity: Decimal | None = None


def classify_expiry(
    lot: LotSnapshot,
    as_of: date,
    horizon_days: int = 30,
) -> ExpiryStatus:
    """
    Expiry classification of a lot as of a date.

    expired when expiry_date < as_of; expiring_soon when expiry_date falls
    within ``horizon_days`` of as_of (inclusive); ok otherwise.
    """
    if horizon_days < 0:
        raise InvalidQuantityError("horizon_days", horizon_days)
    if lot.expiry_date is None:
        return ExpiryStatus.OK
    if lot.expiry_date < as_of:
        return ExpiryStatus.EXPIRED
    if lot.expiry_date <= as_of + timedelta(days=horizon_days):
        return ExpiryStatus.EXPIRING_SOON
    return ExpiryStatus.OK


class StockBalanceProjector:
    """
    Read-only projection of item and lot state.

    Contract:
        Pure; takes snapshots, returns frozen results.
    Non-goals:
        - Does not read the database (callers pass fresh snapshots).
    """

    @traced_engine("stock_balance", "1.0", fingerprint_fields=("item",))
    def project(self, item: ItemSnapshot) -> StockBalance:
        on_hand = item.current_quantity
        reserved = item.reserved_quantity or ZERO
        available = max(ZERO, on_hand - reserved)

        if on_hand <= ZERO:
            status = StockStatus.OUT_OF_STOCK
        elif (
            item.reorder_point is not None
            and ZERO < available < item.reorder_point
        ):
            status = StockStatus.REORDER
        elif item.minimum_quantity is not None and available < item.minimum_quantity:
            status = StockStatus.BELOW_PAR
        else:
            status = StockStatus.OK

        return StockBalance(
            item_id=item.id,
            on_hand=on_hand,
            reserved=reserved,
            available=available,
            status=status,
            unit_of_measure=item.unit_of_measure,
        )

    def classify_expiry(
        self,
        lot: LotSnapshot,
        as_of: date,
        horizon_days: int = 30,
    ) -> ExpiryStatus:
        return classify_expiry(lot, as_of, horizon_days)

    def alerts(
        self,
        item: ItemSnapshot,
        lots: Sequence[LotSnapshot],
        as_of: date,
        horizon_days: int = 30,
    ) -> list[StockAlert]:
        """Balance alerts first, then one alert per expired/expiring lot."""
        balance = self.project(item)
        result: list[StockAlert] = []

        if balance.status is StockStatus.OUT_OF_STOCK:
            result.append(StockAlert(
                alert_type="out_of_stock",
                item_id=item.id,
                message=f"{item.name} is out of stock",
                quantity=balance.on_hand,
            ))
        elif balance.status in (StockStatus.REORDER, StockStatus.BELOW_PAR):
            result.append(StockAlert(
                alert_type="low_stock",
                item_id=item.id,
                message=(
                    f"{item.name} is low: {balance.available} {item.unit_of_measure} "
                    f"available ({balance.status.value})"
                ),
                quantity=balance.available,
            ))

        for lot in lots:
            if not lot.is_active or lot.quantity_remaining <= ZERO:
                continue
            match classify_expiry(lot, as_of, horizon_days):
                case ExpiryStatus.EXPIRED:
                    result.append(StockAlert(
                        alert_type="expired",
                        item_id=item.id,
                        lot_id=lot.id,
                        expiry_date=lot.expiry_date,
                        quantity=lot.quantity_remaining,
                        message=f"Lot {lot.lot_code} expired on {lot.expiry_date}",
                    ))
                case ExpiryStatus.EXPIRING_SOON:
                    result.append(StockAlert(
                        alert_type="expiring",
                        item_id=item.id,
                        lot_id=lot.id,
                        expiry_date=lot.expiry_date,
                        quantity=lot.quantity_remaining,
                        message=f"Lot {lot.lot_code} expires on {lot.expiry_date}",
                    ))
                case _:
                    pass

        if result:
            logger.info("stock_alerts_raised", extra={
                "item_id": str(item.id),
                "alert_types": [a.alert_type for a in result],
            })
        return result
