"""Kernel write services (flush-only; the caller owns the transaction)."""

from inventory_kernel.services.base import BaseService
from inventory_kernel.services.catalog_service import CatalogService
from inventory_kernel.services.ledger_writer import MovementLedgerWriter, coerce_reason

__all__ = [
    "BaseService",
    "CatalogService",
    "MovementLedgerWriter",
    "coerce_reason",
]
