"""
Inventory services -- the caller-facing orchestration layer.

``InventoryService`` owns transaction boundaries and composes the engines
with the kernel writers.  ``AdjustmentHandler`` turns user-entered
corrections into signed ledger adjustments.
"""

from inventory_services.adjustment_handler import (
    AdjustmentHandler,
    AdjustmentPreview,
    AdjustmentRequest,
    coerce_adjustment_type,
)
from inventory_services.inventory_service import InventoryService

__all__ = [
    "AdjustmentHandler",
    "AdjustmentPreview",
    "AdjustmentRequest",
    "InventoryService",
    "coerce_adjustment_type",
]
