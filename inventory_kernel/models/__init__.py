"""ORM models for the inventory kernel."""

from inventory_kernel.models.item import InventoryItem
from inventory_kernel.models.lot import InventoryLot
from inventory_kernel.models.movement import InventoryMovement

__all__ = [
    "InventoryItem",
    "InventoryLot",
    "InventoryMovement",
]
