"""Read-only selectors over items, lots and movements."""

from inventory_kernel.selectors.base import BaseSelector
from inventory_kernel.selectors.lot_selector import LotSelector
from inventory_kernel.selectors.movement_selector import MovementSelector, replay

__all__ = [
    "BaseSelector",
    "LotSelector",
    "MovementSelector",
    "replay",
]
