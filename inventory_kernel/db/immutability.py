"""
ORM-Level Ledger Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

The movement ledger is the audit trail a regulator reads when a package of
product goes missing. Movements must therefore be write-once: a wrong
movement is corrected by a compensating movement, never by editing or
deleting the original. Lots are the physical record of what was received,
so they are deactivated, never deleted, and what was received never changes.

SQLAlchemy fires mapper events before UPDATE/DELETE statements are emitted
from a flush. We register listeners that check these rules:

    session.flush()
         |
         v
    [before_update] --> _check_*_immutability() --> ImmutabilityViolationError
         |
         v
    [before_delete] --> _check_*_delete() ---------> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

Guarded quantity updates issued by the ledger writer are Core statements;
they never carry the protected columns.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity             | Rule
-------------------|------------------------------------------------------
InventoryMovement  | ALWAYS immutable (no UPDATE, no DELETE)
InventoryLot       | Never deleted; quantity_received, item_id, lot_code
                   | and sequence frozen after INSERT
InventoryItem      | Never deleted (deactivate instead)

===============================================================================
USAGE
===============================================================================

    from inventory_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # idempotent; InventoryService calls it

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event
from sqlalchemy.orm.attributes import get_history

from inventory_kernel.exceptions import ImmutabilityViolationError
from inventory_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

LOT_FROZEN_FIELDS = frozenset({"quantity_received", "item_id", "lot_code", "sequence"})


def _blocked(entity_type: str, entity_id: str, operation: str, reason: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": entity_id,
            "operation": operation,
            "reason": reason,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=entity_id,
        reason=reason,
    )


def _check_movement_immutability(mapper, connection, target):
    """Movements are append-only."""
    _blocked(
        "InventoryMovement",
        str(target.id),
        "UPDATE",
        "Inventory movements are immutable; record a compensating movement",
    )


def _check_movement_delete(mapper, connection, target):
    _blocked(
        "InventoryMovement",
        str(target.id),
        "DELETE",
        "Inventory movements cannot be deleted",
    )


def _check_lot_immutability(mapper, connection, target):
    """
    Prevent changes to a lot's identity and received quantity.

    quantity_remaining, is_active, storage_location and notes stay mutable.
    """
    for field in sorted(LOT_FROZEN_FIELDS):
        history = get_history(target, field)
        if history.deleted and history.added and history.deleted[0] != history.added[0]:
            _blocked(
                "InventoryLot",
                str(target.id),
                "UPDATE",
                f"{field} cannot be changed after the lot is created",
            )


def _check_lot_delete(mapper, connection, target):
    _blocked(
        "InventoryLot",
        str(target.id),
        "DELETE",
        "Inventory lots cannot be deleted; deactivate them instead",
    )


def _check_item_delete(mapper, connection, target):
    _blocked(
        "InventoryItem",
        str(target.id),
        "DELETE",
        "Inventory items cannot be deleted; deactivate them instead",
    )


def _listeners():
    from inventory_kernel.models.item import InventoryItem
    from inventory_kernel.models.lot import InventoryLot
    from inventory_kernel.models.movement import InventoryMovement

    return (
        (InventoryMovement, "before_update", _check_movement_immutability),
        (InventoryMovement, "before_delete", _check_movement_delete),
        (InventoryLot, "before_update", _check_lot_immutability),
        (InventoryLot, "before_delete", _check_lot_delete),
        (InventoryItem, "before_delete", _check_item_delete),
    )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Safe to call more than once; already-registered listeners are skipped.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that need to violate the rules on purpose.
    """
    for target, event_name, listener_fn in _listeners():
        _safe_remove_listener(target, event_name, listener_fn)
