"""
Typed Exception Hierarchy for the Inventory Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the ledger (API handlers, CLI tools, background receipt jobs) must
react differently to "you asked for something malformed", "there is not
enough stock", and "somebody else got there first". Parsing message strings
for that is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        service.commit_consumption(plan, Destination(batch_id=batch_id), meta)
    except StaleAllocationError:
        plan = service.plan_consumption(item_id, quantity, strategy)  # re-plan
    except InsufficientStockError as e:
        return {"error": e.code, "available": e.available, "shortfall": e.shortfall}

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    InventoryKernelError (base)
    |
    +-- ValidationError
    |   +-- InvalidQuantityError
    |   +-- InvalidDestinationError
    |   +-- NotesRequiredError
    |   +-- DuplicateLotCodeError
    |   +-- UnitOfMeasureMismatchError
    |
    +-- StockError
    |   +-- InsufficientStockError
    |
    +-- ConcurrencyError
    |   +-- StaleAllocationError
    |
    +-- AdjustmentError
    |   +-- InvalidAdjustmentError
    |
    +-- NotFoundError
    |   +-- ItemNotFoundError
    |   +-- LotNotFoundError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                 | When Raised
--------------|----------------------|--------------------------------------------
Validation    | VALIDATION_ERROR     | Malformed input, before any side effect
              | INVALID_QUANTITY     | Quantity not finite or not > 0
              | INVALID_DESTINATION  | Not exactly one of batch/task/location
              | NOTES_REQUIRED       | Decrease adjustment or disposal w/o notes
              | DUPLICATE_LOT_CODE   | lot_code already used for this item
              | UNIT_MISMATCH        | Lot unit differs from the item's unit
--------------|----------------------|--------------------------------------------
Stock         | INSUFFICIENT_STOCK   | Eligible lots cannot cover the request
--------------|----------------------|--------------------------------------------
Concurrency   | STALE_ALLOCATION     | Plan no longer satisfiable at commit time
--------------|----------------------|--------------------------------------------
Adjustment    | INVALID_ADJUSTMENT   | Would go negative / lot of another item
--------------|----------------------|--------------------------------------------
Not found     | ITEM_NOT_FOUND       | Item id unknown or inactive
              | LOT_NOT_FOUND        | Lot id unknown or inactive
--------------|----------------------|--------------------------------------------
Immutability  | IMMUTABILITY_VIOLATION | UPDATE/DELETE of a ledger row

Category bases let middleware react per group:
  - ValidationError   -> user-facing 400, never retried
  - ConcurrencyError  -> re-plan and retry (bounded)
  - ImmutabilityError -> log security alert
===============================================================================
"""

from decimal import Decimal


class InventoryKernelError(Exception):
    """
    Base exception for all inventory kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "INVENTORY_KERNEL_ERROR"


# Validation exceptions


class ValidationError(InventoryKernelError):
    """Malformed input rejected before any side effect."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


class InvalidQuantityError(ValidationError):
    """Quantity is not a finite number greater than zero."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, field: str, value: object):
        self.value = str(value)
        super().__init__(field, f"must be a finite number greater than zero, got {value!r}")


class InvalidDestinationError(ValidationError):
    """Consumption destination is not exactly one of batch, task or location."""

    code: str = "INVALID_DESTINATION"

    def __init__(self, reason: str):
        super().__init__("destination", reason)


class NotesRequiredError(ValidationError):
    """Notes are mandatory for quantity-decreasing ledger entries."""

    code: str = "NOTES_REQUIRED"

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__("notes", f"notes are required for {operation}")


class DuplicateLotCodeError(ValidationError):
    """lot_code is already used by another lot of the same item."""

    code: str = "DUPLICATE_LOT_CODE"

    def __init__(self, item_id: str, lot_code: str):
        self.item_id = item_id
        self.lot_code = lot_code
        super().__init__("lot_code", f"lot code {lot_code!r} already exists for item {item_id}")


class UnitOfMeasureMismatchError(ValidationError):
    """A lot's unit of measure must match its item's."""

    code: str = "UNIT_MISMATCH"

    def __init__(self, item_id: str, item_unit: str, given_unit: str):
        self.item_id = item_id
        self.item_unit = item_unit
        self.given_unit = given_unit
        super().__init__(
            "unit_of_measure",
            f"item {item_id} is tracked in {item_unit!r}, got {given_unit!r}",
        )


# Stock exceptions


class StockError(InventoryKernelError):
    """Base exception for stock availability errors."""

    code: str = "STOCK_ERROR"


class InsufficientStockError(StockError):
    """
    Eligible lots cannot cover the requested quantity.

    ``available`` is how much could have been covered; ``shortfall`` is the
    remainder. No partial plan is ever produced alongside this error.
    """

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        item_id: str,
        requested: Decimal,
        available: Decimal,
        location: str | None = None,
    ):
        self.item_id = item_id
        self.requested = requested
        self.available = available
        self.shortfall = requested - available
        self.location = location
        where = f" at {location}" if location else ""
        super().__init__(
            f"Insufficient stock for item {item_id}{where}: requested {requested}, "
            f"available {available}, short by {self.shortfall}"
        )


# Concurrency exceptions


class ConcurrencyError(InventoryKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class StaleAllocationError(ConcurrencyError):
    """
    A plan line is no longer satisfiable at commit time.

    Raised when a concurrent writer depleted or deactivated a planned lot
    between planning and commit. The whole commit is rolled back; callers
    re-plan and retry.
    """

    code: str = "STALE_ALLOCATION"

    def __init__(
        self,
        item_id: str,
        lot_id: str,
        planned_quantity: Decimal,
        current_quantity: Decimal | None,
    ):
        self.item_id = item_id
        self.lot_id = lot_id
        self.planned_quantity = planned_quantity
        self.current_quantity = current_quantity
        super().__init__(
            f"Stale allocation on lot {lot_id} of item {item_id}: planned "
            f"{planned_quantity}, now {current_quantity}"
        )


# Adjustment exceptions


class AdjustmentError(InventoryKernelError):
    """Base exception for adjustment errors."""

    code: str = "ADJUSTMENT_ERROR"


class InvalidAdjustmentError(AdjustmentError):
    """Adjustment would drive a quantity negative or targets a foreign lot."""

    code: str = "INVALID_ADJUSTMENT"

    def __init__(self, item_id: str, lot_id: str | None, reason: str):
        self.item_id = item_id
        self.lot_id = lot_id
        self.reason = reason
        target = f"lot {lot_id}" if lot_id else f"item {item_id}"
        super().__init__(f"Invalid adjustment on {target}: {reason}")


# Lookup exceptions


class NotFoundError(InventoryKernelError):
    """Base exception for missing or inactive records."""

    code: str = "NOT_FOUND"


class ItemNotFoundError(NotFoundError):
    """Inventory item does not exist or is inactive."""

    code: str = "ITEM_NOT_FOUND"

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Inventory item not found: {item_id}")


class LotNotFoundError(NotFoundError):
    """Inventory lot does not exist or is inactive."""

    code: str = "LOT_NOT_FOUND"

    def __init__(self, lot_id: str, item_id: str | None = None):
        self.lot_id = lot_id
        self.item_id = item_id
        suffix = f" for item {item_id}" if item_id else ""
        super().__init__(f"Inventory lot not found: {lot_id}{suffix}")


# Immutability exceptions


class ImmutabilityError(InventoryKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Movements are append-only; lots are never deleted and their
    received quantity never changes.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
