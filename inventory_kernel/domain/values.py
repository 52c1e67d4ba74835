"""
Values -- Quantity coercion and validation.

Responsibility:
    Turns caller-supplied numbers into Decimal quantities and rejects the
    ones the ledger cannot record: non-numbers, NaN, infinities, and values
    on the wrong side of zero.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by the planner, the ledger writer, and the adjustment handler.

Invariants enforced:
    - Quantities are Decimal, never float.  Floats are converted through
      ``str()`` so ``0.1`` becomes ``Decimal("0.1")``.
    - No unit conversion is ever performed.

Failure modes:
    - InvalidQuantityError for anything that is not a finite number in the
      accepted range.
"""

from decimal import Decimal, InvalidOperation

from inventory_kernel.exceptions import InvalidQuantityError

ZERO = Decimal("0")


def to_decimal(value: object, field: str = "quantity") -> Decimal:
    """Coerce ``value`` to a finite Decimal or raise InvalidQuantityError."""
    if isinstance(value, bool) or value is None:
        raise InvalidQuantityError(field, value)
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float, str)):
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError) as e:
            raise InvalidQuantityError(field, value) from e
    else:
        raise InvalidQuantityError(field, value)

    if not result.is_finite():
        raise InvalidQuantityError(field, value)
    return result


def positive_quantity(value: object, field: str = "quantity") -> Decimal:
    """A finite quantity strictly greater than zero."""
    result = to_decimal(value, field)
    if result <= ZERO:
        raise InvalidQuantityError(field, value)
    return result


def non_negative_quantity(value: object, field: str = "quantity") -> Decimal:
    """A finite quantity greater than or equal to zero (par levels, reservations)."""
    result = to_decimal(value, field)
    if result < ZERO:
        raise InvalidQuantityError(field, value)
    return result


def signed_delta(value: object, field: str = "delta") -> Decimal:
    """A finite, non-zero signed adjustment delta."""
    result = to_decimal(value, field)
    if result == ZERO:
        raise InvalidQuantityError(field, value)
    return result
