"""
Structured JSON logging for the inventory ledger.

Every record under the ``inventory_kernel`` logger is written as one JSON
line holding ``ts``, ``level``, ``logger`` and ``message``, the actor and
item InventoryService bound for the call in progress, the record's
``extra`` fields, and for a logged exception its type, message, error code
and attributes (``exc_shortfall``, ``exc_lot_id`` ...).
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

ROOT_LOGGER = "inventory_kernel"

_actor_id: ContextVar[str | None] = ContextVar("inventory_log_actor_id", default=None)
_item_id: ContextVar[str | None] = ContextVar("inventory_log_item_id", default=None)

_CONTEXT_FIELDS: dict[str, ContextVar[str | None]] = {
    "actor_id": _actor_id,
    "item_id": _item_id,
}


class LogContext:
    """
    Who is acting on which item, per thread or asyncio task.

    InventoryService binds these around each call so that every record the
    writers and selectors emit underneath carries them.
    """

    @staticmethod
    def set(*, actor_id: str | None = None, item_id: str | None = None) -> None:
        """Set the given fields; None leaves a field unchanged."""
        if actor_id is not None:
            _actor_id.set(str(actor_id))
        if item_id is not None:
            _item_id.set(str(item_id))

    @staticmethod
    def get_all() -> dict[str, str]:
        values = {name: var.get() for name, var in _CONTEXT_FIELDS.items()}
        return {name: value for name, value in values.items() if value is not None}

    @staticmethod
    def clear() -> None:
        for var in _CONTEXT_FIELDS.values():
            var.set(None)

    @staticmethod
    @contextmanager
    def bind(
        *, actor_id: str | None = None, item_id: str | None = None
    ) -> Iterator[None]:
        """Set fields for the duration of a block and restore them afterwards."""
        tokens = []
        if actor_id is not None:
            tokens.append(_actor_id.set(str(actor_id)))
        if item_id is not None:
            tokens.append(_item_id.set(str(item_id)))
        try:
            yield
        finally:
            for token in reversed(tokens):
                token.var.reset(token)


# Attributes every LogRecord has; anything else on a record came from ``extra``
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(value: Any) -> Any:
    # Quantities stay exact: Decimal is written as its string form
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    for name, value in vars(exc).items():
        if not name.startswith("_") and name != "code":
            fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for name, value in vars(record).items():
            if name not in _RECORD_ATTRS:
                payload.setdefault(name, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


def get_logger(name: str) -> logging.Logger:
    """Logger ``inventory_kernel.<name>``."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


_setup_lock = threading.Lock()
_handler: logging.Handler | None = None


def configure_logging(
    *,
    level: int = logging.INFO,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach a JSON handler (stderr by default) to ``inventory_kernel``.

    Only the first call has an effect; engine initialization calls this, so
    an application that wants its own handler configures logging first.
    """
    global _handler
    with _setup_lock:
        if _handler is not None:
            return
        _handler = handler if handler is not None else logging.StreamHandler(sys.stderr)
        _handler.setFormatter(StructuredFormatter())

        root = logging.getLogger(ROOT_LOGGER)
        root.setLevel(level)
        root.propagate = False
        root.addHandler(_handler)


def reset_logging() -> None:
    """Detach the handler so the next configure_logging() call applies."""
    global _handler
    with _setup_lock:
        _handler = None
        root = logging.getLogger(ROOT_LOGGER)
        root.handlers.clear()
        root.setLevel(logging.WARNING)
