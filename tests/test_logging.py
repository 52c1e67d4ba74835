"""Tests for the structured logging system (inventory_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from inventory_kernel.exceptions import InsufficientStockError, StaleAllocationError
from inventory_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_log(stream: StringIO) -> dict:
    """Parse the first JSON log line from a stream."""
    line = stream.getvalue().strip().split("\n")[0]
    return json.loads(line)


def _parse_all_logs(stream: StringIO) -> list[dict]:
    """Parse all JSON log lines from a stream."""
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


# ---------------------------------------------------------------------------
# StructuredFormatter tests
# ---------------------------------------------------------------------------


class TestStructuredFormatter:
    """Tests for JSON log output format."""

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "inventory_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("consumed", extra={"line_count": 2, "movement_type": "consume"})

        record = _parse_log(stream)
        assert record["line_count"] == 2
        assert record["movement_type"] == "consume"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(actor_id="amy", item_id="item-9")
        get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["actor_id"] == "amy"
        assert record["item_id"] == "item-9"

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise ValueError("boom")
        except ValueError:
            get_logger("test").error("failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "traceback" in record

    def test_kernel_exception_code_and_fields_extracted(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise StaleAllocationError("item-1", "lot-7", Decimal("25"), Decimal("0"))
        except StaleAllocationError:
            get_logger("test").warning("stale", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "STALE_ALLOCATION"
        assert record["exc_type"] == "StaleAllocationError"
        assert record["exc_lot_id"] == "lot-7"
        assert record["exc_planned_quantity"] == "25"

    def test_decimal_and_uuid_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        uid = uuid4()
        get_logger("test").info("typed", extra={"lot_id": uid, "quantity": Decimal("1.50")})

        record = _parse_log(stream)
        assert record["lot_id"] == str(uid)
        assert record["quantity"] == "1.50"

    def test_shortfall_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise InsufficientStockError("item-1", Decimal("10"), Decimal("4"))
        except InsufficientStockError:
            get_logger("test").error("short", exc_info=True)

        assert _parse_log(stream)["exc_shortfall"] == "6"

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("bare_message")

        record = _parse_log(stream)
        assert "actor_id" not in record
        assert "item_id" not in record

    def test_valid_json_every_line(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        # Default level is INFO
        assert len(logs) == 2
        for record in logs:
            assert {"ts", "level", "logger", "message"} <= record.keys()


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:
    """Tests for context propagation."""

    def test_set_and_get(self):
        LogContext.set(item_id="x", actor_id="y")
        assert LogContext.get_all() == {"item_id": "x", "actor_id": "y"}

    def test_clear(self):
        LogContext.set(actor_id="x", item_id="i")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_context_manager(self):
        LogContext.set(item_id="outer")
        with LogContext.bind(item_id="inner"):
            assert LogContext.get_all()["item_id"] == "inner"
        assert LogContext.get_all()["item_id"] == "outer"

    def test_bind_restores_none(self):
        assert "actor_id" not in LogContext.get_all()
        with LogContext.bind(actor_id="temp"):
            assert LogContext.get_all()["actor_id"] == "temp"
        assert "actor_id" not in LogContext.get_all()

    def test_bind_skips_none_values(self):
        with LogContext.bind(actor_id=None, item_id="i"):
            assert LogContext.get_all() == {"item_id": "i"}

    def test_only_actor_and_item_are_fields(self):
        with pytest.raises(TypeError):
            LogContext.set(request_id="r")
        with pytest.raises(TypeError):
            with LogContext.bind(lot_id="l"):
                pass

    def test_context_field_wins_over_extra(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        with LogContext.bind(item_id="bound"):
            get_logger("test").info("dup", extra={"item_id": "extra", "lot_id": "l-1"})

        record = _parse_log(stream)
        assert record["item_id"] == "bound"
        assert record["lot_id"] == "l-1"


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    """Tests for initialization."""

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)  # second call is no-op
        assert len(logging.getLogger("inventory_kernel").handlers) == 1

    def test_get_logger_returns_child(self):
        assert get_logger("services.ledger_writer").name == "inventory_kernel.services.ledger_writer"

    def test_logger_hierarchy(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        get_logger("deep.nested.module").debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["message"] == "hierarchy_test"
        assert record["logger"] == "inventory_kernel.deep.nested.module"
