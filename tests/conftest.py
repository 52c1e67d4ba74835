"""
Pytest fixtures for the inventory ledger test suite.

Provides:
- A fresh SQLite database file per test (tables created, engine disposed)
- A session factory and an InventoryService wired to a DeterministicClock
- Item/lot factories that go through the public service
- Structured log capture

SQLite engines are built with BEGIN IMMEDIATE transactions, so threaded
tests exercise the same compare-and-commit path PostgreSQL does with
SELECT ... FOR UPDATE.
"""

import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO

import pytest
from sqlalchemy.orm import sessionmaker

from inventory_config import InventoryConfig
from inventory_kernel.db.engine import build_engine, create_tables
from inventory_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from inventory_kernel.domain.clock import DeterministicClock
from inventory_kernel.domain.dtos import LotFields, MovementMetadata
from inventory_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from inventory_services import InventoryService

TEST_ACTOR = "test-actor"

# Clock "today" for every service test unless a test moves it
TEST_NOW = datetime(2024, 1, 10, 12, 0, 0, tzinfo=timezone.utc)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture inventory_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, service):
            service.commit_receipt(...)
            logs = captured_logs()
            assert any(r["message"] == "ledger_receipt_applied" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("inventory_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _immutability_listeners():
    register_immutability_listeners()
    yield
    unregister_immutability_listeners()


@pytest.fixture
def engine(tmp_path):
    """A migrated SQLite database private to one test."""
    engine = build_engine(f"sqlite:///{tmp_path / 'inventory.db'}")
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory):
    """
    A bare session for kernel-level tests.

    The transaction is rolled back at teardown; tests that need committed
    state commit explicitly.
    """
    session = session_factory()
    yield session
    session.rollback()
    session.close()


# =============================================================================
# Service fixtures
# =============================================================================


@pytest.fixture
def clock():
    return DeterministicClock(TEST_NOW)


@pytest.fixture
def config():
    return InventoryConfig.with_defaults()


@pytest.fixture
def service(session_factory, clock, config):
    return InventoryService(session_factory, clock=clock, config=config)


@pytest.fixture
def metadata():
    return MovementMetadata(performed_by=TEST_ACTOR)


@pytest.fixture
def item(service):
    """A kg-tracked item with no stock."""
    return service.register_item(
        name="Flour",
        unit_of_measure="kg",
        sku="FLR-001",
        storage_location="Main Store",
        created_by=TEST_ACTOR,
    )


@pytest.fixture
def receive_lot(service, metadata):
    """
    Factory: receive a lot through the service and return its snapshot.

    Usage::

        lot_a = receive_lot(item.id, 100, "A", date(2024, 1, 1))
    """

    def _receive(
        item_id,
        quantity,
        lot_code,
        received_date: date | None = None,
        expiry_date: date | None = None,
        storage_location: str | None = None,
        cost_per_unit: Decimal | None = None,
    ):
        _, lot = service.commit_receipt(
            item_id,
            Decimal(str(quantity)),
            lot_fields=LotFields(
                lot_code=lot_code,
                received_date=received_date,
                expiry_date=expiry_date,
                storage_location=storage_location,
                cost_per_unit=cost_per_unit,
            ),
            metadata=metadata,
        )
        return lot

    return _receive
