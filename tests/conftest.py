"""
Pytest fixtures for the payment application test suite.

Provides:
- Session-wide structured logging configuration
- ``captured_logs`` for asserting on structured log records
- Common line item / project builders
"""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO

import pytest

from payapp_config import get_active_config
from payapp_kernel.domain.inputs import BudgetLineItem, ProjectInfo
from payapp_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)


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
    Capture payapp logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            build_continuation(items, retainage)
            logs = captured_logs()
            assert any(r["message"] == "PAYAPP_ENGINE_TRACE" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("payapp")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


@pytest.fixture(scope="session")
def default_config():
    return get_active_config()


@pytest.fixture
def make_item():
    """Build a BudgetLineItem from plain numbers."""

    def _make(
        description: str = "Item",
        scheduled: str | int = 0,
        previous: str | int = 0,
        current: str | int = 0,
        stored: str | int = 0,
    ) -> BudgetLineItem:
        return BudgetLineItem(
            description=description,
            scheduled_value=Decimal(str(scheduled)),
            previous_completed=Decimal(str(previous)),
            current_completed=Decimal(str(current)),
            stored_materials=Decimal(str(stored)),
        )

    return _make


@pytest.fixture
def make_project():
    """Build a ProjectInfo with sensible defaults; keyword overrides apply."""

    def _make(**overrides) -> ProjectInfo:
        fields = dict(
            owner_name="City of Springfield",
            project_name="Main Street Library",
            application_number="3",
            contractor_name="Acme Builders",
            original_contract_sum=Decimal("100000"),
            change_orders_sum=Decimal("0"),
            previous_payments=Decimal("0"),
            retainage_completed_percent=Decimal("10"),
            retainage_stored_percent=Decimal("10"),
            period_to=date(2024, 5, 31),
            contract_date=date(2024, 1, 15),
        )
        fields.update(overrides)
        return ProjectInfo(**fields)

    return _make
