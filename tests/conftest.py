"""
Shared fixtures.

No test talks to Firebase: stores are in-memory and HTTP calls are
patched. Settings come from defaults, so the environment is cleared of
variables that would change them.
"""

from datetime import datetime
from decimal import Decimal
from itertools import count

import pytest

from fintrack.config import get_settings
from fintrack.models.operation import Category, Operation, OperationType


@pytest.fixture(autouse=True)
def default_settings(monkeypatch):
    """Run every test against default application settings."""
    for name in (
        "PAGE_SIZE",
        "TREND_DAYS",
        "BALANCE_MONTHS",
        "WEEK_STARTS_ON",
        "UNCATEGORIZED_LABEL",
        "MAX_OPERATION_AMOUNT",
        "FUTURE_DATE_TOLERANCE_DAYS",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def make_operation():
    """Factory for stored operations with sequential IDs."""
    ids = count(1)

    def _make(
        amount,
        type=OperationType.EXPENSE,
        description="Operation",
        timestamp=datetime(2024, 1, 1),
        category_id="",
        id=None,
    ) -> Operation:
        return Operation(
            id=id or f"op-{next(ids)}",
            amount=Decimal(str(amount)),
            type=type,
            category_id=category_id,
            description=description,
            timestamp=timestamp,
        )

    return _make


@pytest.fixture
def categories() -> list[Category]:
    return [
        Category(id="cat-food", name="Food", type=OperationType.EXPENSE),
        Category(id="cat-rent", name="Rent", type=OperationType.EXPENSE),
        Category(id="cat-salary", name="Salary", type=OperationType.INCOME),
    ]


@pytest.fixture
def january_operations(make_operation) -> list[Operation]:
    """Groceries and Salary, newest first."""
    return [
        make_operation(
            50,
            type=OperationType.EXPENSE,
            description="Groceries",
            timestamp=datetime(2024, 1, 5),
            category_id="cat-food",
            id="groceries",
        ),
        make_operation(
            1000,
            type=OperationType.INCOME,
            description="Salary",
            timestamp=datetime(2024, 1, 1),
            category_id="cat-salary",
            id="salary",
        ),
    ]
