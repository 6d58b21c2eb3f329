"""
Statistics Models

Outputs of the feed projector. All of them are plain values computed
from one snapshot; nothing here is persisted.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field

from fintrack.models.operation import Operation


ZERO = Decimal("0")


class Period(str, Enum):
    """Calendar-aligned aggregation windows."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    ANNUAL = "annual"


class PeriodTotals(BaseModel):
    """
    Income/expense totals over one period window.

    `balance` is always `income - expense`.
    """

    period: Period
    start: datetime
    end: datetime
    income: Decimal = ZERO
    expense: Decimal = ZERO
    balance: Decimal = ZERO
    operations: list[Operation] = Field(
        default_factory=list,
        description="Operations inside the window, in input order"
    )

    @property
    def matched_count(self) -> int:
        return len(self.operations)


class DailyBucket(BaseModel):
    """One day of the trend series."""

    day: date
    income: Decimal = ZERO
    expense: Decimal = ZERO
    balance: Decimal = ZERO


class MonthlyBucket(BaseModel):
    """One calendar month of the balance series (`month` is its first day)."""

    month: date
    income: Decimal = ZERO
    expense: Decimal = ZERO
    balance: Decimal = ZERO


class CategoryTotals(BaseModel):
    """Per-category totals; `total` is `income + expense`."""

    income: Decimal = ZERO
    expense: Decimal = ZERO
    total: Decimal = ZERO


class FeedSummary(BaseModel):
    """Everything the overview page renders, computed in one pass."""

    generated_at: datetime
    totals: PeriodTotals
    trend: list[DailyBucket] = Field(default_factory=list)
    monthly_balance: list[MonthlyBucket] = Field(default_factory=list)
    category_breakdown: dict[str, CategoryTotals] = Field(default_factory=dict)
    recent_operations: list[Operation] = Field(default_factory=list)
