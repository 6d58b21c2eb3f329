"""
Operation Feed Projector

DESIGN DECISION: Projections are PURE.
The backend pushes a full snapshot of the user's operations and
categories; this module turns one snapshot into display-ready
aggregates and nothing else. No I/O, no caching, no state carried
between calls. When a new snapshot arrives the caller simply builds
a new projector.

All windows are calendar aligned and inclusive on both ends
(start <= timestamp <= end), with `end` being the last microsecond
of the period.
"""

from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Iterable, Optional

from dateutil.relativedelta import relativedelta

from fintrack.models.operation import Category, Operation, OperationType
from fintrack.models.stats import (
    CategoryTotals,
    DailyBucket,
    FeedSummary,
    MonthlyBucket,
    Period,
    PeriodTotals,
)


ZERO = Decimal("0")
SUNDAY = 6
DEFAULT_UNCATEGORIZED_LABEL = "Uncategorized"


# =============================================================================
# WINDOW HELPERS
# =============================================================================

def start_of_day(moment: datetime) -> datetime:
    return datetime.combine(moment.date(), time.min)


def end_of_day(moment: datetime) -> datetime:
    return datetime.combine(moment.date(), time.max)


def start_of_week(moment: datetime, week_starts_on: int = SUNDAY) -> datetime:
    """`week_starts_on` uses datetime.weekday() numbering (0=Monday)."""
    offset = (moment.weekday() - week_starts_on) % 7
    return start_of_day(moment - timedelta(days=offset))


def start_of_month(moment: datetime) -> datetime:
    return datetime(moment.year, moment.month, 1)


def period_window(
    period: Period,
    now: datetime,
    week_starts_on: int = SUNDAY,
) -> tuple[datetime, datetime]:
    """Return the (start, end) bounds of the calendar period containing `now`."""
    if period == Period.DAILY:
        return start_of_day(now), end_of_day(now)
    if period == Period.WEEKLY:
        start = start_of_week(now, week_starts_on)
        return start, end_of_day(start + timedelta(days=6))
    if period == Period.MONTHLY:
        start = start_of_month(now)
        return start, start + relativedelta(months=1) - timedelta(microseconds=1)
    if period == Period.ANNUAL:
        return datetime(now.year, 1, 1), datetime.combine(date(now.year, 12, 31), time.max)
    raise ValueError(f"Unknown period: {period}")


def sum_by_type(operations: Iterable[Operation]) -> tuple[Decimal, Decimal]:
    """Return (income, expense) in one pass."""
    income = ZERO
    expense = ZERO
    for op in operations:
        if op.type == OperationType.INCOME:
            income += op.amount
        else:
            expense += op.amount
    return income, expense


# =============================================================================
# PROJECTOR
# =============================================================================

class OperationFeedProjector:
    """
    Derived views over one snapshot of operations and categories.

    Args:
        operations: The user's full current operation set (any order)
        categories: The user's full current category set
        now: Reference instant; wall clock at call time when None
        week_starts_on: First weekday of a calendar week (0=Monday, 6=Sunday)
        uncategorized_label: Label for empty or dangling category references
    """

    def __init__(
        self,
        operations: Iterable[Operation],
        categories: Iterable[Category] = (),
        now: Optional[datetime] = None,
        week_starts_on: int = SUNDAY,
        uncategorized_label: str = DEFAULT_UNCATEGORIZED_LABEL,
    ):
        self._operations = list(operations)
        self._categories = list(categories)
        self._now = now
        self._week_starts_on = week_starts_on
        self._uncategorized_label = uncategorized_label

    @property
    def operations(self) -> list[Operation]:
        return list(self._operations)

    def now(self) -> datetime:
        return self._now or datetime.now()

    def category_names(self) -> dict[str, str]:
        """Category ID -> display name."""
        return {category.id: category.name for category in self._categories}

    def category_label(self, category_id: str, names: Optional[dict[str, str]] = None) -> str:
        """Resolve a category reference, falling back to the uncategorized label."""
        names = self.category_names() if names is None else names
        return names.get(category_id) or self._uncategorized_label

    def period_window(self, period: Period) -> tuple[datetime, datetime]:
        return period_window(period, self.now(), self._week_starts_on)

    def period_totals(self, period: Period) -> PeriodTotals:
        """Income, expense and balance of the current calendar period."""
        start, end = self.period_window(period)
        matched = [op for op in self._operations if start <= op.timestamp <= end]
        income, expense = sum_by_type(matched)

        return PeriodTotals(
            period=period,
            start=start,
            end=end,
            income=income,
            expense=expense,
            balance=income - expense,
            operations=matched,
        )

    def trend(self, days: int = 30) -> list[DailyBucket]:
        """
        Daily totals for the last `days` days, oldest first, ending today.

        Days without operations are present with zero totals.
        """
        if days <= 0:
            return []

        today = self.now().date()
        first_day = today - timedelta(days=days - 1)

        totals: dict[date, list[Decimal]] = {}
        for op in self._operations:
            day = op.timestamp.date()
            if first_day <= day <= today:
                bucket = totals.setdefault(day, [ZERO, ZERO])
                bucket[0 if op.type == OperationType.INCOME else 1] += op.amount

        buckets = []
        for offset in range(days):
            day = first_day + timedelta(days=offset)
            income, expense = totals.get(day, (ZERO, ZERO))
            buckets.append(DailyBucket(
                day=day,
                income=income,
                expense=expense,
                balance=income - expense,
            ))
        return buckets

    def monthly_balance(self, months: int = 12) -> list[MonthlyBucket]:
        """
        Calendar-month totals, oldest first, ending with the current month.
        """
        if months <= 0:
            return []

        current = start_of_month(self.now())
        first_month = current - relativedelta(months=months - 1)

        totals: dict[tuple[int, int], list[Decimal]] = {}
        for op in self._operations:
            if first_month <= op.timestamp:
                key = (op.timestamp.year, op.timestamp.month)
                bucket = totals.setdefault(key, [ZERO, ZERO])
                bucket[0 if op.type == OperationType.INCOME else 1] += op.amount

        buckets = []
        for offset in range(months):
            month = first_month + relativedelta(months=offset)
            income, expense = totals.get((month.year, month.month), (ZERO, ZERO))
            buckets.append(MonthlyBucket(
                month=month.date(),
                income=income,
                expense=expense,
                balance=income - expense,
            ))
        return buckets

    def category_breakdown(self, period: Period) -> dict[str, CategoryTotals]:
        """
        Totals per category label over the operations of `period`.

        Categories that share a name share a bucket. Insertion order
        follows the first operation seen for each label.
        """
        names = self.category_names()
        breakdown: dict[str, CategoryTotals] = {}

        for op in self.period_totals(period).operations:
            label = self.category_label(op.category_id, names)
            totals = breakdown.setdefault(label, CategoryTotals())
            if op.type == OperationType.INCOME:
                totals.income += op.amount
            else:
                totals.expense += op.amount
            totals.total += op.amount

        return breakdown

    def recent_operations(self, limit: int = 5) -> list[Operation]:
        """The `limit` most recent operations by timestamp."""
        if limit <= 0:
            return []
        ordered = sorted(self._operations, key=lambda op: op.timestamp, reverse=True)
        return ordered[:limit]

    def summary(
        self,
        period: Period,
        trend_days: int = 30,
        balance_months: int = 12,
        recent_limit: int = 5,
    ) -> FeedSummary:
        """Compute everything the overview page shows against a single `now`."""
        pinned = OperationFeedProjector(
            self._operations,
            self._categories,
            now=self.now(),
            week_starts_on=self._week_starts_on,
            uncategorized_label=self._uncategorized_label,
        )
        return FeedSummary(
            generated_at=pinned.now(),
            totals=pinned.period_totals(period),
            trend=pinned.trend(trend_days),
            monthly_balance=pinned.monthly_balance(balance_months),
            category_breakdown=pinned.category_breakdown(period),
            recent_operations=pinned.recent_operations(recent_limit),
        )
