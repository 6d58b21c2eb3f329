"""
Operation List Query Engine

DESIGN DECISION: Query execution is DETERMINISTIC.
The engine receives the full in-memory operation snapshot and an
immutable OperationQuery, and returns exactly one visible page. The
same (snapshot, query) pair always yields the same page.

Stages run in a fixed order, each narrowing the working set:
type -> search -> category -> date window -> sort -> paginate.

Sorting is stable in both directions: operations with equal keys keep
their snapshot order. With the default query (no filters, newest
first) a snapshot already ordered newest first comes back unchanged.
"""

import math
from datetime import date, datetime, time
from typing import Iterable, Optional

from fintrack.models.operation import Category, Operation
from fintrack.models.query import (
    ALL,
    OperationPage,
    OperationQuery,
    SortDirection,
    SortField,
    TypeFilter,
)


DEFAULT_UNCATEGORIZED_LABEL = "Uncategorized"


class OperationQueryEngine:
    """
    Filters, sorts and paginates a snapshot of operations.

    Category names are only used for display-level matching (search and
    category sort); category filters compare raw IDs.
    """

    def __init__(
        self,
        categories: Iterable[Category] = (),
        uncategorized_label: str = DEFAULT_UNCATEGORIZED_LABEL,
    ):
        self._names = {category.id: category.name for category in categories}
        self._uncategorized_label = uncategorized_label

    def execute(
        self,
        operations: Iterable[Operation],
        query: Optional[OperationQuery] = None,
    ) -> OperationPage:
        """Run the full pipeline and return the requested page."""
        query = query or OperationQuery()
        matched = self.filter_and_sort(operations, query)
        return self._paginate(matched, query.page, query.page_size)

    def filter_and_sort(
        self,
        operations: Iterable[Operation],
        query: OperationQuery,
    ) -> list[Operation]:
        """Apply every filter stage and the sort, without pagination."""
        working = list(operations)

        if query.type_filter != TypeFilter.ALL:
            working = [op for op in working if op.type.value == query.type_filter.value]

        if query.search_term:
            working = [op for op in working if self._matches_search(op, query.search_term)]

        if query.category_filter != ALL:
            working = [op for op in working if op.category_id == query.category_filter]

        if query.date_from is not None or query.date_to is not None:
            start, end = self._date_window(query.date_from, query.date_to)
            working = [op for op in working if start <= op.timestamp <= end]

        return sorted(
            working,
            key=self._sort_key(query.sort_field),
            reverse=query.sort_direction == SortDirection.DESC,
        )

    def available_category_ids(self, operations: Iterable[Operation]) -> list[str]:
        """
        Distinct non-empty category IDs in the unfiltered set, sorted.

        Used to populate the category filter control.
        """
        return sorted({op.category_id for op in operations if op.category_id})

    def category_label(self, category_id: str) -> str:
        return self._names.get(category_id) or self._uncategorized_label

    def _matches_search(self, operation: Operation, search_term: str) -> bool:
        """Case-insensitive substring of the description or the resolved category name."""
        needle = search_term.lower()
        if needle in operation.description.lower():
            return True
        name = self._names.get(operation.category_id)
        return bool(name) and needle in name.lower()

    def _date_window(
        self,
        date_from: Optional[date],
        date_to: Optional[date],
    ) -> tuple[datetime, datetime]:
        """Inclusive whole-day bounds; a missing bound is open."""
        start = datetime.combine(date_from, time.min) if date_from else datetime.min
        end = datetime.combine(date_to, time.max) if date_to else datetime.max
        return start, end

    def _sort_key(self, field: SortField):
        if field == SortField.TIMESTAMP:
            return lambda op: op.timestamp
        if field == SortField.AMOUNT:
            return lambda op: op.amount
        if field == SortField.DESCRIPTION:
            return lambda op: op.description.lower()
        if field == SortField.CATEGORY_ID:
            return lambda op: self.category_label(op.category_id).lower()
        raise ValueError(f"Unknown sort field: {field}")

    def _paginate(
        self,
        matched: list[Operation],
        page: int,
        page_size: int,
    ) -> OperationPage:
        """Slice one page; the page number is clamped to [1, max(total_pages, 1)]."""
        total_pages = math.ceil(len(matched) / page_size)
        page = max(1, min(page, max(total_pages, 1)))
        start = (page - 1) * page_size

        return OperationPage(
            matched_count=len(matched),
            total_pages=total_pages,
            page=page,
            page_size=page_size,
            items=matched[start:start + page_size],
        )
