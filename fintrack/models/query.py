"""
Query Models for the operation list

DESIGN DECISION: Query parameters are split in two.

- OperationQuery is immutable. The query engine receives one on every
  call and never sees anything else, so results depend only on
  (snapshot, query).
- FilterSelection is the mutable "current selection" owned by the UI
  layer. It holds what the user picked and produces a fresh
  OperationQuery on demand.
"""

from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from fintrack.models.operation import Operation


ALL = "all"


class TypeFilter(str, Enum):
    """Operation type filter."""
    ALL = "all"
    INCOME = "income"
    EXPENSE = "expense"


class SortField(str, Enum):
    """Sortable columns of the operation list."""
    TIMESTAMP = "timestamp"
    AMOUNT = "amount"
    DESCRIPTION = "description"
    CATEGORY_ID = "category_id"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class OperationQuery(BaseModel):
    """
    Immutable filter/sort/page parameters for one query engine call.

    Defaults select everything, newest first, first page.
    """
    model_config = ConfigDict(frozen=True)

    type_filter: TypeFilter = TypeFilter.ALL
    search_term: str = ""
    category_filter: str = Field(
        default=ALL,
        description="'all' or a specific category ID"
    )
    date_from: Optional[date] = Field(
        default=None,
        description="Inclusive lower bound, unbounded when None"
    )
    date_to: Optional[date] = Field(
        default=None,
        description="Inclusive upper bound, unbounded when None"
    )
    sort_field: SortField = SortField.TIMESTAMP
    sort_direction: SortDirection = SortDirection.DESC
    page: int = Field(
        default=1,
        ge=1,
        description="1-indexed page number"
    )
    page_size: int = Field(
        default=10,
        ge=1,
        description="Fixed page size"
    )


class OperationPage(BaseModel):
    """One visible slice of the filtered, sorted operation list."""

    matched_count: int = Field(
        ge=0,
        description="Operations left after all filters"
    )
    total_pages: int = Field(
        ge=0,
        description="ceil(matched_count / page_size)"
    )
    page: int = Field(
        ge=1,
        description="Page actually returned (after clamping)"
    )
    page_size: int = Field(ge=1)
    items: list[Operation] = Field(default_factory=list)

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages


class FilterSelection(BaseModel):
    """
    The user's current list selection (mutable, UI-owned).

    Kept in the UI session between reruns. Call to_query() to hand
    the engine an immutable snapshot of it.
    """
    model_config = ConfigDict(validate_assignment=True)

    type_filter: TypeFilter = TypeFilter.ALL
    search_term: str = ""
    category_filter: str = ALL
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    sort_field: SortField = SortField.TIMESTAMP
    sort_direction: SortDirection = SortDirection.DESC
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=10, ge=1)

    def to_query(self) -> OperationQuery:
        return OperationQuery(**self.model_dump())

    def reset(self) -> None:
        """Restore all filters to their defaults and go back to page 1."""
        self.type_filter = TypeFilter.ALL
        self.search_term = ""
        self.category_filter = ALL
        self.date_from = None
        self.date_to = None
        self.page = 1

    def toggle_sort(self, field: SortField) -> None:
        """Same field flips the direction; a new field starts descending."""
        if self.sort_field == field:
            self.sort_direction = (
                SortDirection.ASC
                if self.sort_direction == SortDirection.DESC
                else SortDirection.DESC
            )
        else:
            self.sort_field = field
            self.sort_direction = SortDirection.DESC

    def go_to_page(self, page: int, total_pages: int) -> None:
        """Move to `page`, clamped to [1, total_pages]."""
        self.page = max(1, min(page, max(total_pages, 1)))

    def next_page(self, total_pages: int) -> None:
        self.go_to_page(self.page + 1, total_pages)

    def previous_page(self) -> None:
        self.page = max(1, self.page - 1)
