"""
Tests for the operation list query engine and the UI filter selection.
"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from fintrack.models.operation import OperationType
from fintrack.models.query import (
    ALL,
    FilterSelection,
    OperationQuery,
    SortDirection,
    SortField,
    TypeFilter,
)
from fintrack.queries.engine import OperationQueryEngine


@pytest.fixture
def engine(categories) -> OperationQueryEngine:
    return OperationQueryEngine(categories)


@pytest.fixture
def many_operations(make_operation):
    """23 operations, newest first, alternating type and category."""
    operations = []
    for i in range(23, 0, -1):
        operations.append(make_operation(
            i,
            type=OperationType.INCOME if i % 2 else OperationType.EXPENSE,
            description=f"Operation {i}",
            timestamp=datetime(2024, 1, i),
            category_id="cat-salary" if i % 2 else ("cat-food" if i % 3 else ""),
            id=f"op-{i:02d}",
        ))
    return operations


class TestFilters:
    """Type, search, category and date filters."""

    def test_default_query_keeps_snapshot_order(self, engine, many_operations):
        """Filtering with defaults is a projection of the input."""
        query = OperationQuery(page_size=100)
        page = engine.execute(many_operations, query)
        assert [op.id for op in page.items] == [op.id for op in many_operations]

    def test_search_scenario(self, engine, january_operations):
        """'groc' matches only Groceries, case-insensitively."""
        result = engine.filter_and_sort(january_operations, OperationQuery(search_term="groc"))
        assert [op.description for op in result] == ["Groceries"]

    def test_search_matches_category_name(self, engine, january_operations):
        result = engine.filter_and_sort(january_operations, OperationQuery(search_term="FOOD"))
        assert [op.id for op in result] == ["groceries"]

    def test_search_does_not_match_uncategorized_label(self, make_operation):
        engine = OperationQueryEngine([])
        operations = [make_operation(10, description="Coffee")]
        result = engine.filter_and_sort(operations, OperationQuery(search_term="uncat"))
        assert result == []

    def test_type_filter(self, engine, january_operations):
        result = engine.filter_and_sort(
            january_operations, OperationQuery(type_filter=TypeFilter.INCOME)
        )
        assert [op.id for op in result] == ["salary"]

    def test_category_filter_uses_raw_id(self, engine, january_operations):
        result = engine.filter_and_sort(
            january_operations, OperationQuery(category_filter="cat-food")
        )
        assert [op.id for op in result] == ["groceries"]

    def test_category_filter_unknown_id_matches_nothing(self, engine, january_operations):
        result = engine.filter_and_sort(
            january_operations, OperationQuery(category_filter="nope")
        )
        assert result == []

    def test_date_range_scenario(self, engine, january_operations):
        """From 2024-01-03 to 2024-01-31 excludes the Salary of 2024-01-01."""
        query = OperationQuery(date_from=date(2024, 1, 3), date_to=date(2024, 1, 31))
        result = engine.filter_and_sort(january_operations, query)
        assert [op.id for op in result] == ["groceries"]

    def test_date_range_is_whole_day_inclusive(self, engine, make_operation):
        operations = [
            make_operation(1, timestamp=datetime(2024, 1, 3, 0, 0), id="start"),
            make_operation(2, timestamp=datetime(2024, 1, 5, 23, 59, 59), id="end"),
            make_operation(3, timestamp=datetime(2024, 1, 6, 0, 0), id="after"),
        ]
        query = OperationQuery(date_from=date(2024, 1, 3), date_to=date(2024, 1, 5))
        assert {op.id for op in engine.filter_and_sort(operations, query)} == {"start", "end"}

    def test_open_ended_date_range(self, engine, january_operations):
        query = OperationQuery(date_to=date(2024, 1, 2))
        assert [op.id for op in engine.filter_and_sort(january_operations, query)] == ["salary"]

    def test_inverted_date_range_matches_nothing(self, engine, january_operations):
        query = OperationQuery(date_from=date(2024, 1, 31), date_to=date(2024, 1, 1))
        assert engine.filter_and_sort(january_operations, query) == []

    def test_combined_filters(self, engine, many_operations):
        query = OperationQuery(
            type_filter=TypeFilter.EXPENSE,
            category_filter="cat-food",
            date_from=date(2024, 1, 10),
        )
        result = engine.filter_and_sort(many_operations, query)
        assert [op.id for op in result] == ["op-22", "op-20", "op-16", "op-14", "op-10"]


class TestSorting:
    """Sort fields and directions."""

    def test_amount_scenario(self, engine, january_operations):
        ascending = engine.filter_and_sort(
            january_operations,
            OperationQuery(sort_field=SortField.AMOUNT, sort_direction=SortDirection.ASC),
        )
        descending = engine.filter_and_sort(
            january_operations,
            OperationQuery(sort_field=SortField.AMOUNT, sort_direction=SortDirection.DESC),
        )
        assert [op.amount for op in ascending] == [Decimal("50"), Decimal("1000")]
        assert [op.amount for op in descending] == [Decimal("1000"), Decimal("50")]

    def test_description_sort_is_case_insensitive(self, engine, make_operation):
        operations = [
            make_operation(1, description="banana"),
            make_operation(2, description="Apple"),
            make_operation(3, description="cherry"),
        ]
        result = engine.filter_and_sort(
            operations,
            OperationQuery(sort_field=SortField.DESCRIPTION, sort_direction=SortDirection.ASC),
        )
        assert [op.description for op in result] == ["Apple", "banana", "cherry"]

    def test_category_sort_uses_labels(self, engine, make_operation):
        operations = [
            make_operation(1, category_id="cat-salary", id="salary"),
            make_operation(2, category_id="", id="none"),
            make_operation(3, category_id="cat-food", id="food"),
        ]
        result = engine.filter_and_sort(
            operations,
            OperationQuery(sort_field=SortField.CATEGORY_ID, sort_direction=SortDirection.ASC),
        )
        assert [op.id for op in result] == ["food", "salary", "none"]

    def test_ties_keep_snapshot_order_both_directions(self, engine, make_operation):
        operations = [
            make_operation(10, id="first"),
            make_operation(10, id="second"),
            make_operation(5, id="third"),
        ]
        ascending = engine.filter_and_sort(
            operations,
            OperationQuery(sort_field=SortField.AMOUNT, sort_direction=SortDirection.ASC),
        )
        descending = engine.filter_and_sort(
            operations,
            OperationQuery(sort_field=SortField.AMOUNT, sort_direction=SortDirection.DESC),
        )
        assert [op.id for op in ascending] == ["third", "first", "second"]
        assert [op.id for op in descending] == ["first", "second", "third"]

    def test_pipeline_is_idempotent(self, engine, many_operations):
        query = OperationQuery(
            search_term="operation 1",
            sort_field=SortField.DESCRIPTION,
            sort_direction=SortDirection.ASC,
        )
        first = engine.filter_and_sort(many_operations, query)
        second = engine.filter_and_sort(many_operations, query)
        assert first == second
        assert engine.filter_and_sort(first, query) == first


class TestPagination:
    """Page slicing and clamping."""

    def test_pages_cover_all_matches(self, engine, many_operations):
        first = engine.execute(many_operations, OperationQuery())
        assert first.matched_count == 23
        assert first.total_pages == 3

        sizes = []
        for number in range(1, first.total_pages + 1):
            page = engine.execute(many_operations, OperationQuery(page=number))
            sizes.append(len(page.items))

        assert sum(sizes) == first.matched_count
        assert sizes == [10, 10, 3]

    def test_page_beyond_last_is_clamped(self, engine, many_operations):
        page = engine.execute(many_operations, OperationQuery(page=9))
        assert page.page == 3
        assert len(page.items) == 3
        assert page.has_previous
        assert not page.has_next

    def test_empty_result(self, engine):
        page = engine.execute([], OperationQuery(page=4))
        assert page.matched_count == 0
        assert page.total_pages == 0
        assert page.page == 1
        assert page.items == []
        assert not page.has_next

    def test_page_must_be_positive(self):
        with pytest.raises(ValueError):
            OperationQuery(page=0)


class TestCategoryHelpers:
    """Category filter options and labels."""

    def test_available_category_ids(self, engine, many_operations):
        assert engine.available_category_ids(many_operations) == ["cat-food", "cat-salary"]

    def test_category_label_fallback(self, engine):
        assert engine.category_label("cat-rent") == "Rent"
        assert engine.category_label("") == "Uncategorized"
        assert engine.category_label("gone") == "Uncategorized"


class TestFilterSelection:
    """The mutable selection owned by the UI."""

    def test_to_query_is_immutable(self):
        selection = FilterSelection(search_term="rent", page=2)
        query = selection.to_query()
        assert query.search_term == "rent"
        assert query.page == 2
        with pytest.raises(ValueError):
            query.page = 3

    def test_toggle_same_field_flips_direction(self):
        selection = FilterSelection()
        selection.toggle_sort(SortField.TIMESTAMP)
        assert selection.sort_direction == SortDirection.ASC
        selection.toggle_sort(SortField.TIMESTAMP)
        assert selection.sort_direction == SortDirection.DESC

    def test_toggle_new_field_starts_descending(self):
        selection = FilterSelection(sort_direction=SortDirection.ASC)
        selection.toggle_sort(SortField.AMOUNT)
        assert selection.sort_field == SortField.AMOUNT
        assert selection.sort_direction == SortDirection.DESC

    def test_reset_keeps_sort(self):
        selection = FilterSelection(
            type_filter=TypeFilter.INCOME,
            search_term="x",
            category_filter="cat-food",
            date_from=date(2024, 1, 1),
            date_to=date(2024, 1, 31),
            sort_field=SortField.AMOUNT,
            sort_direction=SortDirection.ASC,
            page=3,
        )
        selection.reset()

        assert selection.type_filter == TypeFilter.ALL
        assert selection.search_term == ""
        assert selection.category_filter == ALL
        assert selection.date_from is None
        assert selection.date_to is None
        assert selection.page == 1
        assert selection.sort_field == SortField.AMOUNT
        assert selection.sort_direction == SortDirection.ASC

    def test_page_navigation_is_clamped(self):
        selection = FilterSelection()
        selection.previous_page()
        assert selection.page == 1

        selection.next_page(total_pages=2)
        selection.next_page(total_pages=2)
        assert selection.page == 2

        selection.go_to_page(7, total_pages=0)
        assert selection.page == 1
