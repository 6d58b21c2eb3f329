"""
Tests for the two-stage operation validator.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from fintrack.models.operation import OperationDraft, OperationType
from fintrack.validation import OperationValidator


@pytest.fixture
def validator() -> OperationValidator:
    return OperationValidator()


def form(**overrides) -> dict:
    values = {
        "type": "expense",
        "amount": "42.50",
        "description": "Groceries",
        "category_id": "cat-food",
        "operation_date": date.today(),
    }
    values.update(overrides)
    return values


class TestSchemaStage:
    """Stage 1: form values must parse into a draft."""

    def test_valid_form(self, validator, categories):
        result = validator.validate(form(), categories)

        assert result.is_valid
        assert result.schema_valid and result.semantic_valid
        assert result.issues == []
        assert result.draft.amount == Decimal("42.50")

    def test_invalid_amount_stops_at_schema(self, validator, categories):
        result = validator.validate(form(amount="0"), categories)

        assert not result.schema_valid
        assert not result.semantic_valid
        assert not result.is_valid
        assert result.draft is None
        assert [issue.field for issue in result.issues] == ["amount"]

    def test_every_schema_error_is_reported(self, validator):
        result = validator.validate(form(amount="-1", description=""))
        assert {issue.field for issue in result.issues} == {"amount", "description"}
        assert all(issue.severity == "error" for issue in result.issues)

    def test_parsed_draft_is_accepted(self, validator, categories):
        draft = OperationDraft(amount="5", description="Bus", category_id="")
        result = validator.validate(draft, categories)
        assert result.is_valid
        assert result.draft is draft


class TestSemanticStage:
    """Stage 2: checks against the category snapshot."""

    def test_uncategorized_is_valid(self, validator, categories):
        assert validator.validate(form(category_id=""), categories).is_valid

    def test_missing_category(self, validator, categories):
        result = validator.validate(form(category_id="deleted"), categories)

        assert result.schema_valid
        assert not result.is_valid
        assert result.issues[0].issue_type == "missing_category"

    def test_category_type_mismatch(self, validator, categories):
        result = validator.validate(form(category_id="cat-salary"), categories)

        assert not result.is_valid
        assert result.issues[0].issue_type == "type_mismatch"

    def test_matching_income_category(self, validator, categories):
        result = validator.validate(
            form(type=OperationType.INCOME, category_id="cat-salary"), categories
        )
        assert result.is_valid

    def test_far_future_date_warns(self, validator, categories):
        result = validator.validate(
            form(operation_date=date.today() + timedelta(days=30)), categories
        )

        assert result.is_valid
        assert len(result.warnings) == 1
        assert result.issues[0].issue_type == "future_date"

    def test_near_future_date_within_tolerance(self, validator, categories):
        result = validator.validate(
            form(operation_date=date.today() + timedelta(days=7)), categories
        )
        assert result.warnings == []

    def test_large_amount_warns(self, validator, categories):
        result = validator.validate(form(amount="2000000"), categories)

        assert result.is_valid
        assert result.issues[0].issue_type == "suspicious_value"


class TestSummary:
    """User-facing summary text."""

    def test_all_passed(self, validator, categories):
        result = validator.validate(form(), categories)
        assert validator.get_user_friendly_summary(result).startswith("✅")

    def test_errors_and_fixes_listed(self, validator, categories):
        result = validator.validate(form(category_id="cat-salary"), categories)
        summary = validator.get_user_friendly_summary(result)

        assert "❌" in summary
        assert "Salary" in summary
        assert "💡" in summary

    def test_warnings_listed(self, validator, categories):
        result = validator.validate(form(amount="2000000"), categories)
        summary = validator.get_user_friendly_summary(result)

        assert "⚠️" in summary
        assert "❌" not in summary
