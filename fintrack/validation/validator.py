"""
Two-Stage Validation Pipeline

DESIGN DECISION: Operation input is validated in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Type checking
- Required field presence
- Amount range and precision, description length
- This catches malformed form input

STAGE 2 - SEMANTIC VALIDATION:
- The selected category exists
- The category type matches the operation type
- Future date detection
- Absurd amount detection

Stage 2 only runs once stage 1 produced a draft; it needs the user's
current category snapshot, which the caller passes in.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them for the user to correct.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional, Union

from pydantic import ValidationError

from fintrack.config import get_settings
from fintrack.models.operation import (
    Category,
    OperationDraft,
    ValidationIssue,
    ValidationResult,
)


class OperationValidator:
    """
    Validates operation form input through a two-stage pipeline.

    Stage 1: Schema validation (pydantic)
    Stage 2: Semantic validation against the category snapshot
    """

    def __init__(self):
        self._settings = get_settings().app

    def _validate_schema(
        self,
        raw: Union[dict, OperationDraft],
    ) -> tuple[Optional[OperationDraft], list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (draft or None, list_of_issues)
        """
        if isinstance(raw, OperationDraft):
            return raw, []

        try:
            return OperationDraft.model_validate(raw), []
        except ValidationError as e:
            issues = []
            for error in e.errors():
                field = ".".join(str(part) for part in error["loc"]) or "operation"
                issues.append(ValidationIssue(
                    field=field,
                    issue_type=error["type"],
                    message=f"{field}: {error['msg']}",
                    severity="error",
                ))
            return None, issues

    def _validate_semantic(
        self,
        draft: OperationDraft,
        categories: Iterable[Category],
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Semantic validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if draft.category_id:
            category = next(
                (cat for cat in categories if cat.id == draft.category_id),
                None,
            )
            if category is None:
                issues.append(ValidationIssue(
                    field="category_id",
                    issue_type="missing_category",
                    message="The selected category no longer exists",
                    severity="error",
                    suggested_fix="Pick another category or leave it empty",
                ))
            elif category.type != draft.type:
                issues.append(ValidationIssue(
                    field="category_id",
                    issue_type="type_mismatch",
                    message=(
                        f"Category '{category.name}' is for {category.type.value} "
                        f"operations, not {draft.type.value}"
                    ),
                    severity="error",
                    suggested_fix="Pick a category matching the operation type",
                ))

        # Future date check (with tolerance)
        max_future_date = date.today() + timedelta(
            days=self._settings.future_date_tolerance_days
        )
        if draft.operation_date > max_future_date:
            issues.append(ValidationIssue(
                field="operation_date",
                issue_type="future_date",
                message=f"Operation date ({draft.operation_date}) is in the future",
                severity="warning",
                suggested_fix="Please verify the date is correct",
            ))

        # Absurd amount check
        max_amount = Decimal(str(self._settings.max_operation_amount))
        if draft.amount > max_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"Amount ({draft.amount:,.2f}) seems unusually high",
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)

        return is_valid, issues

    def validate(
        self,
        raw: Union[dict, OperationDraft],
        categories: Iterable[Category] = (),
    ) -> ValidationResult:
        """
        Run full two-stage validation pipeline.

        Args:
            raw: Form values or an already parsed draft
            categories: The user's current categories

        Returns:
            ValidationResult with all issues found
        """
        draft, all_issues = self._validate_schema(raw)
        schema_valid = draft is not None

        # Only run stage 2 if stage 1 passes
        semantic_valid = False
        if schema_valid:
            semantic_valid, semantic_issues = self._validate_semantic(draft, list(categories))
            all_issues.extend(semantic_issues)

        warnings = [issue.message for issue in all_issues if issue.severity == "warning"]

        return ValidationResult(
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=schema_valid and semantic_valid,
            issues=all_issues,
            warnings=warnings,
            draft=draft,
        )

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.

        This is what we show under the operation form.
        """
        if result.is_valid and not result.warnings:
            return "✅ All checks passed."

        lines = []

        if result.has_errors:
            lines.append("❌ Please fix the following:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
