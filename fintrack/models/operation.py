"""
Core Data Models for fintrack

These models define the schemas for all records flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages for entry forms
3. Be convertible to and from backend documents
4. Degrade gracefully when a stored record references missing data

DESIGN DECISION: Stored records (Operation, Category) are lenient about
what the backend already holds; entry drafts (OperationDraft, CategoryDraft)
carry the strict form rules. A record written by an older client must still
display, a new record must still be valid.
"""

from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class OperationType(str, Enum):
    """
    Direction of money for an operation.

    A category carries the same type and is only valid for
    operations of the matching type.
    """
    INCOME = "income"
    EXPENSE = "expense"


# =============================================================================
# HELPERS
# =============================================================================

def to_local_naive(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to naive local time.

    The backend returns timezone-aware UTC values while form input is
    naive local time; all window comparisons must use one clock.
    """
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def to_decimal(value):
    """Convert floats through their shortest repr (50.1 -> Decimal('50.1'))."""
    if isinstance(value, float):
        return Decimal(str(value))
    return value


# =============================================================================
# STORED RECORDS
# =============================================================================

class Category(BaseModel):
    """
    A user-defined label scoping operations by type.

    Stored under users/{userId}/categories/{categoryId}.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Backend-assigned category ID"
    )
    name: str = Field(
        ...,
        min_length=1,
        description="Display name"
    )
    type: OperationType = Field(
        ...,
        description="Operation type this category applies to"
    )
    created_at: Optional[datetime] = Field(
        default=None,
        description="When the category was created"
    )

    @field_validator('created_at')
    @classmethod
    def normalize_created_at(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_local_naive(v)


class Operation(BaseModel):
    """
    A single recorded income or expense transaction.

    Stored under users/{userId}/operations/{operationId}.

    `category_id` is a soft reference: an empty string means
    uncategorized, and a reference to a deleted category is displayed
    as uncategorized rather than rejected.
    """

    id: str = Field(
        ...,
        min_length=1,
        description="Backend-assigned operation ID"
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Positive amount, no currency conversion"
    )
    type: OperationType = Field(
        ...,
        description="Income or expense"
    )
    category_id: str = Field(
        default="",
        description="Category reference, empty when uncategorized"
    )
    description: str = Field(
        ...,
        min_length=1,
        description="What the operation was for"
    )
    timestamp: datetime = Field(
        ...,
        description="When the operation occurred (user-assigned)"
    )
    created_at: Optional[datetime] = Field(
        default=None,
        description="When the record was created (immutable)"
    )

    @field_validator('amount', mode='before')
    @classmethod
    def coerce_amount(cls, v):
        return to_decimal(v)

    @field_validator('category_id', mode='before')
    @classmethod
    def coerce_category_id(cls, v) -> str:
        """Legacy documents may hold null instead of an empty string."""
        return v or ""

    @field_validator('timestamp', 'created_at')
    @classmethod
    def normalize_datetimes(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_local_naive(v)

    @property
    def is_income(self) -> bool:
        return self.type == OperationType.INCOME

    @property
    def signed_amount(self) -> Decimal:
        """Amount with sign applied: positive for income, negative for expense."""
        return self.amount if self.is_income else -self.amount


# =============================================================================
# ENTRY DRAFTS (form input, strict)
# =============================================================================

class OperationDraft(BaseModel):
    """
    Operation form input before it is written to the store.

    CRITICAL: This is the only path by which operations enter the system.
    Amount precision and description length are enforced here, not on the
    stored Operation model.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    type: OperationType = Field(
        default=OperationType.EXPENSE,
        description="Income or expense"
    )
    amount: Decimal = Field(
        ...,
        ge=Decimal("0.01"),
        decimal_places=2,
        description="Amount, minimum 0.01 with at most two decimals"
    )
    description: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Short description (1-100 characters)"
    )
    category_id: str = Field(
        default="",
        description="Optional category of the same type"
    )
    operation_date: date = Field(
        default_factory=date.today,
        description="Date the operation occurred"
    )

    @field_validator('amount', mode='before')
    @classmethod
    def coerce_amount(cls, v):
        return to_decimal(v)

    @field_validator('category_id', mode='before')
    @classmethod
    def coerce_category_id(cls, v) -> str:
        return v or ""

    @property
    def timestamp(self) -> datetime:
        """The operation date as a local midnight timestamp."""
        return datetime.combine(self.operation_date, time.min)

    @classmethod
    def from_operation(cls, operation: Operation) -> "OperationDraft":
        """Prefill a draft for editing an existing operation."""
        return cls(
            type=operation.type,
            amount=operation.amount.quantize(Decimal("0.01")),
            description=operation.description,
            category_id=operation.category_id,
            operation_date=operation.timestamp.date(),
        )


class CategoryDraft(BaseModel):
    """Category form input."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(
        ...,
        min_length=1,
        max_length=50,
        description="Category name"
    )
    type: OperationType = Field(
        ...,
        description="Operation type this category applies to"
    )


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing_category', 'type_mismatch', 'future_date')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of the two-stage validation.

    Stage 1: Schema validation (types, required fields, ranges)
    Stage 2: Semantic validation (category consistency, sanity checks)
    """

    validated_at: datetime = Field(
        default_factory=datetime.now
    )

    schema_valid: bool = Field(
        ...,
        description="Did schema validation pass?"
    )
    semantic_valid: bool = Field(
        ...,
        description="Did semantic validation pass?"
    )
    is_valid: bool = Field(
        ...,
        description="Overall validation result"
    )

    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )

    # Warnings don't block but should be shown
    warnings: list[str] = Field(
        default_factory=list,
        description="Non-blocking warnings"
    )

    # The parsed draft, when stage 1 passed
    draft: Optional[OperationDraft] = None

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")
