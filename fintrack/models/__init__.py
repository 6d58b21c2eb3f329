"""
Data Models Package

This package contains all Pydantic models used in fintrack.
All data flowing through the system must conform to these schemas.
"""

from fintrack.models.operation import (
    Category,
    CategoryDraft,
    Operation,
    OperationDraft,
    OperationType,
    ValidationIssue,
    ValidationResult,
)
from fintrack.models.auth import (
    AuthSession,
    ForgotPasswordForm,
    LoginForm,
    SignupForm,
)
from fintrack.models.query import (
    ALL,
    FilterSelection,
    OperationPage,
    OperationQuery,
    SortDirection,
    SortField,
    TypeFilter,
)
from fintrack.models.stats import (
    CategoryTotals,
    DailyBucket,
    FeedSummary,
    MonthlyBucket,
    Period,
    PeriodTotals,
)
from fintrack.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Record models
    "Category",
    "CategoryDraft",
    "Operation",
    "OperationDraft",
    "OperationType",
    "ValidationIssue",
    "ValidationResult",
    # Auth models
    "AuthSession",
    "ForgotPasswordForm",
    "LoginForm",
    "SignupForm",
    # Query models
    "ALL",
    "FilterSelection",
    "OperationPage",
    "OperationQuery",
    "SortDirection",
    "SortField",
    "TypeFilter",
    # Statistics models
    "CategoryTotals",
    "DailyBucket",
    "FeedSummary",
    "MonthlyBucket",
    "Period",
    "PeriodTotals",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
