"""
Audit Models for fintrack

Every user action that changes data or session state is logged for
audit purposes. This provides:
1. Traceability of every create, update and delete
2. Debugging information when the backend rejects a write
3. A history the user can inspect

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Operations
    OPERATION_CREATED = "operation_created"
    OPERATION_UPDATED = "operation_updated"
    OPERATION_DELETED = "operation_deleted"
    OPERATION_REJECTED = "operation_rejected"

    # Categories
    CATEGORY_CREATED = "category_created"
    CATEGORY_DELETED = "category_deleted"

    # Session
    USER_SIGNED_IN = "user_signed_in"
    USER_SIGNED_UP = "user_signed_up"
    USER_SIGNED_OUT = "user_signed_out"
    PASSWORD_RESET_REQUESTED = "password_reset_requested"
    AUTH_FAILED = "auth_failed"

    # System events
    STORAGE_ERROR = "storage_error"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Whose data is this about? Audit events are stored per user.
    user_id: Optional[str] = Field(
        default=None,
        description="Owner of the affected records"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'operation', 'category', 'session')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Backend ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one form submission)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_id": self.user_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_document(self) -> dict:
        """
        Convert to a flat document for backend storage.

        `details` is JSON-encoded so arbitrary payloads fit one field.
        """
        return {
            "timestamp": self.timestamp,
            "eventType": self.event_type.value,
            "severity": self.severity.value,
            "entityType": self.entity_type or "",
            "entityId": self.entity_id or "",
            "correlationId": str(self.correlation_id) if self.correlation_id else "",
            "description": self.description,
            "detailsJson": json.dumps(self.details, default=str) if self.details else "",
            "errorCode": self.error_code or "",
            "errorMessage": self.error_message or "",
            "isUserAction": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.operation_created(user_id, operation_id, ...)
        event = AuditEventBuilder.user_signed_in(user_id, email, correlation_id)
    """

    @staticmethod
    def operation_created(
        user_id: str,
        operation_id: str,
        operation_type: str,
        amount: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OPERATION_CREATED,
            user_id=user_id,
            entity_type="operation",
            entity_id=operation_id,
            correlation_id=correlation_id,
            description=f"Operation created: {operation_type} of {amount}",
            details={
                "type": operation_type,
                "amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def operation_updated(
        user_id: str,
        operation_id: str,
        changed_fields: list[str],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OPERATION_UPDATED,
            user_id=user_id,
            entity_type="operation",
            entity_id=operation_id,
            correlation_id=correlation_id,
            description=f"Operation updated ({len(changed_fields)} fields changed)",
            details={
                "changed_fields": changed_fields,
            },
            is_user_action=True,
        )

    @staticmethod
    def operation_deleted(
        user_id: str,
        operation_id: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OPERATION_DELETED,
            user_id=user_id,
            entity_type="operation",
            entity_id=operation_id,
            correlation_id=correlation_id,
            description="Operation deleted",
            is_user_action=True,
        )

    @staticmethod
    def operation_rejected(
        user_id: str,
        issues: list[dict],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OPERATION_REJECTED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="operation",
            correlation_id=correlation_id,
            description=f"Operation rejected by validation with {len(issues)} issues",
            details={
                "issues": issues,
            },
            is_user_action=True,
        )

    @staticmethod
    def category_created(
        user_id: str,
        category_id: str,
        name: str,
        category_type: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_CREATED,
            user_id=user_id,
            entity_type="category",
            entity_id=category_id,
            correlation_id=correlation_id,
            description=f"Category created: {name} ({category_type})",
            details={
                "name": name,
                "type": category_type,
            },
            is_user_action=True,
        )

    @staticmethod
    def category_deleted(
        user_id: str,
        category_id: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_DELETED,
            user_id=user_id,
            entity_type="category",
            entity_id=category_id,
            correlation_id=correlation_id,
            description="Category deleted",
            is_user_action=True,
        )

    @staticmethod
    def user_signed_in(
        user_id: str,
        email: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_SIGNED_IN,
            user_id=user_id,
            entity_type="session",
            entity_id=user_id,
            correlation_id=correlation_id,
            description=f"User signed in: {email}",
            is_user_action=True,
        )

    @staticmethod
    def user_signed_up(
        user_id: str,
        email: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_SIGNED_UP,
            user_id=user_id,
            entity_type="session",
            entity_id=user_id,
            correlation_id=correlation_id,
            description=f"Account created: {email}",
            is_user_action=True,
        )

    @staticmethod
    def user_signed_out(
        user_id: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_SIGNED_OUT,
            user_id=user_id,
            entity_type="session",
            entity_id=user_id,
            correlation_id=correlation_id,
            description="User signed out",
            is_user_action=True,
        )

    @staticmethod
    def password_reset_requested(
        email: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PASSWORD_RESET_REQUESTED,
            entity_type="session",
            correlation_id=correlation_id,
            description="Password reset email requested",
            details={
                "email": email,
            },
            is_user_action=True,
        )

    @staticmethod
    def auth_failed(
        action: str,
        error_code: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AUTH_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="session",
            correlation_id=correlation_id,
            description=f"Authentication failed during {action}",
            error_code=error_code,
            details={
                "action": action,
            },
            is_user_action=True,
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        user_id: Optional[str],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            description=f"Storage error during {operation}",
            error_message=error_message,
            details={
                "operation": operation,
            },
            correlation_id=correlation_id,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
