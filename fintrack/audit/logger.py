"""
Audit Logger

DESIGN DECISION: Every action that changes a user's data or session is
logged. This provides:
1. Complete traceability
2. Debugging capability when the backend rejects a write
3. User can see history of their interactions

The audit logger:
- Is async to match the storage interface
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from fintrack.models.audit import AuditEvent, AuditEventBuilder
from fintrack.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """Route structlog output through stdlib logging at `level`."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, level.upper(), logging.INFO))
    logging.getLogger().setLevel(level.upper())


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger()

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_operation_created(
        self,
        user_id: str,
        operation_id: str,
        operation_type: str,
        amount: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.operation_created(
            user_id=user_id,
            operation_id=operation_id,
            operation_type=operation_type,
            amount=amount,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_operation_updated(
        self,
        user_id: str,
        operation_id: str,
        changed_fields: list[str],
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.operation_updated(
            user_id=user_id,
            operation_id=operation_id,
            changed_fields=changed_fields,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_operation_deleted(
        self,
        user_id: str,
        operation_id: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.operation_deleted(
            user_id=user_id,
            operation_id=operation_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_validation_failed(
        self,
        user_id: str,
        issues: list[dict],
        correlation_id: UUID,
    ) -> None:
        """Log an operation rejected by validation."""
        event = AuditEventBuilder.operation_rejected(
            user_id=user_id,
            issues=issues,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_category_created(
        self,
        user_id: str,
        category_id: str,
        name: str,
        category_type: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.category_created(
            user_id=user_id,
            category_id=category_id,
            name=name,
            category_type=category_type,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_category_deleted(
        self,
        user_id: str,
        category_id: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.category_deleted(
            user_id=user_id,
            category_id=category_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_user_signed_in(
        self,
        user_id: str,
        email: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.user_signed_in(
            user_id=user_id,
            email=email,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_user_signed_up(
        self,
        user_id: str,
        email: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.user_signed_up(
            user_id=user_id,
            email=email,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_user_signed_out(
        self,
        user_id: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.user_signed_out(
            user_id=user_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_password_reset_requested(
        self,
        email: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.password_reset_requested(
            email=email,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_auth_failed(
        self,
        action: str,
        error_code: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.auth_failed(
            action=action,
            error_code=error_code,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_storage_error(
        self,
        operation: str,
        error_message: str,
        user_id: Optional[str],
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.storage_error(
            operation=operation,
            error_message=error_message,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., a form submission).
    Pass it through all subsequent operations.
    """
    return uuid4()
