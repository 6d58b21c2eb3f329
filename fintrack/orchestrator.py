"""
Main Orchestrator for fintrack

This module ties together all the components and defines the
end-to-end flows for:
1. Operation entry (form -> validate -> create or update -> audit)
2. Category management (create -> audit, delete -> audit)
3. Authentication (form -> backend -> audit)
4. The live feed (subscribe -> snapshot -> project / query)

DESIGN DECISION: The orchestrator enforces the boundaries:
- No operation is written without passing validation
- Derived views are always recomputed from the latest full snapshot
- Every data or session change is audited

The pure core (projector, query engine) never sees the backend; the
FeedSession is the only place snapshots enter the system.
"""

import asyncio
import threading
from datetime import datetime
from typing import Callable, Iterable, Optional, Union
from uuid import UUID

import structlog

from fintrack.audit import AuditLogger, configure_logging, create_correlation_id
from fintrack.config import get_settings
from fintrack.models.auth import AuthSession, ForgotPasswordForm, LoginForm, SignupForm
from fintrack.models.operation import (
    Category,
    CategoryDraft,
    Operation,
    OperationDraft,
    OperationType,
    ValidationResult,
)
from fintrack.models.query import OperationPage, OperationQuery
from fintrack.projections import OperationFeedProjector
from fintrack.queries import OperationQueryEngine
from fintrack.services.auth import AuthError, FirebaseAuthService
from fintrack.services.storage import (
    FirestoreAuditStorage,
    FirestoreClient,
    FirestoreRecordStore,
    InMemoryAuditStorage,
    InMemoryRecordStore,
    RecordCollection,
    RecordStoreInterface,
    StorageError,
    Subscription,
)
from fintrack.validation import OperationValidator


logger = structlog.get_logger(__name__)

OFFLINE_USER_ID = "local"


class OperationRejectedError(Exception):
    """Operation input failed validation; nothing was written."""

    def __init__(self, result: ValidationResult):
        self.result = result
        super().__init__(f"Operation rejected with {result.error_count} error(s)")


class OperationFlow:
    """
    Orchestrates operation entry, edits and deletion.

    Flow:
    1. Validate → Two-stage validation against the category snapshot
    2. Save → Create, or update when editing an existing operation
    3. Audit → Record what changed

    Invalid input is NEVER written; the caller gets the validation
    result back in the raised OperationRejectedError.
    """

    def __init__(
        self,
        record_store: RecordStoreInterface,
        validator: Optional[OperationValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = record_store
        self._validator = validator or OperationValidator()
        self._audit_logger = audit_logger

    async def save_operation(
        self,
        user_id: str,
        draft: Union[dict, OperationDraft],
        categories: Iterable[Category] = (),
        editing: Optional[Operation] = None,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Operation, ValidationResult]:
        """
        Validate and persist an operation.

        Args:
            user_id: Owner namespace
            draft: Form values or a parsed draft
            categories: The user's current categories
            editing: The stored operation being edited, if any

        Returns:
            (saved_operation, validation_result)

        Raises:
            OperationRejectedError: If validation fails
            StorageError: If the write fails
        """
        correlation_id = correlation_id or create_correlation_id()

        result = self._validator.validate(draft, categories)
        if not result.is_valid:
            if self._audit_logger:
                await self._audit_logger.log_validation_failed(
                    user_id=user_id,
                    issues=[issue.model_dump() for issue in result.issues],
                    correlation_id=correlation_id,
                )
            raise OperationRejectedError(result)

        validated = result.draft
        try:
            if editing is None:
                operation = await self._store.create_operation(user_id, validated)
            else:
                operation = await self._store.update_operation(user_id, editing.id, validated)
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_storage_error(
                    operation="update_operation" if editing else "create_operation",
                    error_message=str(e),
                    user_id=user_id,
                    correlation_id=correlation_id,
                )
            raise

        if self._audit_logger:
            if editing is None:
                await self._audit_logger.log_operation_created(
                    user_id=user_id,
                    operation_id=operation.id,
                    operation_type=operation.type.value,
                    amount=str(operation.amount),
                    correlation_id=correlation_id,
                )
            else:
                await self._audit_logger.log_operation_updated(
                    user_id=user_id,
                    operation_id=operation.id,
                    changed_fields=changed_fields(editing, validated),
                    correlation_id=correlation_id,
                )

        return operation, result

    async def delete_operation(
        self,
        user_id: str,
        operation_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """Delete an operation. Returns False if it was already gone."""
        correlation_id = correlation_id or create_correlation_id()

        try:
            deleted = await self._store.delete_operation(user_id, operation_id)
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_storage_error(
                    operation="delete_operation",
                    error_message=str(e),
                    user_id=user_id,
                    correlation_id=correlation_id,
                )
            raise

        if deleted and self._audit_logger:
            await self._audit_logger.log_operation_deleted(
                user_id=user_id,
                operation_id=operation_id,
                correlation_id=correlation_id,
            )
        return deleted


def changed_fields(existing: Operation, draft: OperationDraft) -> list[str]:
    """Names of the editable fields a draft changes."""
    changes = []
    if existing.type != draft.type:
        changes.append("type")
    if existing.amount != draft.amount:
        changes.append("amount")
    if existing.description != draft.description:
        changes.append("description")
    if existing.category_id != draft.category_id:
        changes.append("category_id")
    if existing.timestamp != draft.timestamp:
        changes.append("timestamp")
    return changes


class CategoryFlow:
    """
    Orchestrates category creation and deletion.

    Deleting a category does not touch the operations referencing it;
    they display as uncategorized from the next snapshot on.
    """

    def __init__(
        self,
        record_store: RecordStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = record_store
        self._audit_logger = audit_logger

    async def add_category(
        self,
        user_id: str,
        draft: Union[dict, CategoryDraft],
        correlation_id: Optional[UUID] = None,
    ) -> Category:
        """
        Create a category.

        Raises:
            pydantic.ValidationError: If the name or type is invalid
            StorageError: If the write fails
        """
        correlation_id = correlation_id or create_correlation_id()
        if not isinstance(draft, CategoryDraft):
            draft = CategoryDraft.model_validate(draft)

        try:
            category = await self._store.create_category(user_id, draft)
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_storage_error(
                    operation="create_category",
                    error_message=str(e),
                    user_id=user_id,
                    correlation_id=correlation_id,
                )
            raise

        if self._audit_logger:
            await self._audit_logger.log_category_created(
                user_id=user_id,
                category_id=category.id,
                name=category.name,
                category_type=category.type.value,
                correlation_id=correlation_id,
            )
        return category

    async def delete_category(
        self,
        user_id: str,
        category_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        correlation_id = correlation_id or create_correlation_id()

        try:
            deleted = await self._store.delete_category(user_id, category_id)
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_storage_error(
                    operation="delete_category",
                    error_message=str(e),
                    user_id=user_id,
                    correlation_id=correlation_id,
                )
            raise

        if deleted and self._audit_logger:
            await self._audit_logger.log_category_deleted(
                user_id=user_id,
                category_id=category_id,
                correlation_id=correlation_id,
            )
        return deleted


class AuthFlow:
    """
    Orchestrates sign in, sign up, password reset and sign out.

    Form rules are checked before the backend is called, so a
    malformed form raises pydantic.ValidationError and never leaves
    the process. Backend rejections raise AuthError.

    Without an auth service (Firebase not configured) only the offline
    session is available.
    """

    def __init__(
        self,
        auth_service: Optional[FirebaseAuthService] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._auth_service = auth_service
        self._audit_logger = audit_logger

    @property
    def is_configured(self) -> bool:
        return self._auth_service is not None

    def _require_service(self) -> FirebaseAuthService:
        if self._auth_service is None:
            raise AuthError(
                "auth/not-configured",
                "Authentication is not configured. Continue offline instead.",
            )
        return self._auth_service

    async def _failed(self, action: str, error: AuthError, correlation_id: UUID) -> None:
        if self._audit_logger:
            await self._audit_logger.log_auth_failed(
                action=action,
                error_code=error.code,
                correlation_id=correlation_id,
            )

    async def sign_in(self, email: str, password: str) -> AuthSession:
        correlation_id = create_correlation_id()
        form = LoginForm(email=email, password=password)

        try:
            session = self._require_service().sign_in(form.email, form.password)
        except AuthError as e:
            await self._failed("sign_in", e, correlation_id)
            raise

        if self._audit_logger:
            await self._audit_logger.log_user_signed_in(
                user_id=session.user_id,
                email=session.email,
                correlation_id=correlation_id,
            )
        return session

    async def sign_up(self, email: str, password: str, confirm_password: str) -> AuthSession:
        correlation_id = create_correlation_id()
        form = SignupForm(email=email, password=password, confirm_password=confirm_password)

        try:
            session = self._require_service().sign_up(form.email, form.password)
        except AuthError as e:
            await self._failed("sign_up", e, correlation_id)
            raise

        if self._audit_logger:
            await self._audit_logger.log_user_signed_up(
                user_id=session.user_id,
                email=session.email,
                correlation_id=correlation_id,
            )
        return session

    async def send_password_reset(self, email: str) -> None:
        correlation_id = create_correlation_id()
        form = ForgotPasswordForm(email=email)

        try:
            self._require_service().send_password_reset(form.email)
        except AuthError as e:
            await self._failed("password_reset", e, correlation_id)
            raise

        if self._audit_logger:
            await self._audit_logger.log_password_reset_requested(
                email=form.email,
                correlation_id=correlation_id,
            )

    async def sign_out(self, session: AuthSession) -> None:
        if self._audit_logger:
            await self._audit_logger.log_user_signed_out(
                user_id=session.user_id,
                correlation_id=create_correlation_id(),
            )

    def offline_session(self) -> AuthSession:
        """Local session used when no auth backend is configured."""
        if self.is_configured:
            raise AuthError("auth/offline-disabled", "Offline mode is only available without Firebase")
        return AuthSession(user_id=OFFLINE_USER_ID, email="offline@localhost")


class FeedSession:
    """
    Live view of one user's operations and categories.

    Subscribes to both collections and keeps the latest snapshot of
    each. Snapshot callbacks may arrive on a backend thread; references
    are swapped under a lock and delivered lists are never mutated, so
    readers always see a consistent pair.

    Listeners registered with add_listener() are called after every
    snapshot, on the thread that delivered it.
    """

    def __init__(
        self,
        record_store: RecordStoreInterface,
        user_id: str,
    ):
        self._store = record_store
        self._user_id = user_id
        self._settings = get_settings().app
        self._lock = threading.Lock()
        self._operations: list[Operation] = []
        self._categories: list[Category] = []
        self._received: set[RecordCollection] = set()
        self._listeners: list[Callable[[], None]] = []
        self._subscriptions: list[Subscription] = []

    @property
    def user_id(self) -> str:
        return self._user_id

    @property
    def is_open(self) -> bool:
        return bool(self._subscriptions)

    @property
    def ready(self) -> bool:
        """True once both collections delivered their first snapshot."""
        with self._lock:
            return len(self._received) == len(RecordCollection)

    def open(self) -> "FeedSession":
        """Subscribe to both collections. Calling it twice is harmless."""
        if not self._subscriptions:
            self._subscriptions = [
                self._store.subscribe(
                    self._user_id, RecordCollection.OPERATIONS, self._on_operations
                ),
                self._store.subscribe(
                    self._user_id, RecordCollection.CATEGORIES, self._on_categories
                ),
            ]
            logger.info("feed_session_opened", user_id=self._user_id)
        return self

    def close(self) -> None:
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions = []
        logger.info("feed_session_closed", user_id=self._user_id)

    def add_listener(self, listener: Callable[[], None]) -> Callable[[], None]:
        """
        Register a change listener. Returns a function removing it.

        For push-driven hosts (a worker, a websocket server). The
        Streamlit app re-reads snapshot() on each rerun and does not
        register listeners.
        """
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _on_operations(self, snapshot: list) -> None:
        with self._lock:
            self._operations = list(snapshot)
            self._received.add(RecordCollection.OPERATIONS)
        self._notify()

    def _on_categories(self, snapshot: list) -> None:
        with self._lock:
            self._categories = list(snapshot)
            self._received.add(RecordCollection.CATEGORIES)
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()

    def snapshot(self) -> tuple[list[Operation], list[Category]]:
        """The current (operations, categories) pair."""
        with self._lock:
            return self._operations, self._categories

    @property
    def operations(self) -> list[Operation]:
        return list(self.snapshot()[0])

    @property
    def categories(self) -> list[Category]:
        return list(self.snapshot()[1])

    def categories_for(self, operation_type: OperationType) -> list[Category]:
        """Categories usable for an operation of the given type, by name."""
        return [cat for cat in self.categories if cat.type == operation_type]

    def projector(self, now: Optional[datetime] = None) -> OperationFeedProjector:
        operations, categories = self.snapshot()
        return OperationFeedProjector(
            operations,
            categories,
            now=now,
            week_starts_on=self._settings.week_starts_on,
            uncategorized_label=self._settings.uncategorized_label,
        )

    def query_engine(self) -> OperationQueryEngine:
        return OperationQueryEngine(
            self.categories,
            uncategorized_label=self._settings.uncategorized_label,
        )

    def query(self, query: Optional[OperationQuery] = None) -> OperationPage:
        """Run the operation list query over the current snapshot."""
        operations, categories = self.snapshot()
        engine = OperationQueryEngine(
            categories,
            uncategorized_label=self._settings.uncategorized_label,
        )
        return engine.execute(operations, query)

    def available_category_ids(self) -> list[str]:
        return self.query_engine().available_category_ids(self.operations)


def create_app_components(
    use_storage: bool = True,
) -> tuple[OperationFlow, CategoryFlow, AuthFlow, RecordStoreInterface]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Firebase.
                    Set to False for testing and offline runs.

    Returns:
        (operation_flow, category_flow, auth_flow, record_store)
    """
    app_settings = get_settings().app
    configure_logging(app_settings.log_level)

    record_store = None
    audit_logger = None
    auth_service = None
    startup_error = None

    if use_storage:
        try:
            client = FirestoreClient()
            client.connect()
            record_store = FirestoreRecordStore(client)
            audit_logger = AuditLogger(FirestoreAuditStorage(client))
            auth_service = FirebaseAuthService()
        except Exception as e:
            # Firebase not configured - continue offline
            logger.warning("storage_not_configured", error=str(e))
            startup_error = e
            record_store = None
            auth_service = None

    if record_store is None:
        record_store = InMemoryRecordStore()
        audit_logger = AuditLogger(InMemoryAuditStorage())

    if startup_error is not None:
        asyncio.run(audit_logger.log_error(
            error_type="storage_unavailable",
            error_message=str(startup_error),
            details={"exception": type(startup_error).__name__, "fallback": "memory"},
        ))

    operation_flow = OperationFlow(
        record_store=record_store,
        audit_logger=audit_logger,
    )
    category_flow = CategoryFlow(
        record_store=record_store,
        audit_logger=audit_logger,
    )
    auth_flow = AuthFlow(
        auth_service=auth_service,
        audit_logger=audit_logger,
    )

    return operation_flow, category_flow, auth_flow, record_store
