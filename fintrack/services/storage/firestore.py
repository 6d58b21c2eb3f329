"""
Firestore Storage Implementation

DESIGN DECISION: Cloud Firestore is the production backend because:
1. Live queries push full snapshots on every change
2. Per-user namespaces map directly to security rules
3. Firebase Authentication issues the user IDs we namespace by

Document layout:
    users/{userId}/operations/{operationId}
        amount, type, categoryId, description, timestamp, createdAt
    users/{userId}/categories/{categoryId}
        name, type, createdAt
    users/{userId}/{audit_collection}/{eventId}

TRADEOFFS:
- The Admin SDK is synchronous; async methods call it inline, which is
  fine for one user's interactive writes
- Snapshot callbacks arrive on an SDK thread, not the caller's
"""

import json
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

import firebase_admin
import structlog
from firebase_admin import credentials, firestore
from google.api_core import exceptions as gcp_exceptions
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from fintrack.config import get_settings
from fintrack.models.audit import AuditEvent, AuditEventType, AuditSeverity
from fintrack.models.operation import (
    Category,
    CategoryDraft,
    Operation,
    OperationDraft,
)
from fintrack.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    NotFoundError,
    PermissionDeniedError,
    RecordCollection,
    RecordStoreInterface,
    SnapshotListener,
    StorageError,
    Subscription,
)


logger = structlog.get_logger(__name__)

APP_NAME = "fintrack"

# Errors worth retrying: the request may succeed a moment later
TRANSIENT_ERRORS = (
    gcp_exceptions.ServiceUnavailable,
    gcp_exceptions.DeadlineExceeded,
    gcp_exceptions.InternalServerError,
)


# =============================================================================
# DOCUMENT MAPPING
# =============================================================================

def to_aware(value: datetime) -> datetime:
    """Firestore treats naive datetimes as UTC; ours are local time."""
    return value if value.tzinfo is not None else value.astimezone()


def operation_to_document(draft: OperationDraft, created_at: Optional[datetime] = None) -> dict:
    """Build the stored fields of an operation. `createdAt` only on creation."""
    document = {
        "amount": float(draft.amount),
        "type": draft.type.value,
        "categoryId": draft.category_id,
        "description": draft.description,
        "timestamp": to_aware(draft.timestamp),
    }
    if created_at is not None:
        document["createdAt"] = to_aware(created_at)
    return document


def operation_from_document(doc_id: str, data: dict[str, Any]) -> Operation:
    return Operation(
        id=doc_id,
        amount=data.get("amount"),
        type=data.get("type"),
        category_id=data.get("categoryId") or "",
        description=data.get("description"),
        timestamp=data.get("timestamp"),
        created_at=data.get("createdAt"),
    )


def category_to_document(draft: CategoryDraft, created_at: Optional[datetime] = None) -> dict:
    document = {
        "name": draft.name,
        "type": draft.type.value,
    }
    if created_at is not None:
        document["createdAt"] = to_aware(created_at)
    return document


def category_from_document(doc_id: str, data: dict[str, Any]) -> Category:
    return Category(
        id=doc_id,
        name=data.get("name"),
        type=data.get("type"),
        created_at=data.get("createdAt"),
    )


def event_from_document(doc_id: str, data: dict[str, Any], user_id: Optional[str]) -> AuditEvent:
    correlation_id = data.get("correlationId")
    details_json = data.get("detailsJson")
    return AuditEvent(
        event_id=UUID(doc_id),
        timestamp=data.get("timestamp"),
        event_type=AuditEventType(data.get("eventType")),
        severity=AuditSeverity(data.get("severity", "info")),
        user_id=user_id,
        entity_type=data.get("entityType") or None,
        entity_id=data.get("entityId") or None,
        correlation_id=UUID(correlation_id) if correlation_id else None,
        description=data.get("description", ""),
        details=json.loads(details_json) if details_json else {},
        error_code=data.get("errorCode") or None,
        error_message=data.get("errorMessage") or None,
        is_user_action=bool(data.get("isUserAction", False)),
    )


def wrap_backend_error(action: str, error: Exception) -> StorageError:
    """Translate SDK exceptions into the storage error hierarchy."""
    if isinstance(error, StorageError):
        return error
    if isinstance(error, gcp_exceptions.NotFound):
        return NotFoundError(f"{action}: {error}")
    if isinstance(error, gcp_exceptions.PermissionDenied):
        return PermissionDeniedError(f"{action}: {error}")
    if isinstance(error, TRANSIENT_ERRORS):
        return ConnectionError(f"{action}: {error}")
    return StorageError(f"{action}: {error}")


# =============================================================================
# CLIENT
# =============================================================================

class FirestoreClient:
    """
    Low-level Firestore client wrapper.

    Handles Admin SDK initialization and provides collection references
    scoped to one user.
    """

    def __init__(self):
        self._settings = get_settings().firebase
        self._db = None

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self):
        """
        Initialize the Admin SDK app (once) and return the Firestore client.

        Uses service account credentials for authentication.
        """
        if self._db is None:
            try:
                try:
                    app = firebase_admin.get_app(APP_NAME)
                except ValueError:
                    cred = credentials.Certificate(self._settings.credentials_path)
                    options = {}
                    if self._settings.project_id:
                        options["projectId"] = self._settings.project_id
                    app = firebase_admin.initialize_app(cred, options, name=APP_NAME)
                self._db = firestore.client(app)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Firebase credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Firestore: {e}")

            logger.info("firestore_connected", project_id=self._settings.project_id)

        return self._db

    def user_collection(self, user_id: str, name: str):
        """Reference to users/{user_id}/{name}."""
        return self.connect().collection("users").document(user_id).collection(name)

    def ordered_query(self, user_id: str, collection: RecordCollection):
        """Snapshot ordering shared by one-shot reads and live queries."""
        ref = self.user_collection(user_id, collection.value)
        if collection == RecordCollection.OPERATIONS:
            return ref.order_by("timestamp", direction=firestore.Query.DESCENDING)
        return ref.order_by("name")


class FirestoreSubscription(Subscription):

    def __init__(self, watch, user_id: str, collection: RecordCollection):
        self._watch = watch
        self._user_id = user_id
        self._collection = collection
        self._active = True

    def unsubscribe(self) -> None:
        if self._active:
            self._watch.unsubscribe()
            self._active = False
            logger.debug(
                "snapshot_unsubscribed",
                user_id=self._user_id,
                collection=self._collection.value,
            )


# =============================================================================
# RECORD STORE
# =============================================================================

class FirestoreRecordStore(RecordStoreInterface):
    """
    Firestore implementation of the record store.

    Malformed documents are skipped (and logged) when building snapshots,
    so one bad record never hides the rest of the user's data.
    """

    def __init__(self, client: Optional[FirestoreClient] = None):
        self._client = client or FirestoreClient()

    def _convert(self, collection: RecordCollection, documents) -> list:
        convert = (
            operation_from_document
            if collection == RecordCollection.OPERATIONS
            else category_from_document
        )
        records = []
        for document in documents:
            try:
                records.append(convert(document.id, document.to_dict() or {}))
            except (ValueError, TypeError) as e:
                logger.warning(
                    "malformed_document_skipped",
                    collection=collection.value,
                    document_id=document.id,
                    error=str(e),
                )
        return records

    def subscribe(
        self,
        user_id: str,
        collection: RecordCollection,
        listener: SnapshotListener,
    ) -> Subscription:
        collection = RecordCollection(collection)

        def on_snapshot(documents, changes, read_time):
            listener(self._convert(collection, documents))

        try:
            watch = self._client.ordered_query(user_id, collection).on_snapshot(on_snapshot)
        except Exception as e:
            raise wrap_backend_error(f"Failed to subscribe to {collection.value}", e)

        logger.debug("snapshot_subscribed", user_id=user_id, collection=collection.value)
        return FirestoreSubscription(watch, user_id, collection)

    async def list_operations(self, user_id: str) -> list[Operation]:
        try:
            documents = self._client.ordered_query(user_id, RecordCollection.OPERATIONS).stream()
            return self._convert(RecordCollection.OPERATIONS, documents)
        except Exception as e:
            raise wrap_backend_error("Failed to list operations", e)

    async def list_categories(self, user_id: str) -> list[Category]:
        try:
            documents = self._client.ordered_query(user_id, RecordCollection.CATEGORIES).stream()
            return self._convert(RecordCollection.CATEGORIES, documents)
        except Exception as e:
            raise wrap_backend_error("Failed to list categories", e)

    @retry(
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _set(self, ref, document: dict) -> None:
        ref.set(document)

    @retry(
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _update(self, ref, document: dict) -> None:
        ref.update(document)

    async def create_operation(self, user_id: str, draft: OperationDraft) -> Operation:
        created_at = datetime.now()
        try:
            ref = self._client.user_collection(user_id, RecordCollection.OPERATIONS.value).document()
            self._set(ref, operation_to_document(draft, created_at=created_at))
        except Exception as e:
            raise wrap_backend_error("Failed to create operation", e)

        return Operation(
            id=ref.id,
            amount=draft.amount,
            type=draft.type,
            category_id=draft.category_id,
            description=draft.description,
            timestamp=draft.timestamp,
            created_at=created_at,
        )

    async def update_operation(
        self,
        user_id: str,
        operation_id: str,
        draft: OperationDraft,
    ) -> Operation:
        try:
            ref = self._client.user_collection(
                user_id, RecordCollection.OPERATIONS.value
            ).document(operation_id)
            self._update(ref, operation_to_document(draft))
            snapshot = ref.get()
        except Exception as e:
            raise wrap_backend_error(f"Failed to update operation {operation_id}", e)

        return operation_from_document(operation_id, snapshot.to_dict() or {})

    async def delete_operation(self, user_id: str, operation_id: str) -> bool:
        try:
            ref = self._client.user_collection(
                user_id, RecordCollection.OPERATIONS.value
            ).document(operation_id)
            if not ref.get().exists:
                return False
            ref.delete()
            return True
        except Exception as e:
            raise wrap_backend_error(f"Failed to delete operation {operation_id}", e)

    async def create_category(self, user_id: str, draft: CategoryDraft) -> Category:
        created_at = datetime.now()
        try:
            ref = self._client.user_collection(user_id, RecordCollection.CATEGORIES.value).document()
            self._set(ref, category_to_document(draft, created_at=created_at))
        except Exception as e:
            raise wrap_backend_error("Failed to create category", e)

        return Category(id=ref.id, name=draft.name, type=draft.type, created_at=created_at)

    async def update_category(
        self,
        user_id: str,
        category_id: str,
        draft: CategoryDraft,
    ) -> Category:
        try:
            ref = self._client.user_collection(
                user_id, RecordCollection.CATEGORIES.value
            ).document(category_id)
            self._update(ref, category_to_document(draft))
            snapshot = ref.get()
        except Exception as e:
            raise wrap_backend_error(f"Failed to update category {category_id}", e)

        return category_from_document(category_id, snapshot.to_dict() or {})

    async def delete_category(self, user_id: str, category_id: str) -> bool:
        try:
            ref = self._client.user_collection(
                user_id, RecordCollection.CATEGORIES.value
            ).document(category_id)
            if not ref.get().exists:
                return False
            ref.delete()
            return True
        except Exception as e:
            raise wrap_backend_error(f"Failed to delete category {category_id}", e)


# =============================================================================
# AUDIT STORAGE
# =============================================================================

class FirestoreAuditStorage(AuditStorageInterface):
    """
    Firestore implementation of audit log storage.

    Events are stored per user; events without a user (e.g. a failed
    sign-in) go to a top-level collection of the same name.
    """

    def __init__(self, client: Optional[FirestoreClient] = None):
        self._client = client or FirestoreClient()
        self._collection = get_settings().firebase.audit_collection

    def _collection_ref(self, user_id: Optional[str]):
        if user_id:
            return self._client.user_collection(user_id, self._collection)
        return self._client.connect().collection(self._collection)

    @retry(
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _write(self, event: AuditEvent) -> None:
        self._collection_ref(event.user_id).document(str(event.event_id)).set(event.to_document())

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            self._write(event)
            return True
        except Exception as e:
            # Audit logging should not break the main flow
            logger.error(
                "audit_event_write_failed",
                error=str(e),
                event_id=str(event.event_id),
            )
            return False

    async def get_recent_events(
        self,
        user_id: Optional[str] = None,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events, newest first."""
        try:
            query = (
                self._collection_ref(user_id)
                .order_by("timestamp", direction=firestore.Query.DESCENDING)
                .limit(limit)
            )
            events = []
            for document in query.stream():
                try:
                    events.append(event_from_document(document.id, document.to_dict() or {}, user_id))
                except (ValueError, TypeError) as e:
                    logger.warning("malformed_audit_event_skipped", document_id=document.id, error=str(e))
            return events
        except Exception as e:
            raise wrap_backend_error("Failed to get audit events", e)
