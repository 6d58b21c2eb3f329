"""Services package."""

from fintrack.services.auth import (
    AuthError,
    FirebaseAuthService,
    get_error_message,
)
from fintrack.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    FirestoreAuditStorage,
    FirestoreClient,
    FirestoreRecordStore,
    InMemoryAuditStorage,
    InMemoryRecordStore,
    NotFoundError,
    PermissionDeniedError,
    RecordCollection,
    RecordStoreInterface,
    StorageError,
    Subscription,
)

__all__ = [
    # Auth services
    "AuthError",
    "FirebaseAuthService",
    "get_error_message",
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "FirestoreAuditStorage",
    "FirestoreClient",
    "FirestoreRecordStore",
    "InMemoryAuditStorage",
    "InMemoryRecordStore",
    "NotFoundError",
    "PermissionDeniedError",
    "RecordCollection",
    "RecordStoreInterface",
    "StorageError",
    "Subscription",
]
