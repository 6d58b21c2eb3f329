"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Firestore is the production backend; the in-memory store backs tests and
offline runs.
"""

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
from fintrack.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryRecordStore,
)
from fintrack.services.storage.firestore import (
    FirestoreAuditStorage,
    FirestoreClient,
    FirestoreRecordStore,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "RecordCollection",
    "RecordStoreInterface",
    "SnapshotListener",
    "Subscription",
    # Exceptions
    "ConnectionError",
    "NotFoundError",
    "PermissionDeniedError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryRecordStore",
    # Firestore implementation
    "FirestoreAuditStorage",
    "FirestoreClient",
    "FirestoreRecordStore",
]
