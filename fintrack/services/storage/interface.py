"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Use Firestore in production
2. Use in-memory storage for testing and offline runs
3. Keep flows and UI decoupled from the backend SDK

Two kinds of primitives are exposed:
- subscribe(): push-based live snapshots. The listener receives the full
  ordered record set on subscribe and again after every change, until
  the returned Subscription is cancelled.
- create/update/delete: keyed writes issued by the UI layer.

Snapshots are ordered the same way by every implementation:
operations newest first (timestamp descending), categories by name.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, Optional

from fintrack.models.audit import AuditEvent
from fintrack.models.operation import (
    Category,
    CategoryDraft,
    Operation,
    OperationDraft,
)


class RecordCollection(str, Enum):
    """Per-user collections: users/{userId}/{collection}/{recordId}."""
    OPERATIONS = "operations"
    CATEGORIES = "categories"


# Receives a full snapshot: list[Operation] or list[Category]
SnapshotListener = Callable[[list], None]


class Subscription(ABC):
    """Handle returned by subscribe(); cancel to stop receiving snapshots."""

    @abstractmethod
    def unsubscribe(self) -> None:
        """Stop delivering snapshots. Calling it twice is harmless."""
        pass


class RecordStoreInterface(ABC):
    """
    Abstract interface for per-user operation and category storage.

    Any storage implementation (Firestore, in-memory, etc.)
    must implement these methods.
    """

    @abstractmethod
    def subscribe(
        self,
        user_id: str,
        collection: RecordCollection,
        listener: SnapshotListener,
    ) -> Subscription:
        """
        Register a live snapshot listener.

        Args:
            user_id: Owner namespace
            collection: Which collection to watch
            listener: Called with the full ordered snapshot

        Returns:
            Subscription handle
        """
        pass

    @abstractmethod
    async def list_operations(self, user_id: str) -> list[Operation]:
        """One-shot snapshot of the user's operations, newest first."""
        pass

    @abstractmethod
    async def list_categories(self, user_id: str) -> list[Category]:
        """One-shot snapshot of the user's categories, by name."""
        pass

    @abstractmethod
    async def create_operation(self, user_id: str, draft: OperationDraft) -> Operation:
        """
        Create an operation from a validated draft.

        Returns:
            The stored Operation with its backend-assigned ID

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def update_operation(
        self,
        user_id: str,
        operation_id: str,
        draft: OperationDraft,
    ) -> Operation:
        """
        Replace the editable fields of an operation. `created_at` is kept.

        Raises:
            NotFoundError: If the operation doesn't exist
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete_operation(self, user_id: str, operation_id: str) -> bool:
        """
        Delete an operation by ID.

        Returns:
            True if a record was deleted, False if it didn't exist
        """
        pass

    @abstractmethod
    async def create_category(self, user_id: str, draft: CategoryDraft) -> Category:
        """Create a category and return it with its backend-assigned ID."""
        pass

    @abstractmethod
    async def update_category(
        self,
        user_id: str,
        category_id: str,
        draft: CategoryDraft,
    ) -> Category:
        """
        Rename or retype a category.

        Raises:
            NotFoundError: If the category doesn't exist
        """
        pass

    @abstractmethod
    async def delete_category(self, user_id: str, category_id: str) -> bool:
        """
        Delete a category by ID.

        Operations referencing it are left untouched and display as
        uncategorized afterwards.
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        user_id: Optional[str] = None,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Args:
            user_id: Restrict to one user's events
            limit: Maximum number of events to return

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class PermissionDeniedError(StorageError):
    """The backend refused access to the user's namespace."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
