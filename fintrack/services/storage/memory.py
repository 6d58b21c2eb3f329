"""
In-Memory Storage Implementation

Used by the test suite and when the app runs without Firebase
configuration. Behaves like the Firestore store from the caller's point
of view: same ordering, same listener semantics, same errors. Listeners
are called synchronously on the writing thread, after the write.

Nothing is persisted; a restart starts empty.
"""

from collections import deque
from datetime import datetime
from typing import Optional
from uuid import uuid4

import structlog

from fintrack.models.audit import AuditEvent
from fintrack.models.operation import (
    Category,
    CategoryDraft,
    Operation,
    OperationDraft,
)
from fintrack.services.storage.interface import (
    AuditStorageInterface,
    NotFoundError,
    RecordCollection,
    RecordStoreInterface,
    SnapshotListener,
    Subscription,
)


logger = structlog.get_logger(__name__)

MAX_AUDIT_EVENTS = 1000


class InMemorySubscription(Subscription):

    def __init__(self, store: "InMemoryRecordStore", key: tuple, listener: SnapshotListener):
        self._store = store
        self._key = key
        self._listener = listener
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if self._active:
            self._store._remove_listener(self._key, self._listener)
            self._active = False


class InMemoryRecordStore(RecordStoreInterface):
    """Dict-backed record store, one namespace per user."""

    def __init__(self):
        self._operations: dict[str, dict[str, Operation]] = {}
        self._categories: dict[str, dict[str, Category]] = {}
        self._listeners: dict[tuple, list[SnapshotListener]] = {}

    # -------------------------------------------------------------------------
    # Snapshots
    # -------------------------------------------------------------------------

    def _operations_snapshot(self, user_id: str) -> list[Operation]:
        records = list(self._operations.get(user_id, {}).values())
        return sorted(records, key=lambda op: op.timestamp, reverse=True)

    def _categories_snapshot(self, user_id: str) -> list[Category]:
        records = list(self._categories.get(user_id, {}).values())
        return sorted(records, key=lambda cat: cat.name)

    def _snapshot(self, user_id: str, collection: RecordCollection) -> list:
        if collection == RecordCollection.OPERATIONS:
            return self._operations_snapshot(user_id)
        return self._categories_snapshot(user_id)

    def _notify(self, user_id: str, collection: RecordCollection) -> None:
        key = (user_id, collection)
        listeners = list(self._listeners.get(key, []))
        if not listeners:
            return
        snapshot = self._snapshot(user_id, collection)
        for listener in listeners:
            listener(list(snapshot))

    def _remove_listener(self, key: tuple, listener: SnapshotListener) -> None:
        listeners = self._listeners.get(key, [])
        if listener in listeners:
            listeners.remove(listener)

    def subscribe(
        self,
        user_id: str,
        collection: RecordCollection,
        listener: SnapshotListener,
    ) -> Subscription:
        key = (user_id, RecordCollection(collection))
        self._listeners.setdefault(key, []).append(listener)
        logger.debug("snapshot_subscribed", user_id=user_id, collection=key[1].value)

        listener(self._snapshot(user_id, key[1]))
        return InMemorySubscription(self, key, listener)

    async def list_operations(self, user_id: str) -> list[Operation]:
        return self._operations_snapshot(user_id)

    async def list_categories(self, user_id: str) -> list[Category]:
        return self._categories_snapshot(user_id)

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def create_operation(self, user_id: str, draft: OperationDraft) -> Operation:
        operation = Operation(
            id=uuid4().hex,
            amount=draft.amount,
            type=draft.type,
            category_id=draft.category_id,
            description=draft.description,
            timestamp=draft.timestamp,
            created_at=datetime.now(),
        )
        self._operations.setdefault(user_id, {})[operation.id] = operation
        self._notify(user_id, RecordCollection.OPERATIONS)
        return operation

    async def update_operation(
        self,
        user_id: str,
        operation_id: str,
        draft: OperationDraft,
    ) -> Operation:
        existing = self._operations.get(user_id, {}).get(operation_id)
        if existing is None:
            raise NotFoundError(f"Operation not found: {operation_id}")

        operation = existing.model_copy(update={
            "amount": draft.amount,
            "type": draft.type,
            "category_id": draft.category_id,
            "description": draft.description,
            "timestamp": draft.timestamp,
        })
        self._operations[user_id][operation_id] = operation
        self._notify(user_id, RecordCollection.OPERATIONS)
        return operation

    async def delete_operation(self, user_id: str, operation_id: str) -> bool:
        removed = self._operations.get(user_id, {}).pop(operation_id, None)
        if removed is None:
            return False
        self._notify(user_id, RecordCollection.OPERATIONS)
        return True

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    async def create_category(self, user_id: str, draft: CategoryDraft) -> Category:
        category = Category(
            id=uuid4().hex,
            name=draft.name,
            type=draft.type,
            created_at=datetime.now(),
        )
        self._categories.setdefault(user_id, {})[category.id] = category
        self._notify(user_id, RecordCollection.CATEGORIES)
        return category

    async def update_category(
        self,
        user_id: str,
        category_id: str,
        draft: CategoryDraft,
    ) -> Category:
        existing = self._categories.get(user_id, {}).get(category_id)
        if existing is None:
            raise NotFoundError(f"Category not found: {category_id}")

        category = existing.model_copy(update={"name": draft.name, "type": draft.type})
        self._categories[user_id][category_id] = category
        self._notify(user_id, RecordCollection.CATEGORIES)
        return category

    async def delete_category(self, user_id: str, category_id: str) -> bool:
        removed = self._categories.get(user_id, {}).pop(category_id, None)
        if removed is None:
            return False
        self._notify(user_id, RecordCollection.CATEGORIES)
        return True


class InMemoryAuditStorage(AuditStorageInterface):
    """
    Append-only audit trail bounded to the most recent `max_events`.

    Older events are dropped first.
    """

    def __init__(self, max_events: int = MAX_AUDIT_EVENTS):
        self._events: deque[AuditEvent] = deque(maxlen=max_events)

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_recent_events(
        self,
        user_id: Optional[str] = None,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = [
            event for event in self._events
            if user_id is None or event.user_id == user_id
        ]
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
