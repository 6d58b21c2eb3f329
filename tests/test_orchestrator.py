"""
Tests for the flows and the live feed session.

Flows run against the in-memory store with an audit logger backed by
in-memory audit storage, so every audited event can be inspected.
"""

import asyncio
from datetime import date, datetime
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from pydantic import ValidationError

from fintrack.audit import AuditLogger
from fintrack.models.audit import AuditEventType
from fintrack.models.auth import AuthSession
from fintrack.models.operation import CategoryDraft, OperationType
from fintrack.models.query import OperationQuery, SortField, SortDirection
from fintrack.models.stats import Period
from fintrack.orchestrator import (
    AuthFlow,
    CategoryFlow,
    FeedSession,
    OperationFlow,
    OperationRejectedError,
    changed_fields,
    create_app_components,
)
from fintrack.services.auth import AuthError
from fintrack.services.storage import (
    InMemoryAuditStorage,
    InMemoryRecordStore,
    StorageError,
)


USER = "user-1"


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage) -> AuditLogger:
    return AuditLogger(audit_storage)


@pytest.fixture
def operation_flow(store, audit_logger) -> OperationFlow:
    return OperationFlow(record_store=store, audit_logger=audit_logger)


@pytest.fixture
def category_flow(store, audit_logger) -> CategoryFlow:
    return CategoryFlow(record_store=store, audit_logger=audit_logger)


def event_types(audit_storage) -> list[AuditEventType]:
    return [event.event_type for event in audit_storage.events]


def form(**overrides) -> dict:
    values = {
        "type": "expense",
        "amount": "42.50",
        "description": "Groceries",
        "category_id": "",
        "operation_date": date(2024, 1, 5),
    }
    values.update(overrides)
    return values


class TestOperationFlow:
    """Validate, save and audit operations."""

    def test_create_operation(self, operation_flow, store, audit_storage):
        operation, result = asyncio.run(operation_flow.save_operation(USER, form()))

        assert result.is_valid
        assert operation.amount == Decimal("42.50")
        assert asyncio.run(store.list_operations(USER)) == [operation]
        assert event_types(audit_storage) == [AuditEventType.OPERATION_CREATED]

    def test_rejected_operation_is_not_written(self, operation_flow, store, audit_storage):
        with pytest.raises(OperationRejectedError) as excinfo:
            asyncio.run(operation_flow.save_operation(USER, form(category_id="gone")))

        assert excinfo.value.result.issues[0].issue_type == "missing_category"
        assert asyncio.run(store.list_operations(USER)) == []
        assert event_types(audit_storage) == [AuditEventType.OPERATION_REJECTED]

    def test_edit_operation(self, operation_flow, store, audit_storage):
        created, _ = asyncio.run(operation_flow.save_operation(USER, form()))
        updated, _ = asyncio.run(operation_flow.save_operation(
            USER, form(amount="40", description="Market"), editing=created
        ))

        assert updated.id == created.id
        assert updated.created_at == created.created_at
        assert len(asyncio.run(store.list_operations(USER))) == 1

        event = audit_storage.events[-1]
        assert event.event_type == AuditEventType.OPERATION_UPDATED
        assert event.details["changed_fields"] == ["amount", "description"]

    def test_category_must_match_type(self, operation_flow, category_flow):
        salary = asyncio.run(category_flow.add_category(
            USER, {"name": "Salary", "type": "income"}
        ))

        with pytest.raises(OperationRejectedError):
            asyncio.run(operation_flow.save_operation(
                USER, form(category_id=salary.id), categories=[salary]
            ))

        operation, _ = asyncio.run(operation_flow.save_operation(
            USER, form(type="income", category_id=salary.id), categories=[salary]
        ))
        assert operation.category_id == salary.id

    def test_delete_operation(self, operation_flow, audit_storage):
        created, _ = asyncio.run(operation_flow.save_operation(USER, form()))

        assert asyncio.run(operation_flow.delete_operation(USER, created.id))
        assert not asyncio.run(operation_flow.delete_operation(USER, created.id))
        assert event_types(audit_storage).count(AuditEventType.OPERATION_DELETED) == 1

    def test_storage_failure_is_audited_and_raised(self, audit_logger, audit_storage):
        failing_store = InMemoryRecordStore()
        failing_store.create_operation = MagicMock(side_effect=StorageError("backend down"))
        flow = OperationFlow(record_store=failing_store, audit_logger=audit_logger)

        with pytest.raises(StorageError):
            asyncio.run(flow.save_operation(USER, form()))

        assert event_types(audit_storage) == [AuditEventType.STORAGE_ERROR]

    def test_changed_fields(self, operation_flow):
        created, result = asyncio.run(operation_flow.save_operation(USER, form()))
        assert changed_fields(created, result.draft) == []


class TestCategoryFlow:
    """Create and delete categories."""

    def test_add_category(self, category_flow, audit_storage):
        category = asyncio.run(category_flow.add_category(
            USER, CategoryDraft(name="Food", type=OperationType.EXPENSE)
        ))
        assert category.name == "Food"
        assert event_types(audit_storage) == [AuditEventType.CATEGORY_CREATED]

    def test_add_category_rejects_empty_name(self, category_flow):
        with pytest.raises(ValidationError):
            asyncio.run(category_flow.add_category(USER, {"name": "", "type": "expense"}))

    def test_deleting_category_leaves_operations_uncategorized(
        self, store, operation_flow, category_flow
    ):
        food = asyncio.run(category_flow.add_category(USER, {"name": "Food", "type": "expense"}))
        asyncio.run(operation_flow.save_operation(
            USER, form(category_id=food.id), categories=[food]
        ))

        assert asyncio.run(category_flow.delete_category(USER, food.id))

        feed = FeedSession(store, USER).open()
        operation = feed.operations[0]
        assert operation.category_id == food.id
        assert feed.query_engine().category_label(operation.category_id) == "Uncategorized"


class TestFeedSession:
    """Live snapshots feeding the pure core."""

    def test_open_delivers_both_snapshots(self, store):
        feed = FeedSession(store, USER)
        assert not feed.ready

        feed.open()
        assert feed.ready
        assert feed.is_open

    def test_listeners_called_on_change(self, store, operation_flow):
        feed = FeedSession(store, USER).open()
        calls = []
        remove = feed.add_listener(lambda: calls.append(len(feed.operations)))

        asyncio.run(operation_flow.save_operation(USER, form()))
        remove()
        asyncio.run(operation_flow.save_operation(USER, form(description="Again")))

        assert calls == [1]
        assert len(feed.operations) == 2

    def test_close_stops_updates(self, store, operation_flow):
        feed = FeedSession(store, USER).open()
        feed.close()

        asyncio.run(operation_flow.save_operation(USER, form()))

        assert feed.operations == []
        assert not feed.is_open

    def test_projector_and_query_use_latest_snapshot(self, store, operation_flow):
        feed = FeedSession(store, USER).open()
        asyncio.run(operation_flow.save_operation(USER, form(amount="50", description="Groceries")))
        asyncio.run(operation_flow.save_operation(USER, form(
            type="income", amount="1000", description="Salary", operation_date=date(2024, 1, 1)
        )))

        totals = feed.projector(now=datetime(2024, 1, 20)).period_totals(Period.MONTHLY)
        assert totals.balance == Decimal("950")

        page = feed.query(OperationQuery(
            sort_field=SortField.AMOUNT, sort_direction=SortDirection.ASC
        ))
        assert [op.description for op in page.items] == ["Groceries", "Salary"]

    def test_categories_for_type(self, store, category_flow):
        feed = FeedSession(store, USER).open()
        asyncio.run(category_flow.add_category(USER, {"name": "Rent", "type": "expense"}))
        asyncio.run(category_flow.add_category(USER, {"name": "Salary", "type": "income"}))
        asyncio.run(category_flow.add_category(USER, {"name": "Food", "type": "expense"}))

        names = [cat.name for cat in feed.categories_for(OperationType.EXPENSE)]
        assert names == ["Food", "Rent"]

    def test_available_category_ids(self, store, operation_flow, category_flow):
        feed = FeedSession(store, USER).open()
        food = asyncio.run(category_flow.add_category(USER, {"name": "Food", "type": "expense"}))
        asyncio.run(operation_flow.save_operation(USER, form(category_id=food.id), feed.categories))
        asyncio.run(operation_flow.save_operation(USER, form()))

        assert feed.available_category_ids() == [food.id]


class TestAuthFlow:
    """Form checks, backend calls and auditing."""

    def session(self) -> AuthSession:
        return AuthSession(user_id="uid-1", email="a@b.co", id_token="t", refresh_token="r")

    def test_sign_in(self, audit_logger, audit_storage):
        service = MagicMock()
        service.sign_in.return_value = self.session()
        flow = AuthFlow(auth_service=service, audit_logger=audit_logger)

        session = asyncio.run(flow.sign_in("a@b.co", "secret1"))

        assert session.user_id == "uid-1"
        service.sign_in.assert_called_once_with("a@b.co", "secret1")
        assert event_types(audit_storage) == [AuditEventType.USER_SIGNED_IN]

    def test_invalid_form_never_reaches_backend(self, audit_logger):
        service = MagicMock()
        flow = AuthFlow(auth_service=service, audit_logger=audit_logger)

        with pytest.raises(ValidationError):
            asyncio.run(flow.sign_in("a@b.co", "short"))
        with pytest.raises(ValidationError):
            asyncio.run(flow.sign_up("a@b.co", "Secret12", "Secret21"))

        service.sign_in.assert_not_called()
        service.sign_up.assert_not_called()

    def test_backend_rejection_is_audited(self, audit_logger, audit_storage):
        service = MagicMock()
        service.sign_up.side_effect = AuthError("auth/email-already-in-use")
        flow = AuthFlow(auth_service=service, audit_logger=audit_logger)

        with pytest.raises(AuthError) as excinfo:
            asyncio.run(flow.sign_up("a@b.co", "Secret12", "Secret12"))

        assert excinfo.value.message == "This email address is already in use"
        assert audit_storage.events[0].event_type == AuditEventType.AUTH_FAILED
        assert audit_storage.events[0].error_code == "auth/email-already-in-use"

    def test_password_reset_and_sign_out(self, audit_logger, audit_storage):
        service = MagicMock()
        flow = AuthFlow(auth_service=service, audit_logger=audit_logger)

        asyncio.run(flow.send_password_reset("a@b.co"))
        asyncio.run(flow.sign_out(self.session()))

        service.send_password_reset.assert_called_once_with("a@b.co")
        assert event_types(audit_storage) == [
            AuditEventType.PASSWORD_RESET_REQUESTED,
            AuditEventType.USER_SIGNED_OUT,
        ]

    def test_unconfigured_flow(self):
        flow = AuthFlow()

        assert not flow.is_configured
        assert flow.offline_session().user_id == "local"
        with pytest.raises(AuthError):
            asyncio.run(flow.sign_in("a@b.co", "secret1"))

    def test_offline_session_disabled_with_backend(self):
        with pytest.raises(AuthError):
            AuthFlow(auth_service=MagicMock()).offline_session()


class TestCreateAppComponents:
    """Factory wiring."""

    def test_without_storage_uses_memory(self):
        operation_flow, category_flow, auth_flow, record_store = create_app_components(
            use_storage=False
        )
        assert isinstance(record_store, InMemoryRecordStore)
        assert not auth_flow.is_configured

        operation, _ = asyncio.run(operation_flow.save_operation(USER, form()))
        assert asyncio.run(record_store.list_operations(USER)) == [operation]

    def test_unconfigured_firebase_falls_back(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("FIREBASE_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("FIREBASE_WEB_API_KEY", raising=False)

        _, _, auth_flow, record_store = create_app_components(use_storage=True)

        assert isinstance(record_store, InMemoryRecordStore)
        assert not auth_flow.is_configured

    def test_storage_fallback_is_audited(self, monkeypatch, tmp_path):
        """Falling back to memory records a system error event."""
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("FIREBASE_CREDENTIALS_PATH", raising=False)
        audit_storage = InMemoryAuditStorage()
        monkeypatch.setattr(
            "fintrack.orchestrator.InMemoryAuditStorage", lambda: audit_storage
        )

        create_app_components(use_storage=True)

        assert event_types(audit_storage) == [AuditEventType.SYSTEM_ERROR]
        event = audit_storage.events[0]
        assert event.details["fallback"] == "memory"
        assert event.error_message

    def test_offline_start_is_not_an_error(self, monkeypatch):
        audit_storage = InMemoryAuditStorage()
        monkeypatch.setattr(
            "fintrack.orchestrator.InMemoryAuditStorage", lambda: audit_storage
        )

        create_app_components(use_storage=False)

        assert audit_storage.events == []
