"""
Unit tests for the session store.

Tests cover:
- Session creation with unique IDs and one active session per document
- Field updates and request accounting
- Terminal transitions, exactly once
- Timer ownership and cancellation
- Delayed removal and purge of expired sessions
- Statistics and state listeners
- Snapshot persistence and restore
"""

import asyncio
from datetime import UTC, datetime, timedelta
from unittest.mock import Mock

import pytest

from verification_poller.clients.snapshot import InMemorySnapshotStorage
from verification_poller.models.session import LastError, PollingConfig, SessionStatus
from verification_poller.models.verification import ErrorKind
from verification_poller.services.session_store import SessionStore
from verification_poller.utils.exceptions import AlreadyActiveError

DOC_1 = "3f2504e0-4f89-11d3-9a0c-0305e82c3301"
DOC_2 = "6fa459ea-ee8a-3ca4-894e-db77e160355e"


class TestSessionCreation:
    """Test SessionStore.create."""

    def test_create_session(self, store: SessionStore) -> None:
        session_id = store.create(DOC_1, "passport", PollingConfig())
        session = store.get(DOC_1)

        assert session_id.startswith("polling_")
        assert session.session_id == session_id
        assert session.status is SessionStatus.active
        assert session.document_type == "passport"
        assert session.total_requests == 0
        assert store.is_active(DOC_1)
        assert store.list_active() == [DOC_1]

    def test_create_rejects_second_active_session(self, store: SessionStore) -> None:
        store.create(DOC_1, "passport", PollingConfig())

        with pytest.raises(AlreadyActiveError) as exc_info:
            store.create(DOC_1, "passport", PollingConfig())

        assert exc_info.value.code == "ALREADY_ACTIVE"
        assert store.session_count() == 1

    def test_create_replaces_terminal_session(self, store: SessionStore) -> None:
        first = store.create(DOC_1, "passport", PollingConfig())
        store.complete(DOC_1, SessionStatus.failed)

        second = store.create(DOC_1, "passport", PollingConfig())

        assert second != first
        assert store.get(DOC_1).is_active
        assert store.session_count() == 1


class TestSessionUpdates:
    """Test field updates and request recording."""

    def test_update_merges_fields(self, store: SessionStore) -> None:
        store.create(DOC_1, "passport", PollingConfig())

        store.update(DOC_1, current_retry_count=2)

        assert store.get(DOC_1).current_retry_count == 2

    @pytest.mark.parametrize("field", ["total_requests", "status", "session_id", "unknown"])
    def test_update_rejects_protected_fields(self, store: SessionStore, field: str) -> None:
        store.create(DOC_1, "passport", PollingConfig())

        with pytest.raises(ValueError):
            store.update(DOC_1, **{field: 1})

    def test_update_missing_session_is_noop(self, store: SessionStore) -> None:
        store.update(DOC_1, current_retry_count=1)

        assert store.get(DOC_1) is None

    def test_record_request_keeps_total_consistent(self, store: SessionStore) -> None:
        store.create(DOC_1, "passport", PollingConfig())
        error = LastError(status_code=500, message="Server error", kind=ErrorKind.server_error)

        store.record_request(DOC_1, success=False, error=error)
        store.record_request(DOC_1, success=True)
        session = store.get(DOC_1)

        assert session.failed_requests == 1
        assert session.successful_requests == 1
        assert session.total_requests == 2
        assert session.last_error.status_code == 500
        assert session.last_response_time is not None


class TestTerminalTransitions:
    """Test SessionStore.complete."""

    def test_complete_sets_end_time(self, store: SessionStore) -> None:
        store.create(DOC_1, "passport", PollingConfig())

        assert store.complete(DOC_1, SessionStatus.completed) is True
        session = store.get(DOC_1)

        assert session.status is SessionStatus.completed
        assert session.ended_at is not None
        assert store.list_active() == []

    def test_complete_only_once(self, store: SessionStore) -> None:
        store.create(DOC_1, "passport", PollingConfig())
        store.complete(DOC_1, SessionStatus.cancelled)

        assert store.complete(DOC_1, SessionStatus.completed) is False
        assert store.get(DOC_1).status is SessionStatus.cancelled

    def test_complete_missing_session(self, store: SessionStore) -> None:
        assert store.complete(DOC_1, SessionStatus.completed) is False

    def test_complete_requires_terminal_status(self, store: SessionStore) -> None:
        store.create(DOC_1, "passport", PollingConfig())

        with pytest.raises(ValueError):
            store.complete(DOC_1, SessionStatus.active)


class TestTimers:
    """Test timer ownership."""

    def test_set_timer_cancels_previous(self, store: SessionStore) -> None:
        store.create(DOC_1, "passport", PollingConfig())
        first, second = Mock(), Mock()

        store.set_timer(DOC_1, first)
        store.set_timer(DOC_1, second)

        first.cancel.assert_called_once()
        second.cancel.assert_not_called()

    def test_set_timer_on_terminal_session_cancels_handle(self, store: SessionStore) -> None:
        store.create(DOC_1, "passport", PollingConfig())
        store.complete(DOC_1, SessionStatus.failed)
        handle = Mock()

        store.set_timer(DOC_1, handle)

        handle.cancel.assert_called_once()

    def test_complete_clears_timer(self, store: SessionStore) -> None:
        store.create(DOC_1, "passport", PollingConfig())
        handle = Mock()
        handle.done.return_value = False
        store.set_timer(DOC_1, handle)
        assert store.get(DOC_1).has_scheduled_timer

        store.complete(DOC_1, SessionStatus.cancelled)

        handle.cancel.assert_called_once()
        assert not store.get(DOC_1).has_scheduled_timer

    def test_remove_all_cancels_every_timer(self, store: SessionStore) -> None:
        handles = []
        for document_id in (DOC_1, DOC_2):
            store.create(document_id, "passport", PollingConfig())
            handle = Mock()
            store.set_timer(document_id, handle)
            handles.append(handle)

        assert store.remove_all() == 2

        for handle in handles:
            handle.cancel.assert_called_once()
        assert store.session_count() == 0


class TestRemoval:
    """Test delayed removal and purge."""

    @pytest.mark.asyncio
    async def test_terminal_session_removed_after_grace(self) -> None:
        store = SessionStore(removal_grace_seconds=0.01)
        store.create(DOC_1, "passport", PollingConfig())
        store.complete(DOC_1, SessionStatus.completed)

        assert store.get(DOC_1) is not None
        await asyncio.sleep(0.05)

        assert store.get(DOC_1) is None

    @pytest.mark.asyncio
    async def test_delayed_removal_spares_new_session(self) -> None:
        store = SessionStore(removal_grace_seconds=0.02)
        store.create(DOC_1, "passport", PollingConfig())
        store.complete(DOC_1, SessionStatus.completed)
        new_session_id = store.create(DOC_1, "passport", PollingConfig())

        await asyncio.sleep(0.05)

        assert store.get(DOC_1).session_id == new_session_id

    def test_purge_expired_without_event_loop(self) -> None:
        store = SessionStore(removal_grace_seconds=5.0)
        store.create(DOC_1, "passport", PollingConfig())
        store.create(DOC_2, "passport", PollingConfig())
        store.complete(DOC_1, SessionStatus.completed)
        store.get(DOC_1).ended_at = datetime.now(UTC) - timedelta(seconds=10)

        assert store.purge_expired() == 1
        assert store.get(DOC_1) is None
        assert store.get(DOC_2) is not None

    def test_remove(self, store: SessionStore) -> None:
        store.create(DOC_1, "passport", PollingConfig())

        assert store.remove(DOC_1) is True
        assert store.remove(DOC_1) is False


class TestStatistics:
    """Test statistics and listeners."""

    def test_statistics(self, store: SessionStore) -> None:
        store.create(DOC_1, "passport", PollingConfig())
        store.create(DOC_2, "passport", PollingConfig())
        store.record_request(DOC_1, success=False)
        store.record_request(DOC_1, success=True)
        store.record_request(DOC_2, success=False)
        store.complete(DOC_1, SessionStatus.completed)
        store.complete(DOC_2, SessionStatus.timeout)

        stats = store.statistics()

        assert stats.total_sessions == 2
        assert stats.completed_sessions == 1
        assert stats.timeout_sessions == 1
        assert stats.active_sessions == 0
        assert stats.total_requests == 3
        assert stats.success_rate == 33.33

    def test_statistics_empty(self, store: SessionStore) -> None:
        stats = store.statistics()

        assert stats.total_sessions == 0
        assert stats.success_rate == 0.0
        assert stats.average_session_duration_ms == 0

    def test_listener_failure_does_not_break_store(self, store: SessionStore) -> None:
        received = []
        store.subscribe(Mock(side_effect=RuntimeError("boom")))
        store.subscribe(received.append)

        store.create(DOC_1, "passport", PollingConfig())

        assert [update.status for update in received] == [SessionStatus.active]

    def test_dispose_drops_sessions_and_listeners(self, store: SessionStore) -> None:
        received = []
        store.subscribe(received.append)
        store.create(DOC_1, "passport", PollingConfig())

        store.dispose()
        store.create(DOC_2, "passport", PollingConfig())

        assert len(received) == 1
        assert store.get(DOC_1) is None


class TestPersistence:
    """Test snapshot persistence and restore."""

    def test_restore_marks_active_sessions_cancelled(self) -> None:
        storage = InMemorySnapshotStorage()
        store = SessionStore(storage=storage)
        store.create(DOC_1, "passport", PollingConfig(max_retries=4))
        store.record_request(DOC_1, success=False)
        store.create(DOC_2, "id_card", PollingConfig())
        store.complete(DOC_2, SessionStatus.completed)

        restored = SessionStore(storage=storage)

        session = restored.get(DOC_1)
        assert session.status is SessionStatus.cancelled
        assert session.ended_at is not None
        assert session.failed_requests == 1
        assert session.config.max_retries == 4
        assert restored.get(DOC_2).status is SessionStatus.completed
        assert restored.list_active() == []

    def test_removal_is_persisted(self) -> None:
        storage = InMemorySnapshotStorage()
        store = SessionStore(storage=storage)
        store.create(DOC_1, "passport", PollingConfig())

        store.remove(DOC_1)

        assert storage.load() == []
