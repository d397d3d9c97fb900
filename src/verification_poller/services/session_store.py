"""
Polling session registry.

Handles session lifecycle: creation, updates, terminal transitions, delayed
removal and bulk cleanup. The store is the single source of truth for
polling state and owns every session's scheduled timer.
"""

import asyncio
import logging
import secrets
import time
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from ..clients.snapshot import SnapshotStorage
from ..models.session import (
    LastError,
    PollingConfig,
    PollingSession,
    PollingStateUpdate,
    PollingStatistics,
    SessionStatus,
)
from ..utils.exceptions import AlreadyActiveError
from ..utils.scheduling import ScheduledCall

logger = logging.getLogger(__name__)

StateListener = Callable[[PollingStateUpdate], None]

# Fields that identify a session or are only changed through complete()
_PROTECTED_FIELDS = frozenset({"document_id", "session_id", "status", "start_time", "config"})


class SessionStore:
    """
    In-memory polling session store, optionally persisted.

    Attributes:
        _sessions: Dictionary mapping document_id to its PollingSession
        _removal_handles: Pending delayed removals of terminal sessions
        _removal_grace: Seconds a terminal session is retained for late reads
    """

    def __init__(
        self,
        removal_grace_seconds: float = 5.0,
        *,
        clock: Callable[[], float] = time.monotonic,
        storage: SnapshotStorage | None = None,
    ) -> None:
        """
        Initialize session store.

        Args:
            removal_grace_seconds: Retention of terminal sessions before removal
            clock: Monotonic clock in seconds
            storage: Optional snapshot storage; previous sessions are restored from it
        """
        self._sessions: dict[str, PollingSession] = {}
        self._removal_handles: dict[str, asyncio.TimerHandle] = {}
        self._listeners: list[StateListener] = []
        self._removal_grace = removal_grace_seconds
        self._clock = clock
        self._storage = storage

        if storage is not None:
            self._restore()

    @property
    def clock(self) -> Callable[[], float]:
        return self._clock

    def _restore(self) -> None:
        """
        Restore sessions from storage.

        Note:
            Timers cannot survive a restart, so sessions that were still
            active are marked cancelled rather than resumed.
        """
        restored = self._storage.load()
        for session in restored:
            if session.status is SessionStatus.active:
                session.status = SessionStatus.cancelled
                session.ended_at = datetime.now(UTC)
            self._sessions[session.document_id] = session
        if restored:
            logger.info(f"Restored {len(restored)} polling sessions from storage")
            self._persist()

    def _persist(self) -> None:
        if self._storage is not None:
            self._storage.save(list(self._sessions.values()))

    def _emit(self, update: PollingStateUpdate) -> None:
        for listener in list(self._listeners):
            try:
                listener(update)
            except Exception:
                logger.exception(f"Polling state listener failed for {update.document_id}")

    def subscribe(self, listener: StateListener) -> None:
        """Register a callback for session start and terminal updates."""
        self._listeners.append(listener)

    def unsubscribe(self, listener: StateListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def create(self, document_id: str, document_type: str, config: PollingConfig) -> str:
        """
        Create a new active session for a document.

        Args:
            document_id: Document identifier
            document_type: Free-text document classification
            config: Polling configuration snapshot

        Returns:
            The new session_id

        Raises:
            AlreadyActiveError: If an active session exists for document_id

        Note:
            A retained terminal session for the same document is replaced.
        """
        existing = self._sessions.get(document_id)
        if existing is not None and existing.is_active:
            raise AlreadyActiveError(document_id)
        if existing is not None:
            self._discard(document_id)

        session_id = f"polling_{secrets.token_urlsafe(12)}"
        now = self._clock()
        session = PollingSession(
            document_id=document_id,
            document_type=document_type,
            session_id=session_id,
            start_time=now,
            last_request_time=None,
            config=config,
        )
        self._sessions[document_id] = session
        self._persist()
        self._emit(
            PollingStateUpdate(
                session_id=session_id,
                document_id=document_id,
                status=SessionStatus.active,
                request_count=0,
            )
        )
        logger.info(
            f"Started polling session {session_id} for document {document_id} ({document_type})"
        )
        return session_id

    def get(self, document_id: str) -> PollingSession | None:
        return self._sessions.get(document_id)

    def is_active(self, document_id: str) -> bool:
        session = self._sessions.get(document_id)
        return session is not None and session.is_active

    def update(self, document_id: str, **fields: Any) -> None:
        """
        Merge fields into a session.

        Args:
            document_id: Document identifier
            **fields: PollingSession field values

        Raises:
            ValueError: If a field is unknown, computed, or only set through complete()

        Note:
            Logs a warning and does nothing if no session exists.
        """
        session = self._sessions.get(document_id)
        if session is None:
            logger.warning(f"Cannot update polling session - no session found for {document_id}")
            return

        for name in fields:
            if name not in PollingSession.model_fields or name in _PROTECTED_FIELDS:
                raise ValueError(f"Field '{name}' cannot be updated")
        for name, value in fields.items():
            setattr(session, name, value)
        self._persist()
        logger.debug(f"Updated polling session {session.session_id}: {sorted(fields)}")

    def mark_request_sent(self, document_id: str) -> None:
        session = self._sessions.get(document_id)
        if session is not None:
            session.last_request_time = self._clock()

    def record_request(
        self, document_id: str, success: bool, error: LastError | None = None
    ) -> None:
        """
        Count the outcome of one status request.

        Args:
            document_id: Document identifier
            success: Whether the request returned a verification result
            error: Failure details, stored as last_error
        """
        session = self._sessions.get(document_id)
        if session is None:
            logger.warning(f"Cannot record request - no session found for {document_id}")
            return

        if success:
            session.successful_requests += 1
        else:
            session.failed_requests += 1
            if error is not None:
                session.last_error = error
        session.last_response_time = self._clock()
        self._persist()

    def set_timer(self, document_id: str, handle: ScheduledCall) -> None:
        """
        Attach a scheduled call to a session, cancelling any previous one.

        Note:
            If the session is missing or terminal the handle is cancelled
            immediately.
        """
        session = self._sessions.get(document_id)
        if session is None or not session.is_active:
            handle.cancel()
            return
        if session._timer is not None and session._timer is not handle:
            session._timer.cancel()
        session._timer = handle

    def clear_timer(self, document_id: str) -> None:
        session = self._sessions.get(document_id)
        if session is not None and session._timer is not None:
            session._timer.cancel()
            session._timer = None

    def complete(
        self,
        document_id: str,
        final_status: SessionStatus,
        error: LastError | None = None,
    ) -> bool:
        """
        Move a session to a terminal status.

        Args:
            document_id: Document identifier
            final_status: completed, failed, timeout or cancelled
            error: Optional final error

        Returns:
            True if the session transitioned, False if it was missing or already terminal

        Raises:
            ValueError: If final_status is not terminal
        """
        if not final_status.is_terminal:
            raise ValueError("final_status must be a terminal status")

        session = self._sessions.get(document_id)
        if session is None:
            logger.warning(f"Cannot stop polling - no session found for {document_id}")
            return False
        if not session.is_active:
            logger.debug(
                f"Session {session.session_id} already {session.status.value}, "
                f"ignoring {final_status.value}"
            )
            return False

        self.clear_timer(document_id)
        session.status = final_status
        session.ended_at = datetime.now(UTC)
        if error is not None:
            session.last_error = error
        self._persist()

        duration_ms = session.duration_ms()
        self._emit(
            PollingStateUpdate(
                session_id=session.session_id,
                document_id=document_id,
                status=final_status,
                request_count=session.total_requests,
                error_message=error.message if error else None,
                response_time_ms=duration_ms,
            )
        )
        logger.info(
            f"Stopped polling session {session.session_id} for document {document_id}: "
            f"{final_status.value} after {duration_ms:.0f}ms, "
            f"{session.total_requests} requests "
            f"({session.successful_requests} ok, {session.failed_requests} failed)"
        )
        self._schedule_removal(document_id, session.session_id)
        return True

    def _schedule_removal(self, document_id: str, session_id: str) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop: purge_expired() removes the session later
            return
        previous = self._removal_handles.pop(document_id, None)
        if previous is not None:
            previous.cancel()
        self._removal_handles[document_id] = loop.call_later(
            self._removal_grace, self._remove_if_current, document_id, session_id
        )

    def _remove_if_current(self, document_id: str, session_id: str) -> None:
        self._removal_handles.pop(document_id, None)
        session = self._sessions.get(document_id)
        if session is not None and session.session_id == session_id and not session.is_active:
            del self._sessions[document_id]
            self._persist()
            logger.debug(f"Removed polling session {session_id} for document {document_id}")

    def _discard(self, document_id: str) -> PollingSession | None:
        handle = self._removal_handles.pop(document_id, None)
        if handle is not None:
            handle.cancel()
        session = self._sessions.pop(document_id, None)
        if session is not None and session._timer is not None:
            session._timer.cancel()
            session._timer = None
        return session

    def remove(self, document_id: str) -> bool:
        """
        Remove a session immediately, cancelling its timer.

        Returns:
            True if a session was removed
        """
        removed = self._discard(document_id) is not None
        if removed:
            self._persist()
        return removed

    def remove_all(self) -> int:
        """
        Clear every timer, pending removal and session.

        Returns:
            Number of sessions removed
        """
        count = len(self._sessions)
        for document_id in list(self._sessions):
            self._discard(document_id)
        for handle in self._removal_handles.values():
            handle.cancel()
        self._removal_handles.clear()
        self._persist()
        logger.info(f"Removed all {count} polling sessions")
        return count

    def purge_expired(self) -> int:
        """
        Remove terminal sessions whose grace window has passed.

        Returns:
            Number of sessions removed
        """
        now = datetime.now(UTC)
        expired = [
            document_id
            for document_id, session in self._sessions.items()
            if not session.is_active
            and session.ended_at is not None
            and (now - session.ended_at).total_seconds() >= self._removal_grace
        ]
        for document_id in expired:
            self._discard(document_id)
        if expired:
            self._persist()
        return len(expired)

    def list_active(self) -> list[str]:
        return [
            document_id for document_id, session in self._sessions.items() if session.is_active
        ]

    def all_sessions(self) -> list[PollingSession]:
        return list(self._sessions.values())

    def session_count(self) -> int:
        return len(self._sessions)

    def statistics(self) -> PollingStatistics:
        """
        Aggregate statistics over the sessions currently held.

        Returns:
            PollingStatistics with counts by status, average duration of
            ended sessions, total requests and success rate (percent)
        """
        sessions = list(self._sessions.values())
        ended = [s for s in sessions if s.ended_at is not None]
        average_duration = (
            sum(s.duration_ms() for s in ended) / len(ended) if ended else 0.0
        )
        total_requests = sum(s.total_requests for s in sessions)
        successful = sum(s.successful_requests for s in sessions)
        success_rate = successful / total_requests * 100 if total_requests else 0.0

        by_status = {status: 0 for status in SessionStatus}
        for session in sessions:
            by_status[session.status] += 1

        return PollingStatistics(
            total_sessions=len(sessions),
            active_sessions=by_status[SessionStatus.active],
            completed_sessions=by_status[SessionStatus.completed],
            failed_sessions=by_status[SessionStatus.failed],
            timeout_sessions=by_status[SessionStatus.timeout],
            cancelled_sessions=by_status[SessionStatus.cancelled],
            average_session_duration_ms=round(average_duration),
            total_requests=total_requests,
            success_rate=round(success_rate, 2),
        )

    def dispose(self) -> None:
        """Remove all sessions and drop listeners."""
        self.remove_all()
        self._listeners.clear()
