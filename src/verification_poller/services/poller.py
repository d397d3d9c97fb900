"""
Verification status polling.

StatusPoller drives one polling session per document: it issues status
requests, classifies failures, reschedules retries with backoff, and
delivers exactly one terminal outcome through a PollingHandle.

Session flow:
    Idle → Scheduled → InFlight → {Scheduled | Terminal}
"""

import asyncio
import logging
import random
from functools import partial

from ..clients.status_api import StatusApiClient
from ..models.session import (
    LastError,
    PollingConfig,
    PollingSession,
    PollingStatistics,
    PollingStatusReport,
    RetryPolicy,
    SessionStatus,
)
from ..models.verification import DocumentVerificationResult, ErrorKind
from ..utils.backoff import compute_delay
from ..utils.exceptions import PollingFailure, StatusRequestError
from ..utils.scheduling import ScheduledCall
from .classification import (
    classify_status_error,
    suggested_wait_ms,
    terminal_recovery,
    user_friendly_message,
)
from .session_store import SessionStore
from .tracker import DocumentTracker

logger = logging.getLogger(__name__)


class PollingHandle:
    """
    Caller-side view of one polling session.

    Example:
        >>> handle = poller.begin(document_id, "passport")
        >>> result = await handle.result()  # None if cancelled
    """

    def __init__(self, document_id: str, session_id: str, future: asyncio.Future) -> None:
        self.document_id = document_id
        self.session_id = session_id
        self._future = future
        self._cancelled = False

    async def result(self) -> DocumentVerificationResult | None:
        """
        Wait for the terminal outcome.

        Returns:
            The verification result, or None if polling was cancelled

        Raises:
            PollingFailure: If the session ended failed or timed out
        """
        return await asyncio.shield(self._future)

    def done(self) -> bool:
        return self._future.done()

    def cancelled(self) -> bool:
        return self._cancelled

    def _resolve(self, result: DocumentVerificationResult) -> None:
        if not self._future.done():
            self._future.set_result(result)

    def _resolve_cancelled(self) -> None:
        if not self._future.done():
            self._cancelled = True
            self._future.set_result(None)

    def _reject(self, failure: PollingFailure) -> None:
        if not self._future.done():
            self._future.set_exception(failure)


class StatusPoller:
    """
    Orchestrates status polling for uploaded documents.

    Attributes:
        store: Session store, the single source of truth for polling state
        default_config: PollingConfig used when begin() gets none
        policy: 404 and rate-limit thresholds
    """

    def __init__(
        self,
        client: StatusApiClient,
        store: SessionStore,
        tracker: DocumentTracker,
        *,
        default_config: PollingConfig | None = None,
        policy: RetryPolicy | None = None,
        hidden_delay_multiplier: float = 2.0,
        rng: random.Random | None = None,
    ) -> None:
        """
        Initialize the poller.

        Args:
            client: Status endpoint client
            store: Session store
            tracker: Uploaded document registry
            default_config: Default polling configuration
            policy: Retry thresholds
            hidden_delay_multiplier: Delay factor while the page is hidden
            rng: Random source for jitter (seed it in tests)
        """
        self._client = client
        self.store = store
        self._tracker = tracker
        self.default_config = default_config or PollingConfig()
        self.policy = policy or RetryPolicy()
        self._hidden_delay_multiplier = hidden_delay_multiplier
        self._rng = rng
        self._handles: dict[str, PollingHandle] = {}
        self._background = False

    @property
    def background_mode(self) -> bool:
        return self._background

    def begin(
        self,
        document_id: str,
        document_type: str = "unknown",
        config: PollingConfig | None = None,
    ) -> PollingHandle:
        """
        Start polling a document, or join the session already running.

        Args:
            document_id: Document GUID, tracked as uploaded
            document_type: Free-text classification for logs
            config: Optional polling configuration snapshot

        Returns:
            PollingHandle for the active session

        Raises:
            ValidationError: If the ID is malformed or the document is not tracked
            RuntimeError: If called outside a running event loop
        """
        self._tracker.validate_for_status_request(document_id)

        existing = self.store.get(document_id)
        if existing is not None and existing.is_active:
            handle = self._handles.get(document_id)
            if handle is None or handle.session_id != existing.session_id:
                handle = PollingHandle(
                    document_id, existing.session_id, asyncio.get_running_loop().create_future()
                )
                self._handles[document_id] = handle
            logger.info(
                f"Polling already active for document {document_id}, "
                f"joining session {existing.session_id}"
            )
            return handle

        loop = asyncio.get_running_loop()
        snapshot = config or self.default_config
        session_id = self.store.create(document_id, document_type, snapshot)
        handle = PollingHandle(document_id, session_id, loop.create_future())
        self._handles[document_id] = handle

        session = self.store.get(document_id)
        self._schedule(session, snapshot.initial_delay_ms)
        return handle

    def _current(self, document_id: str, session_id: str) -> PollingSession | None:
        """Return the session if it is still the active one for session_id."""
        session = self.store.get(document_id)
        if session is None or session.session_id != session_id or not session.is_active:
            return None
        return session

    def _schedule(self, session: PollingSession, delay_ms: float) -> None:
        """
        Schedule the next attempt, or the timeout if the delay reaches the deadline.

        Args:
            session: Active session
            delay_ms: Delay before the next attempt
        """
        remaining_ms = session.config.timeout_ms - session.elapsed_ms(self.store.clock())
        if delay_ms >= remaining_ms:
            delay_ms = max(remaining_ms, 0.0)
            callback = partial(self._expire, session.document_id, session.session_id)
            logger.debug(
                f"Next attempt for {session.document_id} would pass the deadline, "
                f"timing out in {delay_ms:.0f}ms"
            )
        else:
            callback = partial(self._attempt, session.document_id, session.session_id)

        handle = ScheduledCall(delay_ms / 1000, callback, name=f"poll:{session.document_id}")
        self.store.set_timer(session.document_id, handle)

    async def _attempt(self, document_id: str, session_id: str) -> None:
        session = self._current(document_id, session_id)
        if session is None:
            return

        remaining_s = (session.config.timeout_ms - session.elapsed_ms(self.store.clock())) / 1000
        if remaining_s <= 0:
            self._fail(session, SessionStatus.timeout, ErrorKind.timeout)
            return

        self.store.mark_request_sent(document_id)
        logger.debug(
            f"Status request #{session.total_requests + 1} for {document_id} "
            f"(retry {session.current_retry_count}/{session.config.max_retries})"
        )
        try:
            result = await asyncio.wait_for(
                self._client.get_status(document_id), timeout=remaining_s
            )
        except StatusRequestError as e:
            self._handle_failure(document_id, session_id, e)
            return
        except TimeoutError:
            if self._current(document_id, session_id) is None:
                return
            # The request outlived the session budget
            self.store.record_request(document_id, success=False)
            self._fail(session, SessionStatus.timeout, ErrorKind.timeout)
            return

        if self._current(document_id, session_id) is None:
            logger.debug(f"Discarding late status result for {document_id} ({session_id})")
            return

        self.store.record_request(document_id, success=True)
        self.store.complete(document_id, SessionStatus.completed)
        handle = self._pop_handle(document_id, session_id)
        if handle is not None:
            handle._resolve(result)
        logger.info(
            f"Verification result for {document_id}: {result.verification_status.value} "
            f"after {session.total_requests} requests"
        )

    def _handle_failure(
        self, document_id: str, session_id: str, error: StatusRequestError
    ) -> None:
        session = self._current(document_id, session_id)
        if session is None:
            logger.debug(f"Discarding late status error for {document_id} ({session_id})")
            return

        now = self.store.clock()
        upload_age_ms = self._tracker.time_since_upload_ms(document_id)
        tracked = upload_age_ms is not None
        if upload_age_ms is None:
            upload_age_ms = session.elapsed_ms(now)

        kind = classify_status_error(
            error,
            document_tracked=tracked,
            time_since_upload_ms=upload_age_ms,
            retry_count=session.current_retry_count,
            policy=self.policy,
        )
        self.store.record_request(
            document_id,
            success=False,
            error=LastError(status_code=error.status_code, message=error.message, kind=kind),
        )

        if session.has_timed_out(now):
            self._fail(session, SessionStatus.timeout, ErrorKind.timeout)
        elif session.has_exceeded_max_retries():
            self._fail(session, SessionStatus.failed, ErrorKind.max_retries_exceeded)
        elif not kind.is_retryable:
            self._fail(session, SessionStatus.failed, kind)
        else:
            self._schedule_retry(session, kind)

    def _schedule_retry(self, session: PollingSession, kind: ErrorKind) -> None:
        attempt = session.current_retry_count
        delay_ms = compute_delay(attempt, session.config, self._rng)
        if kind is ErrorKind.rate_limited:
            delay_ms = max(delay_ms, self.policy.rate_limited_min_delay_ms)
        if self._background:
            delay_ms = round(delay_ms * self._hidden_delay_multiplier)

        self.store.update(session.document_id, current_retry_count=attempt + 1)
        logger.info(
            f"Retrying {session.document_id} after {kind.value} in {delay_ms}ms "
            f"(retry {attempt + 1}/{session.config.max_retries})"
        )
        self._schedule(session, delay_ms)

    async def _expire(self, document_id: str, session_id: str) -> None:
        session = self._current(document_id, session_id)
        if session is not None:
            self._fail(session, SessionStatus.timeout, ErrorKind.timeout)

    def _fail(self, session: PollingSession, status: SessionStatus, kind: ErrorKind) -> None:
        """
        End a session as failed or timed out and reject its handle.

        Args:
            session: Active session
            status: SessionStatus.failed or SessionStatus.timeout
            kind: Error kind that ended the session
        """
        document_id = session.document_id
        upload_age_ms = self._tracker.time_since_upload_ms(document_id)
        if upload_age_ms is None:
            upload_age_ms = session.elapsed_ms(self.store.clock())

        last = session.last_error
        last_kind = last.kind if last is not None else None
        status_code = last.status_code if last is not None else None
        last_wait_ms = (
            suggested_wait_ms(last_kind, upload_age_ms, session.current_retry_count)
            if last_kind is not None
            else None
        )
        message = user_friendly_message(kind, upload_age_ms)

        completed = self.store.complete(
            document_id,
            status,
            LastError(status_code=status_code, message=message, kind=kind),
        )
        if not completed:
            return

        logger.warning(
            f"Polling {status.value} for {document_id}: {kind.value} "
            f"(last status code {status_code})"
        )
        handle = self._pop_handle(document_id, session.session_id)
        if handle is not None:
            handle._reject(
                PollingFailure(
                    document_id,
                    status,
                    kind,
                    message,
                    terminal_recovery(kind, last_kind, last_wait_ms),
                    status_code=status_code,
                )
            )

    def _pop_handle(self, document_id: str, session_id: str) -> PollingHandle | None:
        handle = self._handles.get(document_id)
        if handle is None or handle.session_id != session_id:
            return None
        return self._handles.pop(document_id)

    def cancel(self, document_id: str) -> bool:
        """
        Cancel polling for a document.

        Returns:
            True if an active session was cancelled

        Note:
            A request already in flight completes, but its outcome is discarded.
        """
        session = self.store.get(document_id)
        if session is None or not session.is_active:
            return False
        self.store.complete(document_id, SessionStatus.cancelled)
        handle = self._pop_handle(document_id, session.session_id)
        if handle is not None:
            handle._resolve_cancelled()
        return True

    def cancel_all(self) -> int:
        """
        Cancel every active session.

        Returns:
            Number of sessions cancelled
        """
        cancelled = sum(1 for document_id in self.store.list_active() if self.cancel(document_id))
        if cancelled:
            logger.info(f"Cancelled {cancelled} active polling sessions")
        return cancelled

    def cleanup(self, document_id: str) -> bool:
        """
        Stop polling a document: cancel it if active, otherwise drop its session.

        Returns:
            True if anything was cancelled or removed
        """
        if self.cancel(document_id):
            return True
        return self.store.remove(document_id)

    def cleanup_all(self) -> None:
        """Cancel every session and clear the store."""
        self.cancel_all()
        self.store.remove_all()
        for handle in self._handles.values():
            handle._resolve_cancelled()
        self._handles.clear()

    def set_background_mode(self, hidden: bool) -> None:
        """
        Slow retries down while the page is hidden.

        Args:
            hidden: True when the page is hidden

        Note:
            Applies to retries scheduled from now on.
        """
        if hidden != self._background:
            logger.info(f"Polling background mode {'enabled' if hidden else 'disabled'}")
        self._background = hidden

    def is_polling_active(self, document_id: str) -> bool:
        return self.store.is_active(document_id)

    def get_active_polling_documents(self) -> list[str]:
        return self.store.list_active()

    def get_polling_session(self, document_id: str) -> PollingSession | None:
        return self.store.get(document_id)

    def query_polling_status(self, document_id: str) -> PollingStatusReport:
        """Snapshot of a document's polling state."""
        session = self.store.get(document_id)
        if session is None:
            return PollingStatusReport(is_active=False)
        return PollingStatusReport(
            is_active=session.is_active,
            session=session,
            duration_ms=session.duration_ms(),
            request_count=session.total_requests,
        )

    def get_polling_statistics(self) -> PollingStatistics:
        return self.store.statistics()
