"""
FastAPI dependency injection helpers.

Provides the process-wide polling services to routes. The services hold
asyncio timers, so they are created lazily on first use inside the
server's event loop.
"""

import logging

from ..clients.snapshot import JsonFileSnapshotStorage
from ..clients.status_api import StatusApiClient
from ..config import get_settings
from ..services.lifecycle import LifecycleCoordinator
from ..services.poller import StatusPoller
from ..services.session_store import SessionStore
from ..services.tracker import DocumentTracker
from ..utils.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

# Global singletons
_rate_limiter: RateLimiter | None = None
_status_client: StatusApiClient | None = None
_tracker: DocumentTracker | None = None
_session_store: SessionStore | None = None
_poller: StatusPoller | None = None
_coordinator: LifecycleCoordinator | None = None


def get_rate_limiter() -> RateLimiter:
    """
    Get or create global rate limiter instance.

    Returns:
        RateLimiter shared by every status request
    """
    global _rate_limiter
    if _rate_limiter is None:
        settings = get_settings()
        _rate_limiter = RateLimiter(
            max_requests=settings.status_api_max_requests,
            per_seconds=settings.status_api_rate_window_seconds,
        )
    return _rate_limiter


def get_status_client() -> StatusApiClient:
    global _status_client
    if _status_client is None:
        _status_client = StatusApiClient(settings=get_settings(), rate_limiter=get_rate_limiter())
    return _status_client


def get_tracker() -> DocumentTracker:
    global _tracker
    if _tracker is None:
        _tracker = DocumentTracker()
    return _tracker


def get_session_store() -> SessionStore:
    """
    Get or create the session store.

    Returns:
        SessionStore, persisted to session_snapshot_path when it is configured
    """
    global _session_store
    if _session_store is None:
        settings = get_settings()
        storage = (
            JsonFileSnapshotStorage(settings.session_snapshot_path)
            if settings.session_snapshot_path
            else None
        )
        _session_store = SessionStore(
            removal_grace_seconds=settings.session_removal_grace_seconds,
            storage=storage,
        )
    return _session_store


def get_poller() -> StatusPoller:
    global _poller
    if _poller is None:
        settings = get_settings()
        _poller = StatusPoller(
            client=get_status_client(),
            store=get_session_store(),
            tracker=get_tracker(),
            default_config=settings.polling_config(),
            policy=settings.retry_policy(),
            hidden_delay_multiplier=settings.hidden_delay_multiplier,
        )
    return _poller


def get_coordinator() -> LifecycleCoordinator:
    global _coordinator
    if _coordinator is None:
        _coordinator = LifecycleCoordinator(get_poller())
    return _coordinator


async def shutdown_dependencies() -> None:
    """
    Cancel all polling, close the status client and drop the singletons.

    Note:
        Cancelled sessions stay in the store so a configured snapshot keeps
        them. Only services that were actually created are touched.
    """
    global _rate_limiter, _status_client, _tracker, _session_store, _poller, _coordinator

    if _poller is not None:
        _poller.cancel_all()
    if _status_client is not None:
        await _status_client.aclose()
        logger.info("Status API client closed")

    _rate_limiter = None
    _status_client = None
    _tracker = None
    _session_store = None
    _poller = None
    _coordinator = None
