"""Services for verification status polling."""

from .classification import (
    classify_status_error,
    describe_progress,
    recovery_for,
    suggested_wait_ms,
    terminal_recovery,
    user_friendly_message,
)
from .lifecycle import LifecycleCoordinator
from .poller import PollingHandle, StatusPoller
from .session_store import SessionStore
from .tracker import DocumentTracker, is_valid_document_id, validate_document_id_format

__all__ = [
    "DocumentTracker",
    "LifecycleCoordinator",
    "PollingHandle",
    "SessionStore",
    "StatusPoller",
    "classify_status_error",
    "describe_progress",
    "is_valid_document_id",
    "recovery_for",
    "suggested_wait_ms",
    "terminal_recovery",
    "user_friendly_message",
    "validate_document_id_format",
]
