"""
Custom exceptions for the verification poller.

These exceptions provide structured error handling for different failure scenarios.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..models.session import SessionStatus
    from ..models.verification import ErrorKind, RecoveryInfo


class PollerError(Exception):
    """Base exception for all verification poller errors."""

    def __init__(self, message: str, code: str = "UNKNOWN_ERROR") -> None:
        """
        Initialize exception with message and error code.

        Args:
            message: Human-readable error message
            code: Machine-readable error code (SNAKE_CASE)
        """
        self.message = message
        self.code = code
        super().__init__(message)


class ValidationError(PollerError):
    """Raised when a document identifier is malformed or not tracked as uploaded."""

    def __init__(self, message: str, code: str = "INVALID_DOCUMENT_ID") -> None:
        super().__init__(message, code=code)


class AlreadyActiveError(PollerError):
    """Raised when a polling session is already active for a document."""

    def __init__(self, document_id: str) -> None:
        self.document_id = document_id
        super().__init__(
            f"Polling already active for document '{document_id}'", code="ALREADY_ACTIVE"
        )


class SessionNotFoundError(PollerError):
    """Raised when no polling session exists for a document."""

    def __init__(self, document_id: str) -> None:
        self.document_id = document_id
        super().__init__(
            f"No polling session found for document '{document_id}'",
            code="SESSION_NOT_FOUND",
        )


class ComponentNotFoundError(PollerError):
    """Raised when a component is not registered with the lifecycle coordinator."""

    def __init__(self, component_id: str) -> None:
        self.component_id = component_id
        super().__init__(
            f"Component '{component_id}' is not registered", code="COMPONENT_NOT_FOUND"
        )


class StatusRequestError(PollerError):
    """
    Raised by the status client when a single status request fails.

    Attributes:
        status_code: HTTP status code, or None for network-level failures
        timed_out: True when the request itself timed out
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        timed_out: bool = False,
    ) -> None:
        self.status_code = status_code
        self.timed_out = timed_out
        super().__init__(message, code="STATUS_REQUEST_FAILED")


class PollingFailure(PollerError):
    """
    Terminal error delivered to callers awaiting a polling session.

    Attributes:
        document_id: Document that was being polled
        status: Terminal session status (failed or timeout)
        kind: Classified error kind that ended the session
        status_code: HTTP status of the last failed request, if any
        recovery: Recovery hint for the UI
    """

    def __init__(
        self,
        document_id: str,
        status: SessionStatus,
        kind: ErrorKind,
        message: str,
        recovery: RecoveryInfo,
        status_code: int | None = None,
    ) -> None:
        self.document_id = document_id
        self.status = status
        self.kind = kind
        self.recovery = recovery
        self.status_code = status_code
        super().__init__(message, code=kind.value.upper())
