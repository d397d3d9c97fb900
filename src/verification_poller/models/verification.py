"""
Verification result and error classification models.

DocumentVerificationResult mirrors the JSON body returned by
GET /document/{id}/status. Field names are snake_case in Python and
camelCase on the wire.
"""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class VerificationStatus(str, Enum):
    verified = "verified"
    failed = "failed"
    pending = "pending"


class DocumentVerificationResult(BaseModel):
    """
    Verification outcome for one uploaded document.

    Attributes:
        document_id: Document identifier (GUID)
        verification_status: verified, failed or pending
        confidence_score: AI confidence score in [0, 100], if available
        is_blurred: Whether the image was detected as blurred
        is_correct_type: Whether the document matches the expected type
        status_color: Traffic-light colour for the UI
        message: Human-readable summary
        requires_user_confirmation: Low-confidence results need confirmation
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    document_id: str
    verification_status: VerificationStatus
    confidence_score: float | None = Field(default=None, ge=0, le=100)
    is_blurred: bool = False
    is_correct_type: bool = True
    status_color: Literal["green", "yellow", "red"]
    message: str = ""
    requires_user_confirmation: bool = False


class ErrorKind(str, Enum):
    """Tagged error kinds produced by classify_status_error()."""

    server_error = "server_error"
    rate_limited = "rate_limited"
    network_error = "network_error"
    not_ready = "not_ready"
    not_found_permanent = "not_found_permanent"
    client_error = "client_error"
    # Session-level outcomes
    timeout = "timeout"
    max_retries_exceeded = "max_retries_exceeded"
    cancelled = "cancelled"

    @property
    def is_retryable(self) -> bool:
        return self in _RETRYABLE_KINDS


_RETRYABLE_KINDS = frozenset(
    {
        ErrorKind.server_error,
        ErrorKind.rate_limited,
        ErrorKind.network_error,
        ErrorKind.not_ready,
    }
)


class RecoveryAction(str, Enum):
    automatic_retry = "automatic_retry"
    manual_retry = "manual_retry"
    no_retry = "no_retry"


class RecoveryInfo(BaseModel):
    """
    Recovery hint attached to status errors.

    Attributes:
        action: What happens next (automatic retry, user action, or nothing)
        suggested_wait_ms: How long the user should expect to wait
        user_action: Copy describing what the user should do
    """

    action: RecoveryAction
    suggested_wait_ms: int | None = None
    user_action: str

    @property
    def is_recoverable(self) -> bool:
        return self.action is not RecoveryAction.no_retry
