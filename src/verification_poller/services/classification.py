"""
Status error classification and recovery guidance.

classify_status_error() is the single place that turns a failed status
request into an ErrorKind. The remaining helpers derive wait times,
recovery hints and user-facing copy from that kind.
"""

from ..models.session import RetryPolicy
from ..models.verification import ErrorKind, RecoveryAction, RecoveryInfo
from ..utils.exceptions import StatusRequestError

# Upload-age bands used for waits and UX copy (milliseconds)
RECENT_UPLOAD_MS = 10000
PROCESSING_MS = 60000
SHORT_WAIT_COPY_MS = 30000
LONG_WAIT_COPY_MS = 120000

SERVER_ERROR_BASE_WAIT_MS = 2000
SERVER_ERROR_MAX_WAIT_MS = 30000
NETWORK_TIMEOUT_WAIT_MS = 5000
RATE_LIMITED_WAIT_MS = 30000


def classify_status_error(
    error: StatusRequestError,
    *,
    document_tracked: bool,
    time_since_upload_ms: float,
    retry_count: int,
    policy: RetryPolicy,
) -> ErrorKind:
    """
    Classify a failed status request.

    Args:
        error: Failure raised by the status client
        document_tracked: Whether the document is known to have been uploaded
        time_since_upload_ms: Milliseconds since upload (or since polling began)
        retry_count: Retries already scheduled for the session
        policy: 404 and rate-limit thresholds

    Returns:
        The ErrorKind; ErrorKind.is_retryable tells whether to retry

    Classification:
        - 404, untracked document → not_found_permanent
        - 404 within the processing window → not_ready
        - 404 after the window, retry_count below the stale limit → not_ready
        - 404 otherwise → not_found_permanent
        - 5xx → server_error
        - 429 → rate_limited
        - other 4xx → client_error
        - no status code, request timeout, anything else → network_error
    """
    status_code = error.status_code

    if status_code == 404:
        if not document_tracked:
            return ErrorKind.not_found_permanent
        if time_since_upload_ms < policy.processing_window_ms:
            return ErrorKind.not_ready
        if retry_count < policy.stale_not_found_retry_limit:
            return ErrorKind.not_ready
        return ErrorKind.not_found_permanent

    if status_code is not None and 500 <= status_code < 600:
        return ErrorKind.server_error
    if status_code == 429:
        return ErrorKind.rate_limited
    if status_code is not None and 400 <= status_code < 500 and not error.timed_out:
        return ErrorKind.client_error

    # Unknown failures are most likely connectivity problems
    return ErrorKind.network_error


def suggested_wait_ms(kind: ErrorKind, time_since_upload_ms: float, retry_count: int) -> int | None:
    """
    Suggest how long the user should expect to wait before the next result.

    Returns:
        Milliseconds, or None when waiting will not help
    """
    if kind is ErrorKind.not_ready:
        if time_since_upload_ms < RECENT_UPLOAD_MS:
            return 2000
        if time_since_upload_ms < PROCESSING_MS:
            return 5000
        return 10000
    if kind is ErrorKind.server_error:
        return min(SERVER_ERROR_BASE_WAIT_MS * 2**retry_count, SERVER_ERROR_MAX_WAIT_MS)
    if kind is ErrorKind.rate_limited:
        return RATE_LIMITED_WAIT_MS
    if kind is ErrorKind.network_error:
        return NETWORK_TIMEOUT_WAIT_MS
    return None


def recovery_for(kind: ErrorKind, wait_ms: int | None = None) -> RecoveryInfo:
    """
    Recovery hint for an intermediate (still retrying) error kind.

    Args:
        kind: Classified error kind
        wait_ms: Suggested wait, if known
    """
    if kind is ErrorKind.not_found_permanent:
        return RecoveryInfo(
            action=RecoveryAction.manual_retry,
            user_action="Please re-upload the document or verify the document ID is correct.",
        )
    if kind is ErrorKind.client_error:
        return RecoveryInfo(
            action=RecoveryAction.no_retry,
            user_action="Please try refreshing the page or re-uploading the document.",
        )
    if kind is ErrorKind.cancelled:
        return RecoveryInfo(action=RecoveryAction.no_retry, user_action="Polling was cancelled.")
    if kind in (ErrorKind.timeout, ErrorKind.max_retries_exceeded):
        return RecoveryInfo(
            action=RecoveryAction.manual_retry,
            suggested_wait_ms=wait_ms,
            user_action="Please wait a moment and check the status again.",
        )

    user_actions = {
        ErrorKind.not_ready: "The system will automatically retry. Please wait while your document is being processed.",
        ErrorKind.server_error: "The system will automatically retry with increasing delays.",
        ErrorKind.rate_limited: "The system will wait and retry automatically to respect rate limits.",
        ErrorKind.network_error: "The system will retry with a longer timeout.",
    }
    return RecoveryInfo(
        action=RecoveryAction.automatic_retry,
        suggested_wait_ms=wait_ms,
        user_action=user_actions[kind],
    )


def terminal_recovery(
    terminal_kind: ErrorKind, last_kind: ErrorKind | None, last_wait_ms: int | None
) -> RecoveryInfo:
    """
    Recovery hint delivered with a terminal failure.

    Permanent errors keep their own hint. Sessions that ran out of time or
    retries while the error was still transient ask the user to retry
    manually after the last suggested wait.
    """
    session_level = terminal_kind in (ErrorKind.timeout, ErrorKind.max_retries_exceeded)
    if session_level and last_kind is not None and not last_kind.is_retryable:
        return recovery_for(last_kind)
    return recovery_for(terminal_kind, last_wait_ms)


def user_friendly_message(kind: ErrorKind, time_since_upload_ms: float) -> str:
    """
    User-facing message for a status error.

    Args:
        kind: Classified or session-level error kind
        time_since_upload_ms: Milliseconds since upload
    """
    if kind is ErrorKind.not_found_permanent:
        return "Document not found. Please verify the document was uploaded successfully."
    if kind is ErrorKind.not_ready:
        return describe_progress(time_since_upload_ms)
    if kind is ErrorKind.server_error:
        return (
            "The verification service is temporarily unavailable. "
            "The system will keep trying automatically."
        )
    if kind is ErrorKind.rate_limited:
        return "Please wait - the system is managing the request rate automatically."
    if kind is ErrorKind.client_error:
        return "Unable to retrieve document status. There may be an issue with the request."
    if kind is ErrorKind.timeout:
        return (
            "Document verification did not finish in time. "
            "Please check again shortly or try refreshing the page."
        )
    if kind is ErrorKind.max_retries_exceeded:
        return "Unable to retrieve document status after several attempts."
    if kind is ErrorKind.cancelled:
        return "Status checking was cancelled."
    return "Unable to retrieve document status. The system will continue trying automatically."


def describe_progress(elapsed_ms: float) -> str:
    """
    Progressive status copy for an active session.

    Args:
        elapsed_ms: Milliseconds since upload or since polling began
    """
    if elapsed_ms < SHORT_WAIT_COPY_MS:
        return "Your document is being processed. Status will be available shortly."
    if elapsed_ms < LONG_WAIT_COPY_MS:
        return "Document verification is in progress. Please wait a bit longer."
    return (
        "Document verification is taking longer than usual. "
        "Please continue waiting or try refreshing the page."
    )
