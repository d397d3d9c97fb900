"""
Polling session state models.

A PollingSession tracks one attempt-series for a single document until it
reaches a terminal status. PollingConfig is captured as an immutable
snapshot when the session starts.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, computed_field, field_validator

from .verification import ErrorKind


class SessionStatus(str, Enum):
    active = "active"
    completed = "completed"
    failed = "failed"
    timeout = "timeout"
    cancelled = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not SessionStatus.active


class PollingConfig(BaseModel):
    """
    Immutable polling configuration snapshot (all durations in milliseconds).

    Attributes:
        initial_delay_ms: Delay before the very first attempt
        retry_intervals_ms: Ordered explicit backoff steps
        max_retries: Hard cap on retry attempts
        backoff_multiplier: Growth factor once retry_intervals_ms is exhausted
        timeout_ms: Wall-clock budget for the whole session
        jitter_max_ms: Upper bound of uniform random jitter added to every delay
    """

    model_config = ConfigDict(frozen=True)

    initial_delay_ms: int = Field(default=1000, ge=0)
    retry_intervals_ms: tuple[int, ...] = Field(default=(2000, 5000, 10000, 30000), min_length=1)
    max_retries: int = Field(default=10, ge=0)
    backoff_multiplier: float = Field(default=1.5, ge=1.0)
    timeout_ms: int = Field(default=300000, gt=0)
    jitter_max_ms: int = Field(default=1000, ge=0)

    @field_validator("retry_intervals_ms")
    @classmethod
    def _intervals_non_negative(cls, value: tuple[int, ...]) -> tuple[int, ...]:
        if any(interval < 0 for interval in value):
            raise ValueError("retry intervals must be non-negative")
        return value

    def with_overrides(self, **overrides: Any) -> PollingConfig:
        """
        Return a new snapshot with the given fields replaced.

        Args:
            **overrides: PollingConfig field values

        Returns:
            Validated PollingConfig
        """
        return PollingConfig.model_validate({**self.model_dump(), **overrides})


class RetryPolicy(BaseModel):
    """
    Thresholds for 404 and rate-limit handling.

    Attributes:
        processing_window_ms: A 404 within this long after upload means "still processing"
        stale_not_found_retry_limit: Retries allowed for a 404 after the processing window
        rate_limited_min_delay_ms: Minimum delay before retrying after a 429
    """

    model_config = ConfigDict(frozen=True)

    processing_window_ms: int = Field(default=300000, ge=0)
    stale_not_found_retry_limit: int = Field(default=3, ge=0)
    rate_limited_min_delay_ms: int = Field(default=30000, ge=0)


class LastError(BaseModel):
    """Most recent non-success outcome of a session."""

    status_code: int | None = None
    message: str
    kind: ErrorKind | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class PollingSession(BaseModel):
    """
    State of one polling attempt-series for a document.

    Attributes:
        document_id: Stable key of the polled document
        document_type: Free-text classification used for logging and UX copy
        session_id: Unique per attempt-series
        status: Current session status
        start_time: Monotonic start timestamp (seconds), basis of the timeout budget
        started_at: Wall-clock start timestamp
        ended_at: Wall-clock end timestamp, set on the terminal transition
        successful_requests: Requests that returned a verification result
        failed_requests: Requests that failed for any reason
        current_retry_count: Retries scheduled so far
        last_request_time: Monotonic timestamp of the last request sent
        last_response_time: Monotonic timestamp of the last response or error
        last_error: Most recent failure, if any
        config: PollingConfig snapshot captured at start
    """

    document_id: str
    document_type: str = "unknown"
    session_id: str
    status: SessionStatus = SessionStatus.active
    start_time: float
    started_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    ended_at: datetime | None = None
    successful_requests: int = Field(default=0, ge=0)
    failed_requests: int = Field(default=0, ge=0)
    current_retry_count: int = Field(default=0, ge=0)
    last_request_time: float | None = None
    last_response_time: float | None = None
    last_error: LastError | None = None
    config: PollingConfig = Field(default_factory=PollingConfig)

    _timer: Any = PrivateAttr(default=None)  # ScheduledCall owned by this session

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_requests(self) -> int:
        return self.successful_requests + self.failed_requests

    @property
    def is_active(self) -> bool:
        return self.status is SessionStatus.active

    @property
    def has_scheduled_timer(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def elapsed_ms(self, now: float) -> float:
        """
        Milliseconds elapsed since start_time.

        Args:
            now: Current monotonic time in seconds (same clock as start_time)
        """
        return (now - self.start_time) * 1000

    def has_timed_out(self, now: float) -> bool:
        return self.elapsed_ms(now) >= self.config.timeout_ms

    def has_exceeded_max_retries(self) -> bool:
        return self.current_retry_count >= self.config.max_retries

    def duration_ms(self) -> float:
        """Wall-clock duration, up to now for sessions that have not ended."""
        end = self.ended_at or datetime.now(UTC)
        return (end - self.started_at).total_seconds() * 1000


class PollingStateUpdate(BaseModel):
    """Notification emitted when a session starts or reaches a terminal status."""

    session_id: str
    document_id: str
    status: SessionStatus
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    request_count: int | None = None
    error_message: str | None = None
    response_time_ms: float | None = None


class PollingStatistics(BaseModel):
    """Aggregate statistics over the sessions held by a store."""

    total_sessions: int = 0
    active_sessions: int = 0
    completed_sessions: int = 0
    failed_sessions: int = 0
    timeout_sessions: int = 0
    cancelled_sessions: int = 0
    average_session_duration_ms: int = 0
    total_requests: int = 0
    success_rate: float = 0.0


class PollingStatusReport(BaseModel):
    """Point-in-time view of a document's polling state."""

    is_active: bool
    session: PollingSession | None = None
    duration_ms: float | None = None
    request_count: int = 0
