"""
API request and response schemas.

These Pydantic models define the contract between the API and clients.
"""

from pydantic import BaseModel, Field

from ..models.lifecycle import ComponentContext
from ..models.session import PollingSession, SessionStatus
from ..models.verification import ErrorKind
from ..services.classification import describe_progress


class ErrorResponse(BaseModel):
    """
    Standardized error response format.

    Attributes:
        error: Human-readable error message
        code: Machine-readable error code (SNAKE_CASE)
        details: Optional additional context
    """

    error: str = Field(description="Human-readable error message")
    code: str = Field(description="Machine-readable error code")
    details: dict[str, str] | None = Field(
        default=None, description="Optional additional error context"
    )


class HealthCheckResponse(BaseModel):
    """
    Health check endpoint response.

    Attributes:
        status: Current service status
        version: API version
        active_sessions: Number of documents currently being polled
    """

    status: str = Field(description="Service status", examples=["healthy"])
    version: str = Field(description="API version", examples=["0.1.0"])
    active_sessions: int = Field(default=0, description="Active polling sessions")


class TrackedDocumentResponse(BaseModel):
    document_id: str = Field(description="Document GUID")
    tracked: bool = Field(description="Whether the document is tracked as uploaded")


class RegisterComponentRequest(BaseModel):
    """
    Component registration request.

    Attributes:
        component_id: Owner identifier
        document_ids: Documents owned by the component
        route: Route the component lives on (defaults to the current route)
    """

    component_id: str = Field(min_length=1, description="Component identifier")
    document_ids: list[str] = Field(default_factory=list, description="Owned document IDs")
    route: str | None = Field(default=None, description="Component route", examples=["/upload"])


class ComponentResponse(BaseModel):
    component_id: str
    document_ids: list[str]
    route: str

    @classmethod
    def from_context(cls, context: ComponentContext) -> "ComponentResponse":
        return cls(
            component_id=context.component_id,
            document_ids=list(context.document_ids),
            route=context.route,
        )


class ComponentListResponse(BaseModel):
    components: list[ComponentResponse]
    current_route: str


class PollingConfigOverrides(BaseModel):
    """Optional per-session overrides of the default polling configuration."""

    initial_delay_ms: int | None = Field(default=None, ge=0)
    retry_intervals_ms: list[int] | None = Field(default=None, min_length=1)
    max_retries: int | None = Field(default=None, ge=0)
    backoff_multiplier: float | None = Field(default=None, ge=1.0)
    timeout_ms: int | None = Field(default=None, gt=0)
    jitter_max_ms: int | None = Field(default=None, ge=0)


class BeginPollingRequest(BaseModel):
    """
    Request to start polling a document on behalf of a component.

    Attributes:
        document_id: Document GUID, tracked as uploaded
        document_type: Free-text classification
        config: Optional polling configuration overrides
    """

    document_id: str = Field(description="Document GUID")
    document_type: str = Field(default="unknown", examples=["passport"])
    config: PollingConfigOverrides | None = None


class PollingStartedResponse(BaseModel):
    component_id: str
    document_id: str
    session_id: str


class NavigationRequest(BaseModel):
    route: str = Field(min_length=1, examples=["/review"])


class NavigationResponse(BaseModel):
    route: str
    unregistered_components: list[str]


class VisibilityRequest(BaseModel):
    hidden: bool


class VisibilityResponse(BaseModel):
    background_mode: bool


class CleanupStaleRequest(BaseModel):
    max_age_ms: int | None = Field(default=None, gt=0)


class CleanupResponse(BaseModel):
    """Number of sessions or components affected by a cleanup operation."""

    affected: int


class LastErrorResponse(BaseModel):
    status_code: int | None
    message: str
    kind: ErrorKind | None


class SessionResponse(BaseModel):
    """
    Polling session details.

    Attributes:
        document_id: Polled document
        session_id: Session identifier
        status: Current session status
        total_requests: Requests sent so far
        duration_ms: Session duration so far, or total once ended
        progress_message: User-facing progress copy for active sessions
    """

    document_id: str
    document_type: str
    session_id: str
    status: SessionStatus
    total_requests: int
    successful_requests: int
    failed_requests: int
    current_retry_count: int
    max_retries: int
    duration_ms: int
    last_error: LastErrorResponse | None = None
    progress_message: str | None = None

    @classmethod
    def from_session(cls, session: PollingSession) -> "SessionResponse":
        duration_ms = round(session.duration_ms())
        last_error = None
        if session.last_error is not None:
            last_error = LastErrorResponse(
                status_code=session.last_error.status_code,
                message=session.last_error.message,
                kind=session.last_error.kind,
            )
        return cls(
            document_id=session.document_id,
            document_type=session.document_type,
            session_id=session.session_id,
            status=session.status,
            total_requests=session.total_requests,
            successful_requests=session.successful_requests,
            failed_requests=session.failed_requests,
            current_retry_count=session.current_retry_count,
            max_retries=session.config.max_retries,
            duration_ms=duration_ms,
            last_error=last_error,
            progress_message=describe_progress(duration_ms) if session.is_active else None,
        )


class SessionListResponse(BaseModel):
    sessions: list[SessionResponse]
    active_documents: list[str]


class CancelResponse(BaseModel):
    document_id: str
    cancelled: bool
