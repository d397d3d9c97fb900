"""
Polling session monitoring endpoints.
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from ...models.session import PollingStatistics
from ...services.poller import StatusPoller
from ...utils.exceptions import SessionNotFoundError
from ..dependencies import get_poller
from ..schemas import CancelResponse, SessionListResponse, SessionResponse

router = APIRouter(prefix="/api/polling", tags=["polling"])


@router.get("/sessions", response_model=SessionListResponse)
async def list_sessions(
    poller: Annotated[StatusPoller, Depends(get_poller)],
) -> SessionListResponse:
    """
    List every session held by the store, including recently ended ones.
    """
    return SessionListResponse(
        sessions=[SessionResponse.from_session(s) for s in poller.store.all_sessions()],
        active_documents=poller.get_active_polling_documents(),
    )


@router.get("/sessions/{document_id}", response_model=SessionResponse)
async def get_session(
    document_id: str,
    poller: Annotated[StatusPoller, Depends(get_poller)],
) -> SessionResponse:
    """
    Get the polling session of a document.

    Raises:
        404: No session for the document (never started, or already removed)
    """
    session = poller.get_polling_session(document_id)
    if session is None:
        raise SessionNotFoundError(document_id)
    return SessionResponse.from_session(session)


@router.delete("/sessions/{document_id}", response_model=CancelResponse)
async def cancel_session(
    document_id: str,
    poller: Annotated[StatusPoller, Depends(get_poller)],
) -> CancelResponse:
    """
    Cancel polling for a document.

    Returns cancelled=false when the session had already ended.

    Raises:
        404: No session for the document
    """
    if poller.get_polling_session(document_id) is None:
        raise SessionNotFoundError(document_id)
    return CancelResponse(document_id=document_id, cancelled=poller.cancel(document_id))


@router.get("/statistics", response_model=PollingStatistics)
async def polling_statistics(
    poller: Annotated[StatusPoller, Depends(get_poller)],
) -> PollingStatistics:
    return poller.get_polling_statistics()
