"""
Uploaded document tracking endpoints.

The upload flow reports successfully uploaded documents here; only tracked
documents can be polled.
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from ...services.tracker import DocumentTracker
from ..dependencies import get_tracker
from ..schemas import TrackedDocumentResponse

router = APIRouter(prefix="/api/documents", tags=["documents"])


@router.post("/{document_id}/track", response_model=TrackedDocumentResponse)
async def track_document(
    document_id: str,
    tracker: Annotated[DocumentTracker, Depends(get_tracker)],
) -> TrackedDocumentResponse:
    """
    Mark a document as successfully uploaded.

    Raises:
        400: Document ID is not a GUID
    """
    tracker.track(document_id)
    return TrackedDocumentResponse(document_id=document_id, tracked=True)


@router.delete("/{document_id}/track", response_model=TrackedDocumentResponse)
async def untrack_document(
    document_id: str,
    tracker: Annotated[DocumentTracker, Depends(get_tracker)],
) -> TrackedDocumentResponse:
    tracker.untrack(document_id)
    return TrackedDocumentResponse(document_id=document_id, tracked=False)
