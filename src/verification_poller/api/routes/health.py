"""
Health check endpoint.

Provides a simple endpoint to verify the API is running.
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from ... import __version__
from ...services.poller import StatusPoller
from ..dependencies import get_poller
from ..schemas import HealthCheckResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(
    poller: Annotated[StatusPoller, Depends(get_poller)],
) -> HealthCheckResponse:
    """
    Health check endpoint.

    Returns:
        Service status, version and number of active polling sessions

    Example:
        GET /health
        Response: {"status": "healthy", "version": "0.1.0", "active_sessions": 2}
    """
    return HealthCheckResponse(
        status="healthy",
        version=__version__,
        active_sessions=len(poller.get_active_polling_documents()),
    )
