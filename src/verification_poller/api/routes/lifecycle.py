"""
Client lifecycle event endpoints.

Navigation, visibility and unload events from the client trigger the
matching polling cleanup.
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from ...config import Settings, get_settings
from ...models.lifecycle import LifecycleStatistics
from ...services.lifecycle import LifecycleCoordinator
from ...services.poller import StatusPoller
from ..dependencies import get_coordinator, get_poller
from ..schemas import (
    CleanupResponse,
    CleanupStaleRequest,
    NavigationRequest,
    NavigationResponse,
    VisibilityRequest,
    VisibilityResponse,
)

router = APIRouter(prefix="/api/lifecycle", tags=["lifecycle"])


@router.post("/navigation", response_model=NavigationResponse)
async def navigate(
    request: NavigationRequest,
    coordinator: Annotated[LifecycleCoordinator, Depends(get_coordinator)],
) -> NavigationResponse:
    """
    Report a route change.

    Components on routes other than the previous and the new one are
    unregistered, then orphaned sessions are cancelled.
    """
    unregistered = coordinator.handle_route_change(request.route)
    return NavigationResponse(route=request.route, unregistered_components=unregistered)


@router.post("/visibility", response_model=VisibilityResponse)
async def change_visibility(
    request: VisibilityRequest,
    coordinator: Annotated[LifecycleCoordinator, Depends(get_coordinator)],
    poller: Annotated[StatusPoller, Depends(get_poller)],
) -> VisibilityResponse:
    coordinator.handle_visibility_change(request.hidden)
    return VisibilityResponse(background_mode=poller.background_mode)


@router.post("/unload", response_model=CleanupResponse)
async def unload(
    coordinator: Annotated[LifecycleCoordinator, Depends(get_coordinator)],
    poller: Annotated[StatusPoller, Depends(get_poller)],
) -> CleanupResponse:
    """Cancel all polling and forget every component."""
    active = len(poller.get_active_polling_documents())
    coordinator.handle_page_unload()
    return CleanupResponse(affected=active)


@router.post("/cleanup-stale", response_model=CleanupResponse)
async def cleanup_stale(
    request: CleanupStaleRequest,
    coordinator: Annotated[LifecycleCoordinator, Depends(get_coordinator)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> CleanupResponse:
    max_age_ms = request.max_age_ms or settings.stale_component_max_age_ms
    return CleanupResponse(affected=coordinator.cleanup_stale_components(max_age_ms))


@router.get("/statistics", response_model=LifecycleStatistics)
async def lifecycle_statistics(
    coordinator: Annotated[LifecycleCoordinator, Depends(get_coordinator)],
) -> LifecycleStatistics:
    return coordinator.lifecycle_statistics()
