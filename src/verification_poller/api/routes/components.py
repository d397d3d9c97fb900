"""
Component ownership endpoints.

Components register the documents they display; polling stops for a
document once no registered component owns it.
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from ...services.lifecycle import LifecycleCoordinator
from ...services.poller import StatusPoller
from ...utils.exceptions import ComponentNotFoundError
from ..dependencies import get_coordinator, get_poller
from ..schemas import (
    BeginPollingRequest,
    ComponentListResponse,
    ComponentResponse,
    PollingStartedResponse,
    RegisterComponentRequest,
)

router = APIRouter(prefix="/api/components", tags=["components"])


@router.post("", response_model=ComponentResponse)
async def register_component(
    request: RegisterComponentRequest,
    coordinator: Annotated[LifecycleCoordinator, Depends(get_coordinator)],
) -> ComponentResponse:
    """
    Register a component and the documents it owns.

    Example:
        POST /api/components
        Body: {"component_id": "upload-step", "document_ids": [], "route": "/upload"}
    """
    context = coordinator.register_component(
        request.component_id, request.document_ids, request.route
    )
    return ComponentResponse.from_context(context)


@router.get("", response_model=ComponentListResponse)
async def list_components(
    coordinator: Annotated[LifecycleCoordinator, Depends(get_coordinator)],
) -> ComponentListResponse:
    return ComponentListResponse(
        components=[
            ComponentResponse.from_context(context)
            for context in coordinator.get_registered_components()
        ],
        current_route=coordinator.current_route,
    )


@router.delete("/{component_id}", response_model=ComponentResponse)
async def unregister_component(
    component_id: str,
    coordinator: Annotated[LifecycleCoordinator, Depends(get_coordinator)],
) -> ComponentResponse:
    """
    Unregister a component, cancelling polling for documents only it owned.

    Raises:
        404: Component not registered
    """
    context = coordinator.get_component_context(component_id)
    if context is None:
        raise ComponentNotFoundError(component_id)
    coordinator.unregister_component(component_id)
    return ComponentResponse.from_context(context)


@router.post("/{component_id}/documents", response_model=PollingStartedResponse)
async def begin_polling(
    component_id: str,
    request: BeginPollingRequest,
    coordinator: Annotated[LifecycleCoordinator, Depends(get_coordinator)],
    poller: Annotated[StatusPoller, Depends(get_poller)],
) -> PollingStartedResponse:
    """
    Add a document to a component and start polling its verification status.

    Starting twice for the same document joins the running session.

    Raises:
        400: Document ID malformed or not tracked as uploaded
        404: Component not registered
    """
    config = None
    if request.config is not None:
        overrides = request.config.model_dump(exclude_none=True)
        if overrides:
            config = poller.default_config.with_overrides(**overrides)

    handle = coordinator.begin_polling(
        component_id, request.document_id, request.document_type, config
    )
    return PollingStartedResponse(
        component_id=component_id,
        document_id=handle.document_id,
        session_id=handle.session_id,
    )


@router.delete("/{component_id}/documents/{document_id}", response_model=ComponentResponse)
async def remove_document(
    component_id: str,
    document_id: str,
    coordinator: Annotated[LifecycleCoordinator, Depends(get_coordinator)],
) -> ComponentResponse:
    """
    Remove a document from a component.

    Raises:
        404: Component not registered
    """
    if not coordinator.is_component_registered(component_id):
        raise ComponentNotFoundError(component_id)
    coordinator.remove_document(component_id, document_id)
    return ComponentResponse.from_context(coordinator.get_component_context(component_id))
