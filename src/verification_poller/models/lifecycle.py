"""Component ownership models used by the lifecycle coordinator."""

from pydantic import BaseModel, Field


class ComponentContext(BaseModel):
    """
    Documents owned by one UI component.

    Attributes:
        component_id: Owner identifier
        document_ids: Documents the component is polling, in insertion order
        route: Route the component was registered on
        registration_time: Monotonic registration timestamp (seconds)
    """

    component_id: str
    document_ids: list[str] = Field(default_factory=list)
    route: str
    registration_time: float


class OldestComponent(BaseModel):
    component_id: str
    age_ms: int
    document_count: int


class LifecycleStatistics(BaseModel):
    total_components: int = 0
    total_tracked_documents: int = 0
    routes_with_polling: int = 0
    average_component_age_ms: int = 0
    oldest_component: OldestComponent | None = None
