"""
Control API application.

Builds the FastAPI app that exposes polling sessions, components and
lifecycle events, and runs periodic session maintenance.
"""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..config import get_settings
from .dependencies import get_coordinator, get_poller, shutdown_dependencies
from .middleware import error_handler_middleware
from .routes import components, documents, health, lifecycle, polling

logger = logging.getLogger(__name__)

# Background task control
_maintenance_task: asyncio.Task | None = None
_shutdown_event: asyncio.Event | None = None


def run_maintenance(app: FastAPI) -> tuple[int, int]:
    """
    Purge expired terminal sessions and unregister stale components.

    Args:
        app: Application whose dependency overrides, if any, supply the services

    Returns:
        (sessions purged, components unregistered)
    """
    settings = get_settings()
    poller = app.dependency_overrides.get(get_poller, get_poller)()
    coordinator = app.dependency_overrides.get(get_coordinator, get_coordinator)()

    purged = poller.store.purge_expired()
    stale = coordinator.cleanup_stale_components(settings.stale_component_max_age_ms)
    return purged, stale


async def maintenance_task(app: FastAPI) -> None:
    """
    Background task to periodically clean up expired sessions and stale components.

    Runs every maintenance_interval seconds (configured in settings).
    """
    settings = get_settings()

    while not _shutdown_event.is_set():
        try:
            # Wait for maintenance interval or shutdown signal
            await asyncio.wait_for(
                _shutdown_event.wait(),
                timeout=settings.maintenance_interval,
            )
            # Shutdown requested
            break
        except TimeoutError:
            purged, stale = run_maintenance(app)
            if purged or stale:
                logger.info(
                    f"Maintenance purged {purged} expired sessions "
                    f"and {stale} stale components"
                )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Run session maintenance for the lifetime of the app.

    Starts the maintenance task on startup; on shutdown stops it, cancels all
    polling and closes the status API client.
    """
    global _maintenance_task, _shutdown_event

    # Startup
    _shutdown_event = asyncio.Event()
    _maintenance_task = asyncio.create_task(maintenance_task(app))
    logger.info(f"Verification poller {__version__} started")

    yield

    # Shutdown
    if _shutdown_event:
        _shutdown_event.set()
    if _maintenance_task:
        await _maintenance_task
    await shutdown_dependencies()
    logger.info("Verification poller stopped")


def create_app() -> FastAPI:
    """
    Build the control API.

    Returns:
        FastAPI app with middleware and all routers attached

    Configuration:
        - CORS middleware for cross-origin requests
        - Error handling middleware for domain exceptions
        - Background maintenance task
        - Health check endpoint
        - Interactive API docs at /docs and /redoc
    """
    app = FastAPI(
        title="Verification Poller API",
        description="Monitoring and control API for document verification status polling",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Error handling middleware
    app.middleware("http")(error_handler_middleware)

    # Register routes
    app.include_router(health.router)
    app.include_router(documents.router)
    app.include_router(components.router)
    app.include_router(lifecycle.router)
    app.include_router(polling.router)

    return app
