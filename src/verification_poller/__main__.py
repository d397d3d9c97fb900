"""
Application entry point.

Run with: python -m verification_poller
"""

import uvicorn

from .config import get_settings
from .utils.logging_setup import configure_logging


def main() -> None:
    """Start the FastAPI application server."""
    settings = get_settings()
    configure_logging(settings)

    uvicorn.run(
        "verification_poller.api.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_level=settings.log_level.lower(),
        log_config=None,
    )


if __name__ == "__main__":
    main()
