"""
Monitoring and control API for verification status polling.

Main exports:
    create_app: Application factory used by uvicorn
    run_maintenance: One purge pass over expired sessions and stale components
    ErrorResponse: JSON body returned for domain errors
"""

from .app import create_app, run_maintenance
from .schemas import ErrorResponse, SessionResponse

__all__ = ["create_app", "run_maintenance", "ErrorResponse", "SessionResponse"]
