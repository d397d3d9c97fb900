"""
FastAPI middleware for error handling.

Converts domain exceptions into appropriate HTTP responses.
"""

import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse

from ..utils.exceptions import (
    AlreadyActiveError,
    ComponentNotFoundError,
    PollerError,
    SessionNotFoundError,
    StatusRequestError,
    ValidationError,
)
from .schemas import ErrorResponse

logger = logging.getLogger(__name__)


def _error(status_code: int, e: PollerError) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=e.message, code=e.code).model_dump(),
    )


async def error_handler_middleware(request: Request, call_next):
    """
    Catch domain exceptions and convert them to HTTP error responses.

    Args:
        request: FastAPI request
        call_next: Next middleware/handler in chain

    Returns:
        Response or JSONResponse with error details

    Exception Mapping:
        - ValidationError → 400 Bad Request
        - SessionNotFoundError, ComponentNotFoundError → 404 Not Found
        - AlreadyActiveError → 409 Conflict
        - StatusRequestError → 502 Bad Gateway
        - Other PollerError → 500 Internal Server Error
    """
    try:
        return await call_next(request)
    except ValidationError as e:
        return _error(status.HTTP_400_BAD_REQUEST, e)
    except (SessionNotFoundError, ComponentNotFoundError) as e:
        return _error(status.HTTP_404_NOT_FOUND, e)
    except AlreadyActiveError as e:
        return _error(status.HTTP_409_CONFLICT, e)
    except StatusRequestError as e:
        return _error(status.HTTP_502_BAD_GATEWAY, e)
    except PollerError as e:
        logger.error(f"Unhandled poller error on {request.url.path}: {e.code} {e.message}")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, e)
    except Exception:
        # Unexpected errors - don't expose internals
        logger.exception(f"Unexpected error on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(
                error="An unexpected error occurred",
                code="INTERNAL_SERVER_ERROR",
            ).model_dump(),
        )
