"""
Exception handlers for the admin API.

Store and cache failures reach the caller with their message verbatim,
wrapped in the standard error envelope.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from rbac.errors import CacheError, CacheRepopulationError, RoleServiceError, StoreError

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    """Error codes for API responses."""
    VALIDATION_ERROR = "VALIDATION_ERROR"
    STORE_ERROR = "STORE_ERROR"
    CACHE_ERROR = "CACHE_ERROR"
    CACHE_STALE = "CACHE_STALE"
    ROLE_SERVICE_ERROR = "ROLE_SERVICE_ERROR"


def create_error_response(
    code: ErrorCode,
    message: str,
    status_code: int = 400,
    details: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    """Create a standardized error response."""
    return JSONResponse(
        status_code=status_code,
        content={
            "error": True,
            "code": code.value,
            "message": message,
            "details": details or {},
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    )


async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    logger.error(f"StoreError on {request.url.path}: {exc}")
    return create_error_response(ErrorCode.STORE_ERROR, str(exc), status_code=500)


async def cache_error_handler(request: Request, exc: CacheError) -> JSONResponse:
    logger.error(f"CacheError on {request.url.path}: {exc}")
    return create_error_response(ErrorCode.CACHE_ERROR, str(exc), status_code=503)


async def cache_repopulation_error_handler(
    request: Request,
    exc: CacheRepopulationError,
) -> JSONResponse:
    """The write is committed; only the cache refresh needs a retry."""
    logger.error(f"Cache left stale by {request.url.path}: {exc}")
    return create_error_response(
        ErrorCode.CACHE_STALE,
        str(exc),
        status_code=503,
        details={"result": exc.result},
    )


async def role_service_error_handler(request: Request, exc: RoleServiceError) -> JSONResponse:
    logger.error(f"RoleServiceError on {request.url.path}: {exc}")
    return create_error_response(ErrorCode.ROLE_SERVICE_ERROR, str(exc), status_code=500)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle Pydantic validation errors with readable field paths."""
    errors = []
    for error in exc.errors():
        field = " -> ".join(str(loc) for loc in error["loc"])
        errors.append(f"{field}: {error['msg']}")

    return create_error_response(
        ErrorCode.VALIDATION_ERROR,
        "Invalid request data",
        status_code=422,
        details={"errors": errors},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CacheRepopulationError, cache_repopulation_error_handler)
    app.add_exception_handler(RoleServiceError, role_service_error_handler)
    app.add_exception_handler(StoreError, store_error_handler)
    app.add_exception_handler(CacheError, cache_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
