"""
API Error Handling for AuthCore
Provides standardized error responses and logging for authorization core errors
"""

import logging
import time
import uuid
from datetime import datetime
from typing import List, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..services.authorization.exceptions import (
    AccessDeniedError,
    AuthorizationCoreError,
    InvalidRequestError,
)
from ..utils.logging_security import sanitize_for_log, sanitize_path_for_log

logger = logging.getLogger(__name__)


class ErrorDetail(BaseModel):
    """Detailed error information"""

    field: Optional[str] = None
    message: str
    type: Optional[str] = None
    code: Optional[str] = None


class APIErrorResponse(BaseModel):
    """Standardized API error response"""

    success: bool = False
    error: str
    message: str
    details: List[ErrorDetail] = Field(default_factory=list)
    error_id: str = Field(default_factory=lambda: str(uuid.uuid4())[:8])
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    path: Optional[str] = None
    method: Optional[str] = None


class ErrorType:
    """Standard error types for consistent handling"""

    VALIDATION_ERROR = "validation_error"
    AUTHENTICATION_ERROR = "authentication_error"
    AUTHORIZATION_ERROR = "authorization_error"
    NOT_FOUND_ERROR = "not_found_error"
    INTERNAL_ERROR = "internal_error"


STATUS_ERROR_TYPES = {
    400: ErrorType.VALIDATION_ERROR,
    401: ErrorType.AUTHENTICATION_ERROR,
    403: ErrorType.AUTHORIZATION_ERROR,
    404: ErrorType.NOT_FOUND_ERROR,
    500: ErrorType.INTERNAL_ERROR,
}

# User-facing messages; 401/403 never say which rule denied the request
USER_MESSAGES = {
    ErrorType.VALIDATION_ERROR: "Invalid request data provided",
    ErrorType.AUTHENTICATION_ERROR: "Authentication required",
    ErrorType.AUTHORIZATION_ERROR: "Access denied",
    ErrorType.NOT_FOUND_ERROR: "Requested resource not found",
    ErrorType.INTERNAL_ERROR: "Internal server error occurred",
}


def build_error_response(
    status_code: int,
    path: Optional[str] = None,
    method: Optional[str] = None,
    details: Optional[List[ErrorDetail]] = None,
    headers: Optional[dict] = None,
) -> JSONResponse:
    """
    Create a standardized JSON error response.

    Args:
        status_code: HTTP status code
        path: Request path
        method: Request method
        details: Optional error details (never used for 401/403)
        headers: Optional extra response headers

    Returns:
        JSONResponse carrying an APIErrorResponse body
    """
    error_type = STATUS_ERROR_TYPES.get(status_code, ErrorType.INTERNAL_ERROR)
    error_response = APIErrorResponse(
        error=error_type,
        message=USER_MESSAGES[error_type],
        details=details or [],
        path=path,
        method=method,
    )
    return JSONResponse(
        status_code=status_code,
        content=error_response.model_dump(mode="json"),
        headers=headers,
    )


async def authorization_core_exception_handler(request: Request, exc: AuthorizationCoreError) -> JSONResponse:
    """Map AuthorizationCoreError kinds to their HTTP status"""
    details: List[ErrorDetail] = []

    if isinstance(exc, AccessDeniedError):
        # Reason stays server-side
        logger.info(
            f"{exc.kind} on {request.method} {sanitize_path_for_log(request.url.path)} "
            f"(reason: {exc.deny_reason.value})"
        )
    else:
        field = exc.field if isinstance(exc, InvalidRequestError) else None
        details.append(ErrorDetail(field=field, message=exc.message, type=exc.kind))
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            f"HTTP {exc.status_code} {exc.kind} on {request.method} "
            f"{sanitize_path_for_log(request.url.path)}: {sanitize_for_log(exc.message, allow_special=True)}"
        )

    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
    return build_error_response(
        exc.status_code,
        path=request.url.path,
        method=request.method,
        details=details,
        headers=headers,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed query/path/body parameters are reported as 400"""
    details = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path"))
        details.append(
            ErrorDetail(
                field=location or None,
                message=str(error.get("msg", "Invalid value")),
                type=str(error.get("type", "value_error")),
            )
        )

    logger.warning(
        f"Validation failed on {request.method} {sanitize_path_for_log(request.url.path)}: {len(details)} error(s)"
    )
    return build_error_response(
        status.HTTP_400_BAD_REQUEST,
        path=request.url.path,
        method=request.method,
        details=details,
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler; never exposes internal details."""
    error_id = f"{int(time.time())}"
    logger.error(
        f"Unhandled exception ({error_id}) on {request.method} {sanitize_path_for_log(request.url.path)}: {exc}",
        exc_info=True,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error", "error_id": error_id},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the AuthCore exception handlers on an application"""
    app.add_exception_handler(AuthorizationCoreError, authorization_core_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)
