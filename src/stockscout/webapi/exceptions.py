"""Custom exception classes and error handling for the Stock Scout API."""

from typing import Any, Dict, Optional

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from ..config.logging import get_logger
from .models.responses import ErrorResponse

logger = get_logger(__name__)


class StockScoutException(Exception):
    """Base exception for Stock Scout application."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
        request_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.request_id = request_id


class ValidationException(StockScoutException):
    """Exception for invalid client input."""

    def __init__(
        self,
        message: str = "Validation failed",
        field_errors: Optional[Dict[str, str]] = None,
        request_id: Optional[str] = None,
    ):
        super().__init__(
            message=message,
            status_code=400,
            details={"field_errors": field_errors} if field_errors else None,
            request_id=request_id,
        )


class NotFoundError(StockScoutException):
    """Exception for resource not found errors."""

    def __init__(self, message: str, request_id: Optional[str] = None):
        super().__init__(message=message, status_code=404, request_id=request_id)


class DatabaseError(StockScoutException):
    """Exception for database operation errors."""

    def __init__(self, operation: str, message: str, request_id: Optional[str] = None):
        super().__init__(
            message=message,
            status_code=500,
            details={"operation": operation},
            request_id=request_id,
        )


class ConfigurationError(StockScoutException):
    """A required setting is missing; not retryable without redeploying."""

    def __init__(self, setting: str, message: str, request_id: Optional[str] = None):
        super().__init__(
            message=message,
            status_code=500,
            details={"setting": setting},
            request_id=request_id,
        )


class ExternalServiceError(StockScoutException):
    """The external workflow could not be reached."""

    def __init__(
        self,
        service: str,
        operation: str,
        message: str,
        request_id: Optional[str] = None,
    ):
        super().__init__(
            message=f"{service} service error during {operation}: {message}",
            status_code=503,
            details={"service": service, "operation": operation},
            request_id=request_id,
        )


class UpstreamResponseError(StockScoutException):
    """The external workflow answered with an error or an unreadable body."""

    def __init__(
        self,
        service: str,
        message: str,
        upstream_status: Optional[int] = None,
        upstream_body: Optional[str] = None,
    ):
        details = {"service": service}
        if upstream_status is not None:
            details["upstream_status"] = upstream_status
        if upstream_body is not None:
            details["upstream_body"] = upstream_body[:2000]
        super().__init__(message=message, status_code=500, details=details)


class UpstreamContractError(StockScoutException):
    """The external workflow returned a payload of the wrong shape."""

    def __init__(self, service: str, field: str, message: str):
        super().__init__(
            message=message,
            status_code=502,
            details={"service": service, "field": field},
        )


class WebhookTimeoutError(StockScoutException):
    """The request to the external workflow was aborted on timeout."""

    def __init__(self, service: str, timeout_seconds: float):
        super().__init__(
            message=f"{service} request timed out after {timeout_seconds:g} seconds",
            status_code=504,
            details={"service": service, "timeout_seconds": timeout_seconds},
        )
        self.timeout_seconds = timeout_seconds


async def stockscout_exception_handler(
    request: Request, exc: StockScoutException
) -> JSONResponse:
    """Handle Stock Scout custom exceptions."""
    request_id = getattr(request.state, "request_id", None)

    logger.error(
        "Stock Scout exception occurred",
        exception_type=type(exc).__name__,
        message=exc.message,
        status_code=exc.status_code,
        details=exc.details,
        request_id=request_id,
        path=request.url.path,
        method=request.method,
    )

    error_response = ErrorResponse(
        error=exc.message,
        error_type=type(exc).__name__,
        details=exc.details or None,
        request_id=request_id,
    )

    return JSONResponse(status_code=exc.status_code, content=error_response.to_content())


async def validation_exception_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    """Handle Pydantic and request validation exceptions."""
    request_id = getattr(request.state, "request_id", None)

    field_errors = {}
    for error in exc.errors():
        field_path = ".".join(str(loc) for loc in error["loc"])
        field_errors[field_path] = error["msg"]

    logger.warning(
        "Validation error occurred",
        field_errors=field_errors,
        request_id=request_id,
        path=request.url.path,
        method=request.method,
    )

    error_response = ErrorResponse(
        error="Request validation failed",
        error_type="ValidationError",
        details={"field_errors": field_errors},
        request_id=request_id,
    )

    return JSONResponse(status_code=422, content=error_response.to_content())


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle FastAPI HTTP exceptions."""
    request_id = getattr(request.state, "request_id", None)

    logger.warning(
        "HTTP exception occurred",
        status_code=exc.status_code,
        detail=exc.detail,
        request_id=request_id,
        path=request.url.path,
    )

    error_response = ErrorResponse(
        error=str(exc.detail), error_type="HTTPException", request_id=request_id
    )

    return JSONResponse(status_code=exc.status_code, content=error_response.to_content())


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    request_id = getattr(request.state, "request_id", None)

    logger.error(
        "Unexpected exception occurred",
        exception_type=type(exc).__name__,
        message=str(exc),
        request_id=request_id,
        path=request.url.path,
        method=request.method,
        exc_info=True,
    )

    # Don't expose internal error details
    error_response = ErrorResponse(
        error="An unexpected error occurred",
        error_type="InternalServerError",
        request_id=request_id,
    )

    return JSONResponse(status_code=500, content=error_response.to_content())


def setup_exception_handlers(app):
    """Register exception handlers with FastAPI app."""
    app.add_exception_handler(StockScoutException, stockscout_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ValidationError, validation_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    logger.info("Exception handlers registered")
