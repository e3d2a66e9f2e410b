"""bucketstore API error handling.

Every failure leaves the API as the same JSON envelope
({code, message, details, request_id}) with the request id also in the
X-Request-Id header. error_response() renders it; the handlers below map
exceptions onto it.

Global exception handlers:
- StoreHttpError: Route-level client errors (missing file, missing key)
- InvalidPathError: Bucket or key escapes its root -> 400
- StorageIOError: Filesystem failure -> 500
- HTTPException: FastAPI/Starlette HTTP exceptions
- RequestValidationError: Pydantic validation errors
- Exception: Catch-all for unhandled exceptions (fail closed, no stack traces)
"""

import logging
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException

from bucketstore.api.middleware.request_id import REQUEST_ID_HEADER, request_id_of
from bucketstore.observability.tracing import get_current_trace_id
from bucketstore.storage.errors import InvalidPathError, StorageIOError

logger = logging.getLogger(__name__)

# Statuses that reach http_exception_handler: multipart parse failures,
# unknown routes or static objects, and wrong methods.
_STATUS_CODES: dict[int, str] = {
    400: "BAD_REQUEST",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
}


class ErrorResponse(BaseModel):
    """Error envelope schema."""

    code: str
    message: str
    details: dict[str, Any] | None = None
    request_id: str | None = None


def error_response(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    """Render the error envelope, echoing the request id in body and header."""
    request_id = request_id_of(request)
    body = ErrorResponse(code=code, message=message, details=details, request_id=request_id)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(),
        headers={REQUEST_ID_HEADER: request_id},
    )


class StoreHttpError(Exception):
    """Application-level HTTP error with structured error envelope.

    Attributes:
        status_code: HTTP status code (e.g., 400, 500).
        code: Machine-readable error code (e.g., "MISSING_FILE").
        message: Human-readable error message.
        details: Optional dict with additional error context.
    """

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details


async def store_http_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """FastAPI exception handler for StoreHttpError."""
    assert isinstance(exc, StoreHttpError)

    return error_response(request, exc.status_code, exc.code, exc.message, exc.details)


async def invalid_path_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Map InvalidPathError to a 400 client error.

    Only the bucket is echoed back; the rejected key is not.
    """
    assert isinstance(exc, InvalidPathError)

    logger.info(
        "Rejected path: %s bucket=%s",
        exc.message,
        exc.bucket,
        extra={"request_id": request_id_of(request)},
    )

    return error_response(
        request,
        400,
        "INVALID_PATH",
        exc.message,
        details={"bucket": exc.bucket} if exc.bucket else None,
    )


async def storage_io_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Map StorageIOError to a 500 server error without leaking OS details."""
    assert isinstance(exc, StorageIOError)

    logger.error(
        "Storage I/O failure: %s",
        exc,
        exc_info=exc.cause,
        extra={
            "request_id": request_id_of(request),
            "trace_id": get_current_trace_id(),
        },
    )

    return error_response(request, 500, "STORAGE_ERROR", "A storage error occurred")


async def http_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """FastAPI exception handler for HTTPException.

    Maps standard HTTP exceptions, including router 404 and 405, to the
    error envelope.
    """
    assert isinstance(exc, HTTPException)

    code = _STATUS_CODES.get(exc.status_code, "HTTP_ERROR")
    message = str(exc.detail) if exc.detail else f"HTTP {exc.status_code}"

    return error_response(request, exc.status_code, code, message)


async def request_validation_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """FastAPI exception handler for RequestValidationError.

    Does not expose raw validation internals.
    """
    assert isinstance(exc, RequestValidationError)

    safe_details: list[dict[str, Any]] = []

    for error in exc.errors():
        loc = error.get("loc", ())
        safe_loc = [str(part) for part in loc if part not in ("body", "query", "path")]
        safe_details.append(
            {
                "field": ".".join(safe_loc) if safe_loc else "request",
                "message": error.get("msg", "Validation error"),
            }
        )

    return error_response(
        request,
        422,
        "REQUEST_VALIDATION_FAILED",
        "Request validation failed",
        details={"errors": safe_details} if safe_details else None,
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler for unhandled exceptions.

    Fails closed: returns 500 with safe generic message and logs the exception.
    """
    request_id = request_id_of(request)

    logger.exception(
        "Unhandled exception: %s",
        type(exc).__name__,
        extra={"request_id": request_id, "trace_id": get_current_trace_id()},
    )

    return error_response(request, 500, "INTERNAL_ERROR", "An internal error occurred")
