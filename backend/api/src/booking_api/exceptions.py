"""FastAPI exception handlers for converting BookingError to HTTP responses.

Every ErrorCode belongs to an ErrorCategory; the category decides the status:

- 400 Bad Request: invalid input
- 401 Unauthorized: anonymous caller on a customer path
- 403 Forbidden: ownership or role mismatch
- 404 Not Found: missing resource
- 409 Conflict: overlapping period, blocked dates, closed period
- 500 Internal Server Error: state violations (retryable)
- 502 Bad Gateway: payment gateway failures
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_401_UNAUTHORIZED,
    HTTP_403_FORBIDDEN,
    HTTP_404_NOT_FOUND,
    HTTP_409_CONFLICT,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_502_BAD_GATEWAY,
)

from booking_engine.models import BookingError, ErrorCategory, ErrorCode
from booking_engine.models.errors import ERROR_CATEGORIES
from booking_engine.services.stripe_service import StripeServiceError
from booking_engine.utils.logging import get_logger

logger = get_logger(__name__)

CATEGORY_TO_HTTP_STATUS: dict[ErrorCategory, int] = {
    ErrorCategory.INVALID_INPUT: HTTP_400_BAD_REQUEST,
    ErrorCategory.UNAUTHENTICATED: HTTP_401_UNAUTHORIZED,
    ErrorCategory.FORBIDDEN: HTTP_403_FORBIDDEN,
    ErrorCategory.NOT_FOUND: HTTP_404_NOT_FOUND,
    ErrorCategory.CONFLICT: HTTP_409_CONFLICT,
    ErrorCategory.STATE_VIOLATION: HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCategory.GATEWAY: HTTP_502_BAD_GATEWAY,
}


def get_http_status_for_error(code: ErrorCode) -> int:
    """Get the HTTP status for an ErrorCode via its category."""
    return CATEGORY_TO_HTTP_STATUS[ERROR_CATEGORIES[code]]


async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    """Convert a BookingError to a ToolError JSON body."""
    status_code = CATEGORY_TO_HTTP_STATUS[exc.category]
    if status_code >= HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.code.value)
    return JSONResponse(
        status_code=status_code,
        content=exc.to_tool_error().model_dump(mode="json"),
    )


async def stripe_error_handler(request: Request, exc: StripeServiceError) -> JSONResponse:
    """Gateway errors that escaped the engine surface as 502."""
    logger.error("Payment gateway error on %s: %s", request.url.path, exc)
    error = BookingError(
        ErrorCode.PAYMENT_GATEWAY_ERROR, {"stripe_error_code": exc.stripe_error_code}
    )
    return JSONResponse(
        status_code=HTTP_502_BAD_GATEWAY,
        content=error.to_tool_error().model_dump(mode="json"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(BookingError, booking_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StripeServiceError, stripe_error_handler)  # type: ignore[arg-type]
