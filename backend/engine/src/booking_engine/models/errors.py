"""Error codes and exceptions for the availability and pricing engine.

Every domain failure carries a stable ``ErrorCode``. Each code belongs to one
``ErrorCategory`` which the HTTP layer maps to a status code:

- InvalidInput: malformed dates, missing fields, rule violations (400)
- Unauthenticated: anonymous caller on a customer-only path (401)
- Forbidden: ownership or role mismatch (403)
- NotFound: missing property, period, booking, block or request (404)
- Conflict: period overlap, dates blocked, closed period (409)
- StateViolation: credit mismatch, unexpected booking status (500, retry)
- Gateway: payment gateway call failed (502)
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class ErrorCategory(str, Enum):
    """Failure taxonomy shared by all error codes."""

    INVALID_INPUT = "invalid_input"
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    STATE_VIOLATION = "state_violation"
    GATEWAY = "gateway"


class ErrorCode(str, Enum):
    """Stable reason codes returned to callers."""

    # Input errors (ERR_INPUT_001-ERR_INPUT_009)
    INVALID_DATE = "ERR_INPUT_001"
    INVALID_DATE_RANGE = "ERR_INPUT_002"
    MISSING_FIELD = "ERR_INPUT_003"
    MINIMUM_NIGHTS_NOT_MET = "ERR_INPUT_004"
    MAX_GUESTS_EXCEEDED = "ERR_INPUT_005"
    INVALID_PERIOD_RULES = "ERR_INPUT_006"
    NOTHING_TO_REFUND = "ERR_INPUT_007"
    INVALID_WEBHOOK_SIGNATURE = "ERR_INPUT_008"
    STAY_TOO_LONG = "ERR_INPUT_009"

    # Identity errors
    AUTH_REQUIRED = "ERR_AUTH_001"
    FORBIDDEN = "ERR_AUTH_002"
    ADMIN_REQUIRED = "ERR_AUTH_003"

    # Missing resources
    PROPERTY_NOT_FOUND = "ERR_NOT_FOUND_001"
    PERIOD_NOT_FOUND = "ERR_NOT_FOUND_002"
    BOOKING_NOT_FOUND = "ERR_NOT_FOUND_003"
    BLOCK_NOT_FOUND = "ERR_NOT_FOUND_004"
    REFUND_REQUEST_NOT_FOUND = "ERR_NOT_FOUND_005"
    PAYMENT_NOT_FOUND = "ERR_NOT_FOUND_006"
    REFUND_NOT_FOUND = "ERR_NOT_FOUND_007"

    # Conflicts
    DATES_UNAVAILABLE = "ERR_CONFLICT_001"
    PERIOD_OVERLAP = "ERR_CONFLICT_002"
    PERIOD_CLOSED = "ERR_CONFLICT_003"
    PERIOD_IN_USE = "ERR_CONFLICT_004"
    REFUND_REQUEST_EXISTS = "ERR_CONFLICT_005"

    # State violations
    CREDIT_MISMATCH = "ERR_STATE_001"
    BOOKING_STATUS_CONFLICT = "ERR_STATE_002"
    CONCURRENT_UPDATE = "ERR_STATE_003"
    REFUND_REQUEST_DECIDED = "ERR_STATE_004"

    # Payment gateway
    PAYMENT_GATEWAY_ERROR = "ERR_GATEWAY_001"
    REFUND_SUBMISSION_FAILED = "ERR_GATEWAY_002"


ERROR_CATEGORIES: dict[ErrorCode, ErrorCategory] = {
    ErrorCode.INVALID_DATE: ErrorCategory.INVALID_INPUT,
    ErrorCode.INVALID_DATE_RANGE: ErrorCategory.INVALID_INPUT,
    ErrorCode.MISSING_FIELD: ErrorCategory.INVALID_INPUT,
    ErrorCode.MINIMUM_NIGHTS_NOT_MET: ErrorCategory.INVALID_INPUT,
    ErrorCode.MAX_GUESTS_EXCEEDED: ErrorCategory.INVALID_INPUT,
    ErrorCode.STAY_TOO_LONG: ErrorCategory.INVALID_INPUT,
    ErrorCode.INVALID_PERIOD_RULES: ErrorCategory.INVALID_INPUT,
    ErrorCode.NOTHING_TO_REFUND: ErrorCategory.INVALID_INPUT,
    ErrorCode.INVALID_WEBHOOK_SIGNATURE: ErrorCategory.INVALID_INPUT,
    ErrorCode.AUTH_REQUIRED: ErrorCategory.UNAUTHENTICATED,
    ErrorCode.FORBIDDEN: ErrorCategory.FORBIDDEN,
    ErrorCode.ADMIN_REQUIRED: ErrorCategory.FORBIDDEN,
    ErrorCode.PROPERTY_NOT_FOUND: ErrorCategory.NOT_FOUND,
    ErrorCode.PERIOD_NOT_FOUND: ErrorCategory.NOT_FOUND,
    ErrorCode.BOOKING_NOT_FOUND: ErrorCategory.NOT_FOUND,
    ErrorCode.BLOCK_NOT_FOUND: ErrorCategory.NOT_FOUND,
    ErrorCode.REFUND_REQUEST_NOT_FOUND: ErrorCategory.NOT_FOUND,
    ErrorCode.PAYMENT_NOT_FOUND: ErrorCategory.NOT_FOUND,
    ErrorCode.REFUND_NOT_FOUND: ErrorCategory.NOT_FOUND,
    ErrorCode.DATES_UNAVAILABLE: ErrorCategory.CONFLICT,
    ErrorCode.PERIOD_OVERLAP: ErrorCategory.CONFLICT,
    ErrorCode.PERIOD_CLOSED: ErrorCategory.CONFLICT,
    ErrorCode.PERIOD_IN_USE: ErrorCategory.CONFLICT,
    ErrorCode.REFUND_REQUEST_EXISTS: ErrorCategory.CONFLICT,
    ErrorCode.CREDIT_MISMATCH: ErrorCategory.STATE_VIOLATION,
    ErrorCode.BOOKING_STATUS_CONFLICT: ErrorCategory.STATE_VIOLATION,
    ErrorCode.CONCURRENT_UPDATE: ErrorCategory.STATE_VIOLATION,
    ErrorCode.REFUND_REQUEST_DECIDED: ErrorCategory.STATE_VIOLATION,
    ErrorCode.PAYMENT_GATEWAY_ERROR: ErrorCategory.GATEWAY,
    ErrorCode.REFUND_SUBMISSION_FAILED: ErrorCategory.GATEWAY,
}

# Human-readable error messages
ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.INVALID_DATE: "Invalid date; expected YYYY-MM-DD or an ISO 8601 datetime",
    ErrorCode.INVALID_DATE_RANGE: "End date must be after start date",
    ErrorCode.MISSING_FIELD: "A required field is missing",
    ErrorCode.MINIMUM_NIGHTS_NOT_MET: "Minimum stay requirement not met for the arrival period",
    ErrorCode.MAX_GUESTS_EXCEEDED: "Number of guests exceeds the maximum for this stay",
    ErrorCode.STAY_TOO_LONG: "The requested range is longer than a single booking allows",
    ErrorCode.INVALID_PERIOD_RULES: "Period rules are invalid",
    ErrorCode.NOTHING_TO_REFUND: "Nothing left to refund for this booking",
    ErrorCode.INVALID_WEBHOOK_SIGNATURE: "Invalid webhook signature",
    ErrorCode.AUTH_REQUIRED: "Authentication required to perform this action",
    ErrorCode.FORBIDDEN: "You are not allowed to act on this resource",
    ErrorCode.ADMIN_REQUIRED: "Administrator role required",
    ErrorCode.PROPERTY_NOT_FOUND: "Property not found",
    ErrorCode.PERIOD_NOT_FOUND: "Period not found",
    ErrorCode.BOOKING_NOT_FOUND: "Booking not found",
    ErrorCode.BLOCK_NOT_FOUND: "Block not found",
    ErrorCode.REFUND_REQUEST_NOT_FOUND: "Refund request not found",
    ErrorCode.PAYMENT_NOT_FOUND: "Payment not found for this booking",
    ErrorCode.REFUND_NOT_FOUND: "Refund not found",
    ErrorCode.DATES_UNAVAILABLE: "The requested dates are not available",
    ErrorCode.PERIOD_OVERLAP: "Period overlaps an existing period",
    ErrorCode.PERIOD_CLOSED: "The stay includes dates in a closed period",
    ErrorCode.PERIOD_IN_USE: "Period is referenced by bookings and cannot be deleted",
    ErrorCode.REFUND_REQUEST_EXISTS: "A pending refund request already exists for this booking",
    ErrorCode.CREDIT_MISMATCH: "Credit voucher consumption mismatch",
    ErrorCode.BOOKING_STATUS_CONFLICT: "Booking is not in the expected status for this action",
    ErrorCode.CONCURRENT_UPDATE: "The record was modified concurrently",
    ErrorCode.REFUND_REQUEST_DECIDED: "Refund request was already decided",
    ErrorCode.PAYMENT_GATEWAY_ERROR: "Payment gateway error occurred",
    ErrorCode.REFUND_SUBMISSION_FAILED: "Booking cancelled, but refund submission failed. Admin may retry.",
}

# Recovery suggestions for callers
ERROR_RECOVERY: dict[ErrorCode, str] = {
    ErrorCode.INVALID_DATE: "Send dates as YYYY-MM-DD",
    ErrorCode.INVALID_DATE_RANGE: "Choose a check-out date after the check-in date",
    ErrorCode.MISSING_FIELD: "Provide the missing field and retry",
    ErrorCode.MINIMUM_NIGHTS_NOT_MET: "Extend the stay to the minimum number of nights",
    ErrorCode.MAX_GUESTS_EXCEEDED: "Reduce the number of adults and children",
    ErrorCode.STAY_TOO_LONG: "Split the stay into shorter bookings or close a period instead",
    ErrorCode.INVALID_PERIOD_RULES: "Correct the period rules and retry",
    ErrorCode.NOTHING_TO_REFUND: "No action needed",
    ErrorCode.INVALID_WEBHOOK_SIGNATURE: "Verify webhook secret configuration",
    ErrorCode.AUTH_REQUIRED: "Log in and retry",
    ErrorCode.FORBIDDEN: "Use the account that owns this booking",
    ErrorCode.ADMIN_REQUIRED: "Ask an administrator to perform this action",
    ErrorCode.PROPERTY_NOT_FOUND: "Verify the property ID",
    ErrorCode.PERIOD_NOT_FOUND: "Verify the period ID",
    ErrorCode.BOOKING_NOT_FOUND: "Verify the booking ID",
    ErrorCode.BLOCK_NOT_FOUND: "Verify the block ID",
    ErrorCode.REFUND_REQUEST_NOT_FOUND: "Verify the refund request ID",
    ErrorCode.PAYMENT_NOT_FOUND: "Contact support",
    ErrorCode.REFUND_NOT_FOUND: "Verify the refund ID",
    ErrorCode.DATES_UNAVAILABLE: "Choose different dates using the calendar",
    ErrorCode.PERIOD_OVERLAP: "Adjust the dates so they do not intersect the conflicting period",
    ErrorCode.PERIOD_CLOSED: "Choose dates outside the closed period",
    ErrorCode.PERIOD_IN_USE: "Close the period (isOpen=false) instead of deleting it",
    ErrorCode.REFUND_REQUEST_EXISTS: "Wait for the pending request to be decided",
    ErrorCode.CREDIT_MISMATCH: "Please retry the booking",
    ErrorCode.BOOKING_STATUS_CONFLICT: "Reload the booking and retry",
    ErrorCode.CONCURRENT_UPDATE: "Please retry",
    ErrorCode.REFUND_REQUEST_DECIDED: "Reload the refund request",
    ErrorCode.PAYMENT_GATEWAY_ERROR: "Try again or contact support",
    ErrorCode.REFUND_SUBMISSION_FAILED: "An administrator can retry the refund",
}


class ToolError(BaseModel):
    """Standard error response body.

    Every rejection carries the stable code plus a message and a recovery hint.
    """

    model_config = ConfigDict(strict=True)

    success: bool = False
    error_code: ErrorCode
    category: ErrorCategory
    message: str
    recovery: str
    details: Optional[dict[str, str]] = None

    @classmethod
    def from_code(
        cls,
        code: ErrorCode,
        details: Optional[dict[str, str]] = None,
    ) -> "ToolError":
        """Create a ToolError from an error code.

        Args:
            code: The error code
            details: Optional additional context about the error

        Returns:
            A ToolError with the message and recovery hint for the code.
        """
        return cls(
            error_code=code,
            category=ERROR_CATEGORIES[code],
            message=ERROR_MESSAGES[code],
            recovery=ERROR_RECOVERY[code],
            details=details,
        )


class BookingError(Exception):
    """Exception raised by engine operations.

    Propagates unchanged to the HTTP layer, which converts it to a ToolError.
    """

    def __init__(
        self,
        code: ErrorCode,
        details: Optional[dict[str, Any]] = None,
    ):
        self.code = code
        self.category = ERROR_CATEGORIES[code]
        self.message = ERROR_MESSAGES[code]
        self.recovery = ERROR_RECOVERY[code]
        self.details = (
            {k: str(v) for k, v in details.items() if v is not None}
            if details
            else None
        )
        super().__init__(self.message)

    def to_tool_error(self) -> ToolError:
        """Convert this exception to a ToolError response body."""
        return ToolError.from_code(self.code, self.details)


class InvalidDate(BookingError):
    """A date value could not be parsed."""

    def __init__(self, value: Any):
        super().__init__(ErrorCode.INVALID_DATE, {"value": repr(value)})


class OverlapConflict(BookingError):
    """A period write would intersect an existing period."""

    def __init__(self, conflicting_period_id: str, start: Any, end: Any):
        super().__init__(
            ErrorCode.PERIOD_OVERLAP,
            {
                "conflicting_period_id": conflicting_period_id,
                "conflicting_start": start,
                "conflicting_end": end,
            },
        )


class PeriodInUse(BookingError):
    """A period cannot be deleted while bookings reference it."""

    def __init__(self, period_id: str, booking_count: int):
        super().__init__(
            ErrorCode.PERIOD_IN_USE,
            {"period_id": period_id, "booking_count": booking_count},
        )


class DatesUnavailable(BookingError):
    """A blocking entity already occupies part of the requested range."""

    def __init__(self, property_id: str, start: Any, end: Any, **extra: Any):
        super().__init__(
            ErrorCode.DATES_UNAVAILABLE,
            {"property_id": property_id, "start_date": start, "end_date": end, **extra},
        )


class CreditMismatch(BookingError):
    """Vouchers changed between estimate and consumption."""

    def __init__(self, expected_cents: int, available_cents: int | None = None):
        super().__init__(
            ErrorCode.CREDIT_MISMATCH,
            {"expected_cents": expected_cents, "available_cents": available_cents},
        )


class StateViolation(BookingError):
    """A guarded status transition found an unexpected current status."""

    def __init__(
        self,
        code: ErrorCode = ErrorCode.BOOKING_STATUS_CONFLICT,
        **details: Any,
    ):
        super().__init__(code, details or None)
