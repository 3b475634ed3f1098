"""Unit tests for the error taxonomy and its HTTP mapping."""

import pytest
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_401_UNAUTHORIZED,
    HTTP_403_FORBIDDEN,
    HTTP_404_NOT_FOUND,
    HTTP_409_CONFLICT,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_502_BAD_GATEWAY,
)

from booking_api.exceptions import get_http_status_for_error
from booking_engine.models import (
    BookingError,
    CreditMismatch,
    DatesUnavailable,
    ErrorCategory,
    ErrorCode,
    StateViolation,
    ToolError,
)
from booking_engine.models.errors import ERROR_CATEGORIES, ERROR_MESSAGES, ERROR_RECOVERY


class TestTaxonomy:
    def test_every_code_is_fully_described(self) -> None:
        for code in ErrorCode:
            assert code in ERROR_CATEGORIES
            assert ERROR_MESSAGES[code]
            assert ERROR_RECOVERY[code]

    def test_codes_are_unique(self) -> None:
        values = [code.value for code in ErrorCode]
        assert len(values) == len(set(values))

    @pytest.mark.parametrize(
        ("prefix", "category"),
        [
            ("ERR_INPUT_", ErrorCategory.INVALID_INPUT),
            ("ERR_NOT_FOUND_", ErrorCategory.NOT_FOUND),
            ("ERR_CONFLICT_", ErrorCategory.CONFLICT),
            ("ERR_STATE_", ErrorCategory.STATE_VIOLATION),
            ("ERR_GATEWAY_", ErrorCategory.GATEWAY),
        ],
    )
    def test_prefix_matches_category(self, prefix: str, category: ErrorCategory) -> None:
        codes = [code for code in ErrorCode if code.value.startswith(prefix)]
        assert codes
        assert all(ERROR_CATEGORIES[code] == category for code in codes)


class TestHttpStatus:
    @pytest.mark.parametrize(
        ("code", "status"),
        [
            (ErrorCode.INVALID_DATE_RANGE, HTTP_400_BAD_REQUEST),
            (ErrorCode.AUTH_REQUIRED, HTTP_401_UNAUTHORIZED),
            (ErrorCode.FORBIDDEN, HTTP_403_FORBIDDEN),
            (ErrorCode.ADMIN_REQUIRED, HTTP_403_FORBIDDEN),
            (ErrorCode.BOOKING_NOT_FOUND, HTTP_404_NOT_FOUND),
            (ErrorCode.DATES_UNAVAILABLE, HTTP_409_CONFLICT),
            (ErrorCode.PERIOD_OVERLAP, HTTP_409_CONFLICT),
            (ErrorCode.CREDIT_MISMATCH, HTTP_500_INTERNAL_SERVER_ERROR),
            (ErrorCode.BOOKING_STATUS_CONFLICT, HTTP_500_INTERNAL_SERVER_ERROR),
            (ErrorCode.REFUND_SUBMISSION_FAILED, HTTP_502_BAD_GATEWAY),
        ],
    )
    def test_status_for_code(self, code: ErrorCode, status: int) -> None:
        assert get_http_status_for_error(code) == status


class TestBookingError:
    def test_details_are_stringified_without_nones(self) -> None:
        error = BookingError(ErrorCode.MINIMUM_NIGHTS_NOT_MET, {"min_nights": 3, "note": None})

        assert error.details == {"min_nights": "3"}
        assert error.category == ErrorCategory.INVALID_INPUT
        assert str(error) == error.message

    def test_to_tool_error(self) -> None:
        tool_error = DatesUnavailable("PROP-001", "2027-03-15", "2027-03-18").to_tool_error()

        assert tool_error == ToolError.from_code(
            ErrorCode.DATES_UNAVAILABLE,
            {"property_id": "PROP-001", "start_date": "2027-03-15", "end_date": "2027-03-18"},
        )
        assert tool_error.success is False
        assert tool_error.model_dump(mode="json")["error_code"] == "ERR_CONFLICT_001"

    def test_credit_mismatch_details(self) -> None:
        error = CreditMismatch(expected_cents=5_000, available_cents=3_000)

        assert error.code == ErrorCode.CREDIT_MISMATCH
        assert error.details == {"expected_cents": "5000", "available_cents": "3000"}

    def test_state_violation_default_code(self) -> None:
        error = StateViolation(booking_id="BKG-1", status="cancelled")

        assert error.code == ErrorCode.BOOKING_STATUS_CONFLICT
        assert error.details == {"booking_id": "BKG-1", "status": "cancelled"}
        assert StateViolation().details is None
