"""Pydantic models for booking engine data entities."""

from .blocks import (
    BlockingEntity,
    DirectBookingBlock,
    ExternalBlock,
    ExternalBlockImport,
    ManualBlock,
    PublicBlock,
)
from .booking import (
    Booking,
    BookingQuote,
    BookingRequest,
    BookingResult,
    Caller,
    GuestCounts,
)
from .calendar import AdminCalendar, Calendar
from .enums import (
    ACTIVE_BOOKING_STATUSES,
    BlockSource,
    BookingStatus,
    ExternalProvider,
    PaymentProvider,
    PaymentStatus,
    RefundRequestStatus,
    RefundSource,
    RefundStatus,
    RefundTier,
    RefundType,
    Role,
    VoucherStatus,
)
from .errors import (
    BookingError,
    CreditMismatch,
    DatesUnavailable,
    ErrorCategory,
    ErrorCode,
    InvalidDate,
    OverlapConflict,
    PeriodInUse,
    StateViolation,
    ToolError,
)
from .payment import (
    Cancellation,
    CancellationPreview,
    CancellationResult,
    Payment,
    Refund,
    RefundRequest,
    RefundRequestDecision,
    RefundRequestPreview,
    RefundRequestSummary,
    RefundStatusView,
)
from .period import Period, PeriodPatch, PeriodRules
from .pricing import CoverageResult, CoverageSegment, PriceBreakdown, PricedSegment
from .property import Property
from .voucher import CreditVoucher
from .webhook import StripeWebhookEvent

__all__ = [
    "ACTIVE_BOOKING_STATUSES",
    "AdminCalendar",
    "BlockSource",
    "BlockingEntity",
    "Booking",
    "BookingError",
    "BookingQuote",
    "BookingRequest",
    "BookingResult",
    "BookingStatus",
    "Calendar",
    "Caller",
    "Cancellation",
    "CancellationPreview",
    "CancellationResult",
    "CoverageResult",
    "CoverageSegment",
    "CreditMismatch",
    "CreditVoucher",
    "DatesUnavailable",
    "DirectBookingBlock",
    "ErrorCategory",
    "ErrorCode",
    "ExternalBlock",
    "ExternalBlockImport",
    "ExternalProvider",
    "GuestCounts",
    "InvalidDate",
    "ManualBlock",
    "OverlapConflict",
    "Payment",
    "PaymentProvider",
    "PaymentStatus",
    "Period",
    "PeriodInUse",
    "PeriodPatch",
    "PeriodRules",
    "PriceBreakdown",
    "PricedSegment",
    "Property",
    "PublicBlock",
    "Refund",
    "RefundRequest",
    "RefundRequestDecision",
    "RefundRequestPreview",
    "RefundRequestStatus",
    "RefundRequestSummary",
    "RefundStatusView",
    "RefundSource",
    "RefundStatus",
    "RefundTier",
    "RefundType",
    "Role",
    "StateViolation",
    "StripeWebhookEvent",
    "ToolError",
    "VoucherStatus",
]
