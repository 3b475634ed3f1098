"""Enumeration types for booking engine data models."""

from enum import Enum


class Role(str, Enum):
    """Caller role resolved by the identity provider."""

    ADMIN = "ADMIN"
    CUSTOMER = "CUSTOMER"


class BookingStatus(str, Enum):
    """Status of a booking.

    Only PENDING and CONFIRMED occupy inventory.
    """

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"


ACTIVE_BOOKING_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})


class BlockSource(str, Enum):
    """Origin of a blocking entity."""

    DIRECT = "DIRECT"
    EXTERNAL = "EXTERNAL"
    MANUAL = "MANUAL"


class ExternalProvider(str, Enum):
    """Channels whose calendars are imported as external blocks."""

    BOOKING_COM = "BOOKING_COM"


class PaymentProvider(str, Enum):
    """Who collected the money for a booking."""

    STRIPE = "stripe"
    ADMIN = "admin"


class PaymentStatus(str, Enum):
    """Payment status for a booking."""

    UNPAID = "unpaid"
    PAID = "paid"
    PARTIALLY_REFUNDED = "partially_refunded"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"


class VoucherStatus(str, Enum):
    """Lifecycle of a credit voucher."""

    ACTIVE = "active"
    SPENT = "spent"
    EXPIRED = "expired"


class RefundSource(str, Enum):
    """Which path created a gateway refund."""

    POLICY_CANCEL = "policy_cancel"
    ADMIN_REQUEST = "admin_request"


class RefundStatus(str, Enum):
    """Gateway refund status."""

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"


class RefundRequestStatus(str, Enum):
    """Customer refund request lifecycle."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class RefundTier(str, Enum):
    """Cancellation policy tiers, longest notice first."""

    DAYS_60_PLUS = "60_plus"
    DAYS_30_TO_59 = "30_to_59"
    DAYS_15_TO_29 = "15_to_29"
    LESS_THAN_15 = "lt_15"


class RefundType(str, Enum):
    """Kind of payout a cancellation produces."""

    STRIPE_REFUND = "stripe_refund"
    VOUCHER = "voucher"
    NONE = "none"
