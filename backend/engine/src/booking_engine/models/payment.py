"""Payment, refund, cancellation and refund-request records.

Amounts are stored in minor currency units (cents).
"""

import datetime as dt
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .enums import (
    BookingStatus,
    PaymentProvider,
    PaymentStatus,
    RefundRequestStatus,
    RefundSource,
    RefundStatus,
    RefundTier,
    RefundType,
)


class Payment(BaseModel):
    """The single payment record of a booking.

    ``credits_applied_cents`` is tracked separately and never refunded.
    """

    model_config = ConfigDict(strict=True)

    booking_id: str
    provider: PaymentProvider
    status: PaymentStatus
    amount_cents: int = Field(..., ge=0, description="Cash charged (may be 0)")
    refunded_cents: int = Field(default=0, ge=0)
    credits_applied_cents: int = Field(default=0, ge=0)
    currency: str = "eur"
    stripe_session_id: str | None = None
    stripe_payment_intent_id: str | None = None
    checkout_url: str | None = None
    created_at: dt.datetime
    updated_at: dt.datetime

    @model_validator(mode="after")
    def _refund_within_amount(self) -> "Payment":
        if self.refunded_cents > self.amount_cents:
            raise ValueError("refunded_cents cannot exceed amount_cents")
        return self

    @property
    def refundable_remaining_cents(self) -> int:
        return max(0, self.amount_cents - self.refunded_cents)


class Refund(BaseModel):
    """A gateway refund attempt."""

    model_config = ConfigDict(strict=True)

    refund_id: str
    booking_id: str
    source: RefundSource
    status: RefundStatus
    amount_cents: int = Field(..., gt=0)
    currency: str = "eur"
    idempotency_key: str
    stripe_refund_id: str | None = None
    refund_request_id: str | None = None
    failure_reason: str | None = None
    applied_at: dt.datetime | None = Field(
        default=None, description="Set once a succeeded refund is added to the payment"
    )
    created_at: dt.datetime
    updated_at: dt.datetime


class Cancellation(BaseModel):
    """Payout decided when a booking was cancelled."""

    model_config = ConfigDict(strict=True)

    booking_id: str
    reason: str
    cancelled_by: str
    policy_tier: RefundTier | None = None
    days_before: int | None = None
    refund_cents: int = Field(default=0, ge=0)
    voucher_cents: int = Field(default=0, ge=0)
    voucher_id: str | None = None
    cancelled_at: dt.datetime


class RefundRequest(BaseModel):
    """A customer request for a refund beyond policy, decided by an admin."""

    model_config = ConfigDict(strict=True)

    request_id: str
    booking_id: str
    customer_id: str
    reason: str | None = None
    status: RefundRequestStatus
    admin_note: str | None = None
    decided_by: str | None = None
    decided_at: dt.datetime | None = None
    refund_id: str | None = None
    created_at: dt.datetime


class CancellationPreview(BaseModel):
    """What cancelling now would pay out. Computed server-side only."""

    model_config = ConfigDict(strict=True)

    booking_id: str
    action: str = "cancel"
    currency: str
    policy: dict[str, Any]
    outcome: dict[str, Any]


class CancellationResult(BaseModel):
    """Outcome of an executed cancellation."""

    model_config = ConfigDict(strict=True)

    booking_id: str
    status: BookingStatus
    refund_type: RefundType
    refund_cents: int = 0
    voucher_cents: int = 0
    voucher_id: str | None = None
    refund_id: str | None = None
    refund_status: RefundStatus | None = Field(
        default=None, description="None when no gateway refund applies"
    )


class RefundStatusView(BaseModel):
    """Latest refund and cancellation payout of a booking."""

    model_config = ConfigDict(strict=True)

    booking_id: str
    booking_status: BookingStatus
    currency: str
    cancellation: Cancellation | None = None
    refund: Refund | None = None


class RefundRequestSummary(RefundRequest):
    """Refund request with the amount an approval would refund now."""

    refundable_remaining_cents: int = Field(default=0, ge=0)


class RefundRequestPreview(BaseModel):
    """Amounts shown before a customer submits a refund request."""

    model_config = ConfigDict(strict=True)

    booking_id: str
    action: str = "refund_request"
    currency: str
    booking_total_cents: int
    refundable_remaining_cents: int


class RefundRequestDecision(BaseModel):
    """A decided refund request and the refund it produced, if any."""

    model_config = ConfigDict(strict=True)

    request: RefundRequest
    refund: Refund | None = None
