"""Booking, booking request and caller identity models."""

import datetime as dt
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .enums import BookingStatus, Role
from .payment import Payment
from .pricing import PriceBreakdown


class Caller(BaseModel):
    """Identity resolved by the upstream identity provider."""

    model_config = ConfigDict(strict=True, frozen=True)

    customer_id: str | None = None
    role: Role = Role.CUSTOMER

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class GuestCounts(BaseModel):
    """Party composition. Babies never count toward capacity."""

    model_config = ConfigDict(strict=True, frozen=True)

    adults: int = Field(default=1, ge=1)
    children: int = Field(default=0, ge=0)
    babies: int = Field(default=0, ge=0)

    @property
    def counted(self) -> int:
        return self.adults + self.children


class BookingRequest(BaseModel):
    """Input shared by quote and create-booking.

    Dates may arrive as strings; they are normalized by the orchestrator so
    that malformed values surface as ``InvalidDate``.
    """

    model_config = ConfigDict(strict=False)

    property_id: str
    start_date: dt.date | dt.datetime | str
    end_date: dt.date | dt.datetime | str
    guests: GuestCounts = Field(default_factory=GuestCounts)
    guest_name: str | None = None
    guest_email: str | None = None
    guest_phone: str | None = None
    notes: str | None = None
    use_credit: bool = False


class Booking(BaseModel):
    """A reservation with its frozen price snapshot."""

    model_config = ConfigDict(strict=True)

    booking_id: str
    property_id: str
    customer_id: str | None = None
    start_date: dt.date
    end_date: dt.date
    guests: GuestCounts
    guest_name: str
    guest_email: str
    guest_phone: str | None = None
    notes: str | None = None
    total_price: int = Field(..., ge=0, description="Gross price in major currency units")
    currency: str = "eur"
    price_breakdown: PriceBreakdown
    booking_period_id: str | None = Field(
        default=None, description="Arrival period used for rule selection"
    )
    status: BookingStatus
    created_at: dt.datetime
    updated_at: dt.datetime

    @property
    def nights(self) -> int:
        return (self.end_date - self.start_date).days


class BookingQuote(BaseModel):
    """Price and refund-policy preview. Nothing is persisted or consumed."""

    model_config = ConfigDict(strict=True)

    property_id: str
    start_date: dt.date
    end_date: dt.date
    booking_period_id: str | None = None
    price_breakdown: PriceBreakdown
    credits_applied_cents: int = 0
    payable_cents: int
    refund_policy: dict[str, Any] = Field(
        ..., description="Tier table, days before check-in and the tier that applies now"
    )


class BookingResult(BaseModel):
    """Outcome of create-booking.

    ``payment_link_error`` is set when the booking committed but no checkout
    session could be created; the booking stays pending.
    """

    model_config = ConfigDict(strict=True)

    booking: Booking
    payment: Payment
    checkout_url: str | None = None
    payment_link_error: str | None = None
