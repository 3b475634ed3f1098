"""API models for booking, cancellation and refund request endpoints."""

from pydantic import BaseModel, ConfigDict, Field

from booking_engine.models import Booking, BookingRequest


class BookingCreateRequest(BookingRequest):
    """Quote or create a booking.

    Dates are sent as YYYY-MM-DD; the price is always computed server-side.
    """

    model_config = ConfigDict(
        strict=False,
        json_schema_extra={
            "examples": [
                {
                    "property_id": "PROP-SUMMERHOUSE",
                    "start_date": "2026-07-10",
                    "end_date": "2026-07-17",
                    "guests": {"adults": 2, "children": 1, "babies": 0},
                    "guest_name": "Anna Jonsdottir",
                    "guest_email": "anna@example.com",
                    "use_credit": True,
                }
            ]
        },
    )


class CancelBookingRequest(BaseModel):
    """Optional reason for a cancellation."""

    model_config = ConfigDict(strict=True)

    reason: str | None = Field(default=None, max_length=500)


class RefundRequestCreate(BaseModel):
    """Customer request for a refund beyond the cancellation policy."""

    model_config = ConfigDict(strict=True)

    reason: str | None = Field(
        default=None,
        max_length=1000,
        examples=["Flight cancelled by the airline"],
    )


class RefundRequestDecisionBody(BaseModel):
    """Admin note attached when approving or rejecting a request."""

    model_config = ConfigDict(strict=True)

    admin_note: str | None = Field(default=None, max_length=1000)


class BookingListResponse(BaseModel):
    """A customer's bookings, newest first."""

    model_config = ConfigDict(strict=True)

    bookings: list[Booking] = Field(default_factory=list)
    total_count: int = 0
