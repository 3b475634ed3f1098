"""Stripe webhook event log used for de-duplication and auditing."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class StripeWebhookEvent(BaseModel):
    """A received gateway event and how it was handled.

    Events that ended in ``error`` are not treated as processed, so a
    gateway redelivery gets another attempt.
    """

    model_config = ConfigDict(strict=True)

    event_id: str = Field(
        ...,
        description="Stripe event ID (evt_xxx)",
        examples=["evt_1ABC123DEF456"],
    )
    event_type: str = Field(
        ...,
        description="Stripe event type",
        examples=["checkout.session.completed", "refund.updated"],
    )
    processed_at: datetime
    payload_hash: str = Field(..., description="SHA-256 of the canonical event JSON")
    booking_id: str | None = None
    refund_id: str | None = None
    processing_result: str = Field(
        default="success",
        description="success, skipped or error",
    )
    error_message: str | None = None
