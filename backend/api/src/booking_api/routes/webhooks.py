"""Webhook endpoints for external service integrations.

These endpoints do NOT require authentication: payloads are verified with
the Stripe webhook secret. Duplicate deliveries (same event ID) return 200
with a ``duplicate`` result.
"""

from fastapi import APIRouter, Depends, Request

from booking_api.dependencies import get_webhook_handler
from booking_api.models.webhooks import WebhookResponse
from booking_engine.models import BookingError, ErrorCode
from booking_engine.services.stripe_service import (
    StripeService,
    StripeServiceError,
    get_stripe_service,
)
from booking_engine.services.webhook_handler import WebhookHandler
from booking_engine.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["webhooks"])


@router.post(
    "/webhooks/stripe",
    summary="Receive Stripe webhook events",
    description="""
Handles:
- checkout.session.completed: confirms the booking and marks the payment paid
- checkout.session.expired: cancels the unpaid booking and frees its nights
- refund.created / refund.updated / charge.refund.updated: applies refund status
""",
    response_model=WebhookResponse,
    responses={400: {"description": "Invalid signature or missing header"}},
)
async def handle_stripe_webhook(
    request: Request,
    handler: WebhookHandler = Depends(get_webhook_handler),
    stripe_service: StripeService = Depends(get_stripe_service),
) -> WebhookResponse:
    signature = request.headers.get("Stripe-Signature")
    if not signature:
        logger.warning("Webhook request missing Stripe-Signature header")
        raise BookingError(
            ErrorCode.INVALID_WEBHOOK_SIGNATURE,
            {"message": "Missing Stripe-Signature header"},
        )

    payload = await request.body()
    try:
        event = stripe_service.verify_webhook_signature(payload, signature)
    except StripeServiceError as e:
        raise BookingError(
            ErrorCode.INVALID_WEBHOOK_SIGNATURE,
            {"message": "Invalid webhook signature"},
        ) from e

    result, message = handler.handle_event(event)
    return WebhookResponse(
        received=True,
        event_id=event.get("id"),
        event_type=event.get("type"),
        processing_result=result,
        message=message,
    )
