"""Webhook handler for processing Stripe events.

Business logic for gateway callbacks, kept apart from HTTP routing so it
can be unit tested without a request. Events are de-duplicated by event ID
through the webhook-events table.
"""

import datetime as dt
import hashlib
import json
from typing import TYPE_CHECKING, Any

from booking_engine.models import BookingError, BookingStatus, StripeWebhookEvent
from booking_engine.utils.logging import get_logger, log_webhook_event

if TYPE_CHECKING:
    from .booking_orchestrator import BookingOrchestrator
    from .booking_service import BookingService
    from .dynamodb import DynamoDBService
    from .notification_service import NotificationService
    from .payment_service import PaymentService

logger = get_logger(__name__)

REFUND_EVENT_TYPES = frozenset({"refund.created", "refund.updated", "charge.refund.updated"})

Outcome = tuple[str, str | None, dict[str, str | None]]


class WebhookHandler:
    """Applies Stripe events to bookings, payments and refunds.

    Each ``process_*`` method returns ``(result, message, refs)`` where
    result is ``success``, ``skipped`` or ``error`` and refs holds the
    booking and refund IDs the event touched.
    """

    WEBHOOK_EVENTS_TABLE = "webhook-events"

    def __init__(
        self,
        db: "DynamoDBService",
        orchestrator: "BookingOrchestrator",
        bookings: "BookingService",
        payments: "PaymentService",
        notifications: "NotificationService",
    ) -> None:
        self._db = db
        self.orchestrator = orchestrator
        self.bookings = bookings
        self.payments = payments
        self.notifications = notifications

    def is_event_already_processed(self, event_id: str) -> bool:
        """Check if an event was already handled (idempotency).

        Args:
            event_id: Stripe event ID

        Returns:
            True if the event was logged with a non-error result
        """
        existing = self._db.get_item(
            self.WEBHOOK_EVENTS_TABLE, {"event_id": event_id}, consistent_read=True
        )
        return existing is not None and existing.get("processing_result") != "error"

    def log_event(self, event: StripeWebhookEvent) -> None:
        """Record an event for idempotency and the audit trail."""
        self._db.put_item(self.WEBHOOK_EVENTS_TABLE, event.model_dump(mode="json"))

    def handle_event(self, event: dict[str, Any]) -> tuple[str, str | None]:
        """De-duplicate, dispatch and log one verified event.

        Args:
            event: Parsed Stripe event

        Returns:
            Tuple of (processing_result, message)
        """
        event_id = event.get("id", "")
        event_type = event.get("type", "")

        if self.is_event_already_processed(event_id):
            log_webhook_event(logger, event_type, event_id, result="duplicate")
            return "duplicate", None

        if event_type == "checkout.session.completed":
            result, message, refs = self.process_checkout_completed(event)
        elif event_type == "checkout.session.expired":
            result, message, refs = self.process_checkout_expired(event)
        elif event_type in REFUND_EVENT_TYPES:
            result, message, refs = self.process_refund_updated(event)
        else:
            result, message, refs = "skipped", f"Unhandled event type {event_type}", {}

        self.log_event(
            StripeWebhookEvent(
                event_id=event_id,
                event_type=event_type,
                processed_at=dt.datetime.now(dt.UTC),
                payload_hash=hashlib.sha256(
                    json.dumps(event, sort_keys=True).encode()
                ).hexdigest(),
                booking_id=refs.get("booking_id"),
                refund_id=refs.get("refund_id"),
                processing_result=result,
                error_message=message,
            )
        )
        log_webhook_event(
            logger,
            event_type,
            event_id,
            booking_id=refs.get("booking_id"),
            result=result,
            error=message if result == "error" else None,
        )
        return result, message

    def process_checkout_completed(self, event: dict[str, Any]) -> Outcome:
        """Confirm the booking paid through a checkout session.

        Only sessions with ``payment_status == "paid"`` confirm; others are
        skipped and confirmed by a later event.
        """
        session = event.get("data", {}).get("object", {})
        booking_id = _booking_id_of(session)
        refs: dict[str, str | None] = {"booking_id": booking_id}

        if not booking_id:
            logger.warning("checkout.session.completed without booking_id in metadata")
            return "error", "Missing booking_id in metadata", refs

        payment_status = session.get("payment_status")
        if payment_status != "paid":
            return "skipped", f"Payment status is '{payment_status}', not 'paid'", refs

        try:
            self.orchestrator.confirm_checkout(
                booking_id,
                session_id=session.get("id"),
                payment_intent_id=session.get("payment_intent"),
            )
        except BookingError as e:
            # Paid after the hold expired: needs a manual refund
            logger.error("Could not confirm booking %s: %s", booking_id, e.message)
            return "error", f"{e.code.value}: {e.message}", refs
        return "success", None, refs

    def process_checkout_expired(self, event: dict[str, Any]) -> Outcome:
        """Release the nights of a booking whose checkout session expired."""
        session = event.get("data", {}).get("object", {})
        booking_id = _booking_id_of(session)
        refs: dict[str, str | None] = {"booking_id": booking_id}
        if not booking_id:
            return "skipped", "Missing booking_id in metadata", refs

        booking = self.bookings.get_booking(booking_id)
        if booking is None:
            return "error", f"Booking {booking_id} not found", refs
        if booking.status != BookingStatus.PENDING:
            return "skipped", f"Booking is {booking.status.value}", refs

        try:
            self.orchestrator.expire_checkout(booking_id)
        except BookingError as e:
            return "skipped", f"{e.code.value}: {e.message}", refs
        return "success", None, refs

    def process_refund_updated(self, event: dict[str, Any]) -> Outcome:
        """Apply a gateway refund status to the local refund record.

        The local refund is found by the ``localRefundId`` metadata set on
        submission, falling back to the gateway refund ID.
        """
        gateway_refund = event.get("data", {}).get("object", {})
        metadata = gateway_refund.get("metadata") or {}
        stripe_refund_id = gateway_refund.get("id")

        refund = None
        local_id = metadata.get("localRefundId")
        if local_id:
            refund = self.payments.get_refund(local_id)
        if refund is None and stripe_refund_id:
            refund = self.payments.find_refund_by_stripe_id(stripe_refund_id)
        if refund is None:
            return "skipped", "No local refund for gateway refund", {"booking_id": None}

        refs: dict[str, str | None] = {
            "booking_id": refund.booking_id,
            "refund_id": refund.refund_id,
        }
        status = gateway_refund.get("status")
        try:
            applied = self.payments.apply_refund_update(
                refund.refund_id, status, stripe_refund_id
            )
        except BookingError as e:
            return "error", f"{e.code.value}: {e.message}", refs

        if status in ("failed", "canceled"):
            self.notifications.refund_failed(
                refund.booking_id,
                refund.refund_id,
                gateway_refund.get("failure_reason") or status,
            )
        if applied:
            logger.info("Refund %s applied to booking %s", refund.refund_id, refund.booking_id)
        return "success", None, refs


def _booking_id_of(session: dict[str, Any]) -> str | None:
    metadata = session.get("metadata") or {}
    booking_id: str | None = metadata.get("booking_id") or session.get("client_reference_id")
    return booking_id
