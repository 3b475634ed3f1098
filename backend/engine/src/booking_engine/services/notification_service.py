"""Best-effort email notifications via SES.

Notifications never change the outcome of the operation that triggers them:
delivery failures are logged and dropped. With no sender configured, the
service is disabled and only logs.
"""

import os
from functools import lru_cache
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from booking_engine.models import Booking, RefundRequest
from booking_engine.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """Admin and guest emails for events that need a human."""

    def __init__(
        self,
        sender: str | None = None,
        admin_email: str | None = None,
        region: str | None = None,
    ) -> None:
        self.sender = sender if sender is not None else os.environ.get("NOTIFICATION_SENDER")
        self.admin_email = (
            admin_email
            if admin_email is not None
            else os.environ.get("ADMIN_NOTIFICATION_EMAIL")
        )
        self._region = region or os.environ.get("SES_REGION")
        self._client: Any = None

    @property
    def enabled(self) -> bool:
        return bool(self.sender)

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = boto3.client("ses", region_name=self._region)
        return self._client

    def send(self, to: str | None, subject: str, body: str) -> bool:
        """Send a plain-text email. Returns False when skipped or failed."""
        if not self.enabled or not to:
            logger.info("Notification skipped (no sender or recipient): %s", subject)
            return False
        try:
            self._get_client().send_email(
                Source=self.sender,
                Destination={"ToAddresses": [to]},
                Message={
                    "Subject": {"Data": subject, "Charset": "UTF-8"},
                    "Body": {"Text": {"Data": body, "Charset": "UTF-8"}},
                },
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("Failed to send notification %r: %s", subject, e)
            return False
        logger.info("Sent notification %r", subject)
        return True

    def late_cancellation(self, booking: Booking, voucher_cents: int) -> bool:
        """Cancellation inside 15 days: guest receives a voucher, admin is told."""
        body = (
            f"Booking {booking.booking_id} ({booking.start_date} to {booking.end_date}) "
            f"was cancelled less than 15 days before check-in.\n"
            f"Guest: {booking.guest_name} <{booking.guest_email}>\n"
            f"Voucher issued: {voucher_cents / 100:.2f} {booking.currency.upper()}\n"
        )
        return self.send(self.admin_email, f"Late cancellation {booking.booking_id}", body)

    def payment_link_failed(self, booking: Booking, error: str) -> bool:
        body = (
            f"Booking {booking.booking_id} was created but no payment link could be "
            f"generated.\nError: {error}\n"
            "The booking stays pending; retry the checkout session or contact the guest.\n"
        )
        return self.send(self.admin_email, f"Payment link failed {booking.booking_id}", body)

    def refund_failed(self, booking_id: str, refund_id: str, error: str) -> bool:
        body = (
            f"Refund {refund_id} for booking {booking_id} could not be submitted.\n"
            f"Error: {error}\n"
        )
        return self.send(self.admin_email, f"Refund failed {booking_id}", body)

    def refund_requested(self, request: RefundRequest) -> bool:
        body = (
            f"Customer {request.customer_id} requested a refund for booking "
            f"{request.booking_id}.\nReason: {request.reason or '-'}\n"
        )
        return self.send(self.admin_email, f"Refund request {request.request_id}", body)


@lru_cache(maxsize=1)
def get_notification_service() -> NotificationService:
    return NotificationService()
