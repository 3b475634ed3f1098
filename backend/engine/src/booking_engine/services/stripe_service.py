"""Stripe gateway: checkout sessions, refunds and webhook verification.

Uses the StripeClient pattern. API keys come from SSM Parameter Store and
every mutating call carries an idempotency key.
"""

import json
import os
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any

import stripe
from stripe import StripeClient

from booking_engine.utils.logging import get_logger

from .ssm_service import SSMServiceError, get_ssm_service, secret_path

logger = get_logger(__name__)

# Stripe's minimum session lifetime; matches the unpaid booking hold.
CHECKOUT_SESSION_TTL_SECONDS = 1800


class StripeServiceError(Exception):
    """Raised when a Stripe operation fails."""

    def __init__(self, message: str, stripe_error_code: str | None = None) -> None:
        super().__init__(message)
        self.stripe_error_code = stripe_error_code


class StripeService:
    """Gateway operations used by booking, cancellation and webhooks."""

    def __init__(self, environment: str | None = None) -> None:
        """Initialize with credentials read lazily from SSM.

        Args:
            environment: Environment name (dev, prod). Defaults to ENVIRONMENT env var.
        """
        self._environment = environment or os.environ.get("ENVIRONMENT", "dev")
        self._ssm = get_ssm_service()
        self._client: StripeClient | None = None
        self._webhook_secret: str | None = None

    def _get_client(self) -> StripeClient:
        if self._client is None:
            try:
                secret_key = self._ssm.get_parameter(
                    secret_path(self._environment, "stripe", "secret_key")
                )
            except SSMServiceError as e:
                raise StripeServiceError(f"Failed to initialize Stripe client: {e}") from e
            self._client = StripeClient(secret_key)
            logger.info("Stripe client initialized for environment: %s", self._environment)
        return self._client

    def _get_webhook_secret(self) -> str:
        if self._webhook_secret is None:
            try:
                self._webhook_secret = self._ssm.get_parameter(
                    secret_path(self._environment, "stripe", "webhook_secret")
                )
            except SSMServiceError as e:
                raise StripeServiceError(f"Failed to get webhook secret: {e}") from e
        return self._webhook_secret

    def create_checkout_session(
        self,
        *,
        booking_id: str,
        amount_cents: int,
        description: str,
        idempotency_key: str,
        success_url: str,
        cancel_url: str,
        currency: str = "eur",
        customer_email: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Create a hosted checkout session for the cash due on a booking.

        Args:
            booking_id: Booking the session pays for
            amount_cents: Cash due in cents
            description: Line item description
            idempotency_key: Key that makes retries return the same session
            success_url: Redirect after payment
            cancel_url: Redirect when the customer abandons checkout
            currency: ISO currency code
            customer_email: Prefills the checkout form and receipt
            metadata: Extra metadata echoed back on webhooks

        Returns:
            Dict with session_id, checkout_url and expires_at

        Raises:
            StripeServiceError: If the gateway rejects the call
        """
        client = self._get_client()
        session_metadata = {"booking_id": booking_id, **(metadata or {})}
        expires_at = int(datetime.now(timezone.utc).timestamp()) + CHECKOUT_SESSION_TTL_SECONDS

        params: dict[str, Any] = {
            "mode": "payment",
            "payment_method_types": ["card"],
            "line_items": [
                {
                    "price_data": {
                        "currency": currency,
                        "unit_amount": amount_cents,
                        "product_data": {
                            "name": "Accommodation Booking",
                            "description": description,
                        },
                    },
                    "quantity": 1,
                }
            ],
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": session_metadata,
            "payment_intent_data": {"metadata": session_metadata},
            "client_reference_id": booking_id,
            "expires_at": expires_at,
        }
        if customer_email:
            params["customer_email"] = customer_email

        try:
            session = client.checkout.sessions.create(
                params=params,
                options={"idempotency_key": idempotency_key},
            )
        except stripe.StripeError as e:
            error_code = getattr(e, "code", None)
            logger.error(
                "Stripe checkout session creation failed: %s (code: %s)", str(e), error_code
            )
            raise StripeServiceError(
                f"Failed to create checkout session: {e}", stripe_error_code=error_code
            ) from e

        logger.info("Checkout session %s created for booking %s", session.id, booking_id)
        return {
            "session_id": session.id,
            "checkout_url": session.url,
            "expires_at": datetime.fromtimestamp(session.expires_at, tz=timezone.utc),
        }

    def create_refund(
        self,
        *,
        payment_intent_id: str,
        amount_cents: int,
        idempotency_key: str,
        metadata: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Refund part or all of a captured payment.

        Args:
            payment_intent_id: Stripe PaymentIntent ID (pi_xxx)
            amount_cents: Amount to refund in cents
            idempotency_key: Stable per local refund record
            metadata: Local references echoed on refund webhooks

        Returns:
            Dict with refund_id, amount and status

        Raises:
            StripeServiceError: If the gateway rejects the call
        """
        client = self._get_client()
        params: dict[str, Any] = {
            "payment_intent": payment_intent_id,
            "amount": amount_cents,
        }
        if metadata:
            params["metadata"] = metadata

        try:
            refund = client.refunds.create(
                params=params,
                options={"idempotency_key": idempotency_key},
            )
        except stripe.StripeError as e:
            error_code = getattr(e, "code", None)
            logger.error("Stripe refund creation failed: %s (code: %s)", str(e), error_code)
            raise StripeServiceError(
                f"Failed to create refund: {e}", stripe_error_code=error_code
            ) from e

        logger.info("Refund %s created for PaymentIntent %s", refund.id, payment_intent_id)
        return {"refund_id": refund.id, "amount": refund.amount, "status": refund.status}

    def verify_webhook_signature(self, payload: bytes, signature: str) -> dict[str, Any]:
        """Verify the Stripe-Signature header and parse the event.

        Raises:
            StripeServiceError: If the signature does not match
        """
        webhook_secret = self._get_webhook_secret()
        try:
            stripe.Webhook.construct_event(payload, signature, webhook_secret)
        except (stripe.SignatureVerificationError, ValueError) as e:
            logger.warning("Invalid webhook signature: %s", str(e))
            raise StripeServiceError("Invalid webhook signature") from e
        # Plain dicts for the handler, independent of StripeObject internals
        return json.loads(payload)


@lru_cache(maxsize=1)
def get_stripe_service() -> StripeService:
    return StripeService()
