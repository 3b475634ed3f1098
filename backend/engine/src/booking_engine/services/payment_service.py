"""Payment and refund records.

One Payment per booking (keyed by booking ID) and any number of Refund
records. A succeeded refund is added to ``Payment.refunded_cents`` exactly
once, guarded by the refund's ``applied_at`` marker, and the running total
is capped at ``amount_cents``.
"""

from typing import TYPE_CHECKING, Any

from boto3.dynamodb.conditions import Attr

from booking_engine.models import (
    BookingError,
    ErrorCode,
    Payment,
    PaymentProvider,
    PaymentStatus,
    Refund,
    RefundSource,
    RefundStatus,
)
from booking_engine.utils.dates import (
    format_datetime,
    parse_datetime,
    parse_optional_datetime,
    utc_now,
)
from booking_engine.utils.ids import generate_id
from booking_engine.utils.logging import get_logger, log_payment_operation

from .stripe_service import StripeServiceError

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService
    from .stripe_service import StripeService

logger = get_logger(__name__)

_APPLY_ATTEMPTS = 3

_GATEWAY_REFUND_STATUS = {
    "succeeded": RefundStatus.SUCCEEDED,
    "failed": RefundStatus.FAILED,
    "canceled": RefundStatus.CANCELED,
}


def map_gateway_refund_status(status: str | None) -> RefundStatus:
    """Gateway refund status to ours; anything unfinished is pending."""
    return _GATEWAY_REFUND_STATUS.get(status or "", RefundStatus.PENDING)


class PaymentService:
    """Persistence for payments and refunds."""

    PAYMENTS_TABLE = "payments"
    REFUNDS_TABLE = "refunds"

    def __init__(self, db: "DynamoDBService") -> None:
        self.db = db

    # Payments

    def payment_put_op(self, payment: Payment) -> dict[str, Any]:
        """Transactional insert of a new payment."""
        return self.db.put_op(
            self.PAYMENTS_TABLE,
            self._payment_to_item(payment),
            condition_expression="attribute_not_exists(booking_id)",
        )

    def get_payment(self, booking_id: str) -> Payment | None:
        item = self.db.get_item(
            self.PAYMENTS_TABLE, {"booking_id": booking_id}, consistent_read=True
        )
        return self._item_to_payment(item) if item else None

    def require_payment(self, booking_id: str) -> Payment:
        payment = self.get_payment(booking_id)
        if payment is None:
            raise BookingError(ErrorCode.PAYMENT_NOT_FOUND, {"booking_id": booking_id})
        return payment

    def set_checkout_session(
        self, booking_id: str, session_id: str, checkout_url: str | None
    ) -> None:
        """Persist the gateway session reference created after commit."""
        self.db.update_item(
            self.PAYMENTS_TABLE,
            {"booking_id": booking_id},
            "SET stripe_session_id = :sid, checkout_url = :url, updated_at = :now",
            {":sid": session_id, ":url": checkout_url, ":now": format_datetime(utc_now())},
        )

    def mark_paid_op(
        self, booking_id: str, payment_intent_id: str | None
    ) -> dict[str, Any]:
        """Transactional unpaid -> paid transition."""
        values: dict[str, Any] = {
            ":paid": PaymentStatus.PAID.value,
            ":unpaid": PaymentStatus.UNPAID.value,
            ":now": format_datetime(utc_now()),
        }
        expression = "SET #status = :paid, updated_at = :now"
        if payment_intent_id:
            expression += ", stripe_payment_intent_id = :pi"
            values[":pi"] = payment_intent_id
        return self.db.update_op(
            self.PAYMENTS_TABLE,
            {"booking_id": booking_id},
            expression,
            expression_attribute_values=values,
            expression_attribute_names={"#status": "status"},
            condition_expression="#status = :unpaid",
        )

    def mark_cancelled_op(self, booking_id: str) -> dict[str, Any]:
        """Transactional unpaid -> cancelled transition for never-charged payments."""
        return self.db.update_op(
            self.PAYMENTS_TABLE,
            {"booking_id": booking_id},
            "SET #status = :cancelled, updated_at = :now",
            expression_attribute_values={
                ":cancelled": PaymentStatus.CANCELLED.value,
                ":unpaid": PaymentStatus.UNPAID.value,
                ":now": format_datetime(utc_now()),
            },
            expression_attribute_names={"#status": "status"},
            condition_expression="#status = :unpaid",
        )

    # Refunds

    def build_refund(
        self,
        booking_id: str,
        *,
        source: RefundSource,
        amount_cents: int,
        currency: str = "eur",
        refund_request_id: str | None = None,
    ) -> Refund:
        """New pending refund with its gateway idempotency key."""
        now = utc_now()
        refund_id = generate_id("REF")
        return Refund(
            refund_id=refund_id,
            booking_id=booking_id,
            source=source,
            status=RefundStatus.PENDING,
            amount_cents=amount_cents,
            currency=currency,
            idempotency_key=f"refund:{source.value}:booking:{booking_id}:refund:{refund_id}",
            refund_request_id=refund_request_id,
            created_at=now,
            updated_at=now,
        )

    def refund_put_op(self, refund: Refund) -> dict[str, Any]:
        return self.db.put_op(
            self.REFUNDS_TABLE,
            self._refund_to_item(refund),
            condition_expression="attribute_not_exists(refund_id)",
        )

    def get_refund(self, refund_id: str) -> Refund | None:
        item = self.db.get_item(self.REFUNDS_TABLE, {"refund_id": refund_id}, consistent_read=True)
        return self._item_to_refund(item) if item else None

    def find_refund_by_stripe_id(self, stripe_refund_id: str) -> Refund | None:
        """Fallback lookup for gateway events without local metadata."""
        items = self.db.scan(
            self.REFUNDS_TABLE, filter_expression=Attr("stripe_refund_id").eq(stripe_refund_id)
        )
        return self._item_to_refund(items[0]) if items else None

    def list_refunds(self, booking_id: str) -> list[Refund]:
        """Refunds of a booking, oldest first."""
        items = self.db.query_by_gsi(
            self.REFUNDS_TABLE, "booking_id-index", "booking_id", booking_id
        )
        return sorted((self._item_to_refund(i) for i in items), key=lambda r: r.created_at)

    def record_gateway_submission(
        self,
        refund_id: str,
        stripe_refund_id: str,
        gateway_status: str | None,
    ) -> Refund | None:
        """Store the gateway refund ID and status after submission."""
        attrs = self.db.update_item(
            self.REFUNDS_TABLE,
            {"refund_id": refund_id},
            "SET stripe_refund_id = :rid, #status = :status, updated_at = :now",
            {
                ":rid": stripe_refund_id,
                ":status": map_gateway_refund_status(gateway_status).value,
                ":now": format_datetime(utc_now()),
            },
            {"#status": "status"},
        )
        refund = self._item_to_refund(attrs) if attrs else None
        if refund is not None and refund.status == RefundStatus.SUCCEEDED:
            self.apply_succeeded_once(refund.refund_id)
        return refund

    def submit_refund(
        self,
        stripe: "StripeService",
        refund: Refund,
        payment_intent_id: str,
        metadata: dict[str, str] | None = None,
    ) -> Refund:
        """Send a pending refund to the gateway under its idempotency key.

        Raises:
            StripeServiceError: After the refund has been marked failed
        """
        try:
            result = stripe.create_refund(
                payment_intent_id=payment_intent_id,
                amount_cents=refund.amount_cents,
                idempotency_key=refund.idempotency_key,
                metadata={
                    "localRefundId": refund.refund_id,
                    "bookingId": refund.booking_id,
                    "source": refund.source.value,
                    **(metadata or {}),
                },
            )
        except StripeServiceError as e:
            self.mark_refund_failed(refund.refund_id, str(e))
            raise

        log_payment_operation(
            logger,
            "submit_refund",
            booking_id=refund.booking_id,
            refund_id=refund.refund_id,
            amount_cents=refund.amount_cents,
            status=result["status"],
        )
        updated = self.record_gateway_submission(
            refund.refund_id, result["refund_id"], result["status"]
        )
        return updated or refund

    def mark_refund_failed(self, refund_id: str, reason: str) -> None:
        self.db.update_item(
            self.REFUNDS_TABLE,
            {"refund_id": refund_id},
            "SET #status = :failed, failure_reason = :reason, updated_at = :now",
            {
                ":failed": RefundStatus.FAILED.value,
                ":reason": reason,
                ":now": format_datetime(utc_now()),
            },
            {"#status": "status"},
        )
        log_payment_operation(
            logger, "refund_failed", refund_id=refund_id, status="failed", error=reason
        )

    def reset_refund_for_retry(self, refund_id: str) -> Refund | None:
        """failed -> pending so the same idempotency key can be resubmitted."""
        attrs = self.db.update_item(
            self.REFUNDS_TABLE,
            {"refund_id": refund_id},
            "SET #status = :pending, updated_at = :now REMOVE failure_reason",
            {
                ":pending": RefundStatus.PENDING.value,
                ":failed": RefundStatus.FAILED.value,
                ":now": format_datetime(utc_now()),
            },
            {"#status": "status"},
            condition_expression="#status = :failed",
        )
        return self._item_to_refund(attrs) if attrs else None

    def apply_refund_update(
        self,
        refund_id: str,
        gateway_status: str | None,
        stripe_refund_id: str | None = None,
    ) -> bool:
        """Apply a gateway refund status callback.

        Returns:
            True if this call added the refund to the payment total
        """
        status = map_gateway_refund_status(gateway_status)
        values: dict[str, Any] = {":status": status.value, ":now": format_datetime(utc_now())}
        expression = "SET #status = :status, updated_at = :now"
        if stripe_refund_id:
            expression += ", stripe_refund_id = :rid"
            values[":rid"] = stripe_refund_id

        condition = "attribute_exists(refund_id)"
        if status != RefundStatus.SUCCEEDED:
            # An applied refund keeps its succeeded status
            condition += " AND attribute_not_exists(applied_at)"
        attrs = self.db.update_item(
            self.REFUNDS_TABLE,
            {"refund_id": refund_id},
            expression,
            values,
            {"#status": "status"},
            condition_expression=condition,
        )
        if attrs is None:
            logger.warning("Refund %s missing or already applied; status update ignored", refund_id)
            return False
        if status != RefundStatus.SUCCEEDED:
            return False
        return self.apply_succeeded_once(refund_id)

    def apply_succeeded_once(self, refund_id: str) -> bool:
        """Add a succeeded refund to its payment, at most once.

        The refund's ``applied_at`` marker and the payment's previous
        ``refunded_cents`` are both guarded in one transaction.

        Returns:
            True if applied now, False if it had already been applied
        """
        for _ in range(_APPLY_ATTEMPTS):
            refund = self.get_refund(refund_id)
            if refund is None:
                raise BookingError(ErrorCode.REFUND_NOT_FOUND, {"refund_id": refund_id})
            if refund.applied_at is not None:
                return False
            payment = self.require_payment(refund.booking_id)

            refunded = min(payment.amount_cents, payment.refunded_cents + refund.amount_cents)
            payment_status = (
                PaymentStatus.REFUNDED
                if refunded >= payment.amount_cents
                else PaymentStatus.PARTIALLY_REFUNDED
            )
            now = format_datetime(utc_now())
            outcome = self.db.transact_write_detailed(
                [
                    self.db.update_op(
                        self.REFUNDS_TABLE,
                        {"refund_id": refund_id},
                        "SET applied_at = :now, #status = :succeeded, updated_at = :now",
                        expression_attribute_values={
                            ":now": now,
                            ":succeeded": RefundStatus.SUCCEEDED.value,
                        },
                        expression_attribute_names={"#status": "status"},
                        condition_expression="attribute_not_exists(applied_at)",
                    ),
                    self.db.update_op(
                        self.PAYMENTS_TABLE,
                        {"booking_id": refund.booking_id},
                        "SET refunded_cents = :refunded, #status = :status, updated_at = :now",
                        expression_attribute_values={
                            ":seen": payment.refunded_cents,
                            ":refunded": refunded,
                            ":status": payment_status.value,
                            ":now": now,
                        },
                        expression_attribute_names={"#status": "status"},
                        condition_expression="refunded_cents = :seen",
                    ),
                ]
            )
            if outcome.succeeded:
                log_payment_operation(
                    logger,
                    "refund_applied",
                    booking_id=refund.booking_id,
                    refund_id=refund_id,
                    amount_cents=refund.amount_cents,
                    status=payment_status.value,
                )
                return True
        raise BookingError(ErrorCode.CONCURRENT_UPDATE, {"refund_id": refund_id})

    # Mapping

    def _payment_to_item(self, payment: Payment) -> dict[str, Any]:
        return payment.model_dump(mode="json")

    def _item_to_payment(self, item: dict[str, Any]) -> Payment:
        return Payment(
            booking_id=item["booking_id"],
            provider=PaymentProvider(item["provider"]),
            status=PaymentStatus(item["status"]),
            amount_cents=int(item["amount_cents"]),
            refunded_cents=int(item.get("refunded_cents", 0)),
            credits_applied_cents=int(item.get("credits_applied_cents", 0)),
            currency=item.get("currency", "eur"),
            stripe_session_id=item.get("stripe_session_id"),
            stripe_payment_intent_id=item.get("stripe_payment_intent_id"),
            checkout_url=item.get("checkout_url"),
            created_at=parse_datetime(item["created_at"]),
            updated_at=parse_datetime(item["updated_at"]),
        )

    def _refund_to_item(self, refund: Refund) -> dict[str, Any]:
        return refund.model_dump(mode="json")

    def _item_to_refund(self, item: dict[str, Any]) -> Refund:
        return Refund(
            refund_id=item["refund_id"],
            booking_id=item["booking_id"],
            source=RefundSource(item["source"]),
            status=RefundStatus(item["status"]),
            amount_cents=int(item["amount_cents"]),
            currency=item.get("currency", "eur"),
            idempotency_key=item["idempotency_key"],
            stripe_refund_id=item.get("stripe_refund_id"),
            refund_request_id=item.get("refund_request_id"),
            failure_reason=item.get("failure_reason"),
            applied_at=parse_optional_datetime(item.get("applied_at")),
            created_at=parse_datetime(item["created_at"]),
            updated_at=parse_datetime(item["updated_at"]),
        )
