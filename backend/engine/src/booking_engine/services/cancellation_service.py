"""Policy-driven cancellation: preview, execute and refund follow-up.

The payout base is the cash actually charged (``Payment.amount_cents``);
applied credit is never refunded. Cash refunds are capped at what is still
refundable on the payment. The booking status change, the night release,
the cancellation record, the voucher and the pending refund record commit
together; the gateway refund is submitted afterwards.
"""

import datetime as dt
from typing import TYPE_CHECKING, Any

from booking_engine.models import (
    ACTIVE_BOOKING_STATUSES,
    Booking,
    BookingError,
    BookingStatus,
    Caller,
    Cancellation,
    CancellationPreview,
    CancellationResult,
    ErrorCode,
    Payment,
    PaymentProvider,
    PaymentStatus,
    Refund,
    RefundSource,
    RefundStatus,
    RefundStatusView,
    RefundTier,
    RefundType,
    StateViolation,
)
from booking_engine.utils.dates import days_before_start, utc_now
from booking_engine.utils.logging import get_logger, log_booking_operation

from .stripe_service import StripeServiceError

if TYPE_CHECKING:
    from .booking_service import BookingService
    from .credit_ledger import CreditLedger
    from .dynamodb import DynamoDBService
    from .notification_service import NotificationService
    from .payment_service import PaymentService
    from .refund_policy_service import RefundPolicyService
    from .stripe_service import StripeService

logger = get_logger(__name__)

MISSING_PAYMENT_INTENT = "Missing payment intent"


class _Payout:
    """Cash refund and voucher decided for one cancellation."""

    def __init__(
        self,
        tier: RefundTier | None,
        days_before: int | None,
        refund_cents: int = 0,
        voucher_cents: int = 0,
    ) -> None:
        self.tier = tier
        self.days_before = days_before
        self.refund_cents = refund_cents
        self.voucher_cents = voucher_cents

    @property
    def refund_type(self) -> RefundType:
        if self.refund_cents > 0:
            return RefundType.STRIPE_REFUND
        if self.voucher_cents > 0:
            return RefundType.VOUCHER
        return RefundType.NONE


class CancellationService:
    """Cancels bookings according to the refund policy."""

    def __init__(
        self,
        db: "DynamoDBService",
        bookings: "BookingService",
        payments: "PaymentService",
        credits: "CreditLedger",
        refund_policy: "RefundPolicyService",
        stripe: "StripeService",
        notifications: "NotificationService",
    ) -> None:
        self.db = db
        self.bookings = bookings
        self.payments = payments
        self.credits = credits
        self.refund_policy = refund_policy
        self.stripe = stripe
        self.notifications = notifications

    def preview_cancellation(
        self, booking_id: str, caller: Caller, now: dt.datetime | None = None
    ) -> CancellationPreview:
        """Policy tier and payout if the booking were cancelled at ``now``."""
        now = now or utc_now()
        booking = self.bookings.require_visible_booking(booking_id, caller)
        payment = self.payments.get_payment(booking_id)
        payout = self._payout(booking, payment, now)

        return CancellationPreview(
            booking_id=booking_id,
            currency=payment.currency if payment else booking.currency,
            policy=dict(self.refund_policy.summarize(now, booking.start_date)),
            outcome={
                "refund_type": payout.refund_type.value,
                "stripe_refund_cents": payout.refund_cents,
                "voucher_cents": payout.voucher_cents,
            },
        )

    def cancel_booking(
        self,
        booking_id: str,
        caller: Caller,
        reason: str | None = None,
        now: dt.datetime | None = None,
    ) -> CancellationResult:
        """Cancel an active booking and pay out per policy.

        Args:
            booking_id: Booking to cancel
            caller: Owner of the booking or an admin
            reason: Free-text reason stored on the cancellation record
            now: Clock override for tests

        Returns:
            CancellationResult with the refund and voucher issued

        Raises:
            StateViolation: If the booking is not pending or confirmed
            BookingError: REFUND_SUBMISSION_FAILED if the gateway refund failed
                after the cancellation committed
        """
        now = now or utc_now()
        booking = self.bookings.require_visible_booking(booking_id, caller)
        if booking.status not in ACTIVE_BOOKING_STATUSES:
            raise StateViolation(booking_id=booking_id, status=booking.status.value)

        payment = self.payments.get_payment(booking_id)
        payout = self._payout(booking, payment, now)

        ops: list[dict[str, Any]] = self.bookings.close_ops(
            booking, [booking.status], BookingStatus.CANCELLED, now
        )
        if payment is not None and payment.status == PaymentStatus.UNPAID:
            ops.append(self.payments.mark_cancelled_op(booking_id))

        voucher_id = None
        if payout.voucher_cents > 0 and booking.customer_id:
            voucher = self.credits.build_voucher(
                booking.customer_id,
                payout.voucher_cents,
                origin_booking_id=booking_id,
                currency=booking.currency,
            )
            voucher_id = voucher.voucher_id
            ops.append(self.credits.issue_op(voucher))

        refund: Refund | None = None
        if payout.refund_cents > 0 and payment is not None:
            refund = self.payments.build_refund(
                booking_id,
                source=RefundSource.POLICY_CANCEL,
                amount_cents=payout.refund_cents,
                currency=payment.currency,
            )
            if not payment.stripe_payment_intent_id:
                refund = refund.model_copy(
                    update={
                        "status": RefundStatus.FAILED,
                        "failure_reason": MISSING_PAYMENT_INTENT,
                    }
                )
            ops.append(self.payments.refund_put_op(refund))

        ops.append(
            self.bookings.cancellation_op(
                Cancellation(
                    booking_id=booking_id,
                    reason=reason or "cancelled_by_customer",
                    cancelled_by=caller.customer_id or caller.role.value,
                    policy_tier=payout.tier,
                    days_before=payout.days_before,
                    refund_cents=payout.refund_cents,
                    voucher_cents=payout.voucher_cents,
                    voucher_id=voucher_id,
                    cancelled_at=now,
                )
            )
        )

        if not self.db.transact_write(ops):
            current = self.bookings.require_booking(booking_id)
            raise StateViolation(booking_id=booking_id, status=current.status.value)

        log_booking_operation(
            logger,
            "cancel_booking",
            booking_id=booking_id,
            property_id=booking.property_id,
            status=BookingStatus.CANCELLED.value,
            tier=payout.tier.value if payout.tier else None,
            refund_cents=payout.refund_cents,
            voucher_cents=payout.voucher_cents,
        )
        if payout.tier == RefundTier.LESS_THAN_15 and payout.voucher_cents > 0:
            self.notifications.late_cancellation(booking, payout.voucher_cents)

        result = CancellationResult(
            booking_id=booking_id,
            status=BookingStatus.CANCELLED,
            refund_type=payout.refund_type,
            refund_cents=payout.refund_cents,
            voucher_cents=payout.voucher_cents,
            voucher_id=voucher_id,
            refund_id=refund.refund_id if refund else None,
            refund_status=refund.status if refund else None,
        )
        if refund is None:
            return result

        if refund.status == RefundStatus.FAILED:
            self.notifications.refund_failed(booking_id, refund.refund_id, MISSING_PAYMENT_INTENT)
            raise BookingError(
                ErrorCode.REFUND_SUBMISSION_FAILED,
                {
                    "booking_id": booking_id,
                    "refund_id": refund.refund_id,
                    "reason": MISSING_PAYMENT_INTENT,
                },
            )

        submitted = self._submit(refund, payment)
        return result.model_copy(update={"refund_status": submitted.status})

    def retry_refund(self, refund_id: str, caller: Caller) -> Refund:
        """Resubmit a failed refund with its original idempotency key (admin).

        Raises:
            StateViolation: If the refund is not in failed status
            BookingError: REFUND_SUBMISSION_FAILED if the gateway fails again
        """
        if not caller.is_admin:
            raise BookingError(ErrorCode.ADMIN_REQUIRED)
        refund = self.payments.get_refund(refund_id)
        if refund is None:
            raise BookingError(ErrorCode.REFUND_NOT_FOUND, {"refund_id": refund_id})
        payment = self.payments.require_payment(refund.booking_id)
        if not payment.stripe_payment_intent_id:
            raise BookingError(
                ErrorCode.REFUND_SUBMISSION_FAILED,
                {"refund_id": refund_id, "reason": MISSING_PAYMENT_INTENT},
            )

        reset = self.payments.reset_refund_for_retry(refund_id)
        if reset is None:
            raise StateViolation(refund_id=refund_id, status=refund.status.value)
        return self._submit(reset, payment)

    def get_refund_status(self, booking_id: str, caller: Caller) -> RefundStatusView:
        """Latest refund and the cancellation payout of a booking."""
        booking = self.bookings.require_visible_booking(booking_id, caller)
        payment = self.payments.get_payment(booking_id)
        refunds = self.payments.list_refunds(booking_id)
        return RefundStatusView(
            booking_id=booking_id,
            booking_status=booking.status,
            currency=payment.currency if payment else booking.currency,
            cancellation=self.bookings.get_cancellation(booking_id),
            refund=refunds[-1] if refunds else None,
        )

    def _payout(
        self, booking: Booking, payment: Payment | None, now: dt.datetime
    ) -> _Payout:
        days = days_before_start(now, booking.start_date)
        tier = self.refund_policy.get_tier(days).tier

        # Admin-provider payments carry no cash; unpaid sessions charged nothing
        if (
            payment is None
            or payment.provider != PaymentProvider.STRIPE
            or payment.status in (PaymentStatus.UNPAID, PaymentStatus.CANCELLED)
        ):
            return _Payout(tier, days)

        outcome = self.refund_policy.compute_outcome(days, payment.amount_cents)
        return _Payout(
            tier,
            days,
            refund_cents=min(outcome["refund_cents"], payment.refundable_remaining_cents),
            voucher_cents=outcome["voucher_cents"],
        )

    def _submit(self, refund: Refund, payment: Payment) -> Refund:
        try:
            return self.payments.submit_refund(
                self.stripe, refund, payment.stripe_payment_intent_id or ""
            )
        except StripeServiceError as e:
            self.notifications.refund_failed(refund.booking_id, refund.refund_id, str(e))
            raise BookingError(
                ErrorCode.REFUND_SUBMISSION_FAILED,
                {"booking_id": refund.booking_id, "refund_id": refund.refund_id},
            ) from e
