"""Customer refund requests decided by an administrator.

A request asks for more than the cancellation policy paid out. Approval
refunds only what is still refundable on the payment, never more, and
cancels the booking if it is still active.
"""

import datetime as dt
from typing import TYPE_CHECKING, Any

from boto3.dynamodb.conditions import Attr

from booking_engine.models import (
    ACTIVE_BOOKING_STATUSES,
    BookingError,
    BookingStatus,
    Caller,
    Cancellation,
    ErrorCode,
    Payment,
    PaymentProvider,
    PaymentStatus,
    Refund,
    RefundRequest,
    RefundRequestDecision,
    RefundRequestPreview,
    RefundRequestStatus,
    RefundRequestSummary,
    RefundSource,
    RefundStatus,
    StateViolation,
)
from booking_engine.utils.dates import format_datetime, utc_now
from booking_engine.utils.ids import generate_id
from booking_engine.utils.logging import get_logger, log_payment_operation

from .dynamodb import item_to_json
from .stripe_service import StripeServiceError

if TYPE_CHECKING:
    from .booking_service import BookingService
    from .dynamodb import DynamoDBService
    from .notification_service import NotificationService
    from .payment_service import PaymentService
    from .stripe_service import StripeService

logger = get_logger(__name__)

APPROVED_REASON = "refund_request_approved"

_REFUNDABLE_PAYMENT_STATUSES = (PaymentStatus.PAID, PaymentStatus.PARTIALLY_REFUNDED)


class RefundRequestService:
    """Create, list and decide refund requests."""

    TABLE = "refund-requests"

    def __init__(
        self,
        db: "DynamoDBService",
        bookings: "BookingService",
        payments: "PaymentService",
        stripe: "StripeService",
        notifications: "NotificationService",
    ) -> None:
        self.db = db
        self.bookings = bookings
        self.payments = payments
        self.stripe = stripe
        self.notifications = notifications

    def get_request(self, request_id: str) -> RefundRequest | None:
        item = self.db.get_item(self.TABLE, {"request_id": request_id}, consistent_read=True)
        return self._item_to_request(item) if item else None

    def require_request(self, request_id: str) -> RefundRequest:
        request = self.get_request(request_id)
        if request is None:
            raise BookingError(ErrorCode.REFUND_REQUEST_NOT_FOUND, {"request_id": request_id})
        return request

    def list_booking_requests(self, booking_id: str) -> list[RefundRequest]:
        items = self.db.query_by_gsi(self.TABLE, "booking_id-index", "booking_id", booking_id)
        return [self._item_to_request(item) for item in items]

    def preview_refund_request(self, booking_id: str, caller: Caller) -> RefundRequestPreview:
        """Amounts a customer sees before asking for a refund."""
        booking = self.bookings.require_visible_booking(booking_id, caller)
        payment = self.payments.get_payment(booking_id)
        return RefundRequestPreview(
            booking_id=booking_id,
            currency=payment.currency if payment else booking.currency,
            booking_total_cents=booking.total_price * 100,
            refundable_remaining_cents=self.outstanding_refundable_cents(payment),
        )

    def create_refund_request(
        self, booking_id: str, caller: Caller, reason: str | None = None
    ) -> RefundRequest:
        """File a refund request on the caller's own booking.

        Raises:
            BookingError: AUTH_REQUIRED, FORBIDDEN, BOOKING_NOT_FOUND or
                REFUND_REQUEST_EXISTS while another request is pending
        """
        if not caller.customer_id:
            raise BookingError(ErrorCode.AUTH_REQUIRED)
        booking = self.bookings.require_visible_booking(booking_id, caller)
        if booking.customer_id != caller.customer_id:
            raise BookingError(ErrorCode.FORBIDDEN, {"booking_id": booking_id})

        pending = [
            r
            for r in self.list_booking_requests(booking_id)
            if r.status == RefundRequestStatus.PENDING
        ]
        if pending:
            raise BookingError(
                ErrorCode.REFUND_REQUEST_EXISTS,
                {"booking_id": booking_id, "request_id": pending[0].request_id},
            )

        request = RefundRequest(
            request_id=generate_id("RRQ"),
            booking_id=booking_id,
            customer_id=caller.customer_id,
            reason=reason,
            status=RefundRequestStatus.PENDING,
            created_at=utc_now(),
        )
        self.db.put_item(
            self.TABLE,
            self._request_to_item(request),
            condition_expression="attribute_not_exists(request_id)",
        )
        logger.info("Refund request %s created for booking %s", request.request_id, booking_id)
        self.notifications.refund_requested(request)
        return request

    def list_refund_requests(
        self,
        caller: Caller,
        status: RefundRequestStatus | None = RefundRequestStatus.PENDING,
    ) -> list[RefundRequestSummary]:
        """Refund requests for the admin queue, newest first."""
        if not caller.is_admin:
            raise BookingError(ErrorCode.ADMIN_REQUIRED)
        filter_expression = Attr("status").eq(status.value) if status else None
        items = self.db.scan(self.TABLE, filter_expression=filter_expression)
        requests = sorted(
            (self._item_to_request(item) for item in items),
            key=lambda r: r.created_at,
            reverse=True,
        )
        return [
            RefundRequestSummary(
                **request.model_dump(),
                refundable_remaining_cents=self.outstanding_refundable_cents(
                    self.payments.get_payment(request.booking_id)
                ),
            )
            for request in requests
        ]

    def approve_refund_request(
        self, request_id: str, caller: Caller, admin_note: str | None = None
    ) -> RefundRequestDecision:
        """Approve a pending request and refund the remaining balance.

        The request decision, the booking cancellation (when still active)
        and the pending refund record commit together; the gateway refund is
        submitted afterwards.

        Args:
            request_id: Request to approve
            caller: Administrator deciding the request
            admin_note: Note stored on the request

        Returns:
            RefundRequestDecision with the refund, if any cash was left

        Raises:
            StateViolation: REFUND_REQUEST_DECIDED if no longer pending
            BookingError: NOTHING_TO_REFUND without a captured gateway payment,
                REFUND_SUBMISSION_FAILED if the gateway call failed
        """
        if not caller.is_admin:
            raise BookingError(ErrorCode.ADMIN_REQUIRED)
        request = self._require_pending(request_id)
        booking = self.bookings.require_booking(request.booking_id)
        payment = self.payments.get_payment(request.booking_id)
        if (
            payment is None
            or payment.provider != PaymentProvider.STRIPE
            or payment.status not in _REFUNDABLE_PAYMENT_STATUSES
            or not payment.stripe_payment_intent_id
        ):
            raise BookingError(ErrorCode.NOTHING_TO_REFUND, {"booking_id": booking.booking_id})

        now = utc_now()
        remaining = self.outstanding_refundable_cents(payment)
        refund: Refund | None = None
        if remaining > 0:
            refund = self.payments.build_refund(
                booking.booking_id,
                source=RefundSource.ADMIN_REQUEST,
                amount_cents=remaining,
                currency=payment.currency,
                refund_request_id=request_id,
            )

        ops: list[dict[str, Any]] = [
            self._decide_op(
                request_id, RefundRequestStatus.APPROVED, caller, admin_note, now, refund
            )
        ]
        if booking.status in ACTIVE_BOOKING_STATUSES:
            ops.extend(
                self.bookings.close_ops(booking, [booking.status], BookingStatus.CANCELLED, now)
            )
            ops.append(
                self.bookings.cancellation_op(
                    Cancellation(
                        booking_id=booking.booking_id,
                        reason=APPROVED_REASON,
                        cancelled_by=caller.customer_id or caller.role.value,
                        refund_cents=remaining,
                        cancelled_at=now,
                    )
                )
            )
        if refund is not None:
            ops.append(self.payments.refund_put_op(refund))

        if not self.db.transact_write(ops):
            current = self.require_request(request_id)
            if current.status != RefundRequestStatus.PENDING:
                raise StateViolation(
                    ErrorCode.REFUND_REQUEST_DECIDED,
                    request_id=request_id,
                    status=current.status.value,
                )
            raise StateViolation(ErrorCode.CONCURRENT_UPDATE, request_id=request_id)

        log_payment_operation(
            logger,
            "approve_refund_request",
            booking_id=booking.booking_id,
            request_id=request_id,
            amount_cents=remaining,
        )
        decided = self.require_request(request_id)
        if refund is None:
            return RefundRequestDecision(request=decided)

        try:
            submitted = self.payments.submit_refund(
                self.stripe,
                refund,
                payment.stripe_payment_intent_id,
                metadata={"refundRequestId": request_id},
            )
        except StripeServiceError as e:
            self.notifications.refund_failed(booking.booking_id, refund.refund_id, str(e))
            raise BookingError(
                ErrorCode.REFUND_SUBMISSION_FAILED,
                {"booking_id": booking.booking_id, "refund_id": refund.refund_id},
            ) from e
        return RefundRequestDecision(request=decided, refund=submitted)

    def reject_refund_request(
        self, request_id: str, caller: Caller, admin_note: str | None = None
    ) -> RefundRequestDecision:
        """Reject a pending request. The booking is left untouched."""
        if not caller.is_admin:
            raise BookingError(ErrorCode.ADMIN_REQUIRED)
        self._require_pending(request_id)
        op = self._decide_op(
            request_id, RefundRequestStatus.REJECTED, caller, admin_note, utc_now()
        )
        if not self.db.transact_write([op]):
            raise StateViolation(ErrorCode.REFUND_REQUEST_DECIDED, request_id=request_id)
        logger.info("Refund request %s rejected", request_id)
        return RefundRequestDecision(request=self.require_request(request_id))

    def outstanding_refundable_cents(self, payment: Payment | None) -> int:
        """Cash still refundable once refunds in flight are accounted for.

        ``refunded_cents`` only moves when the gateway confirms a refund, so
        pending and not-yet-applied refunds are subtracted as well.
        """
        if payment is None or payment.provider != PaymentProvider.STRIPE:
            return 0
        if payment.status not in _REFUNDABLE_PAYMENT_STATUSES:
            return 0
        in_flight = sum(
            r.amount_cents
            for r in self.payments.list_refunds(payment.booking_id)
            if r.status == RefundStatus.PENDING
            or (r.status == RefundStatus.SUCCEEDED and r.applied_at is None)
        )
        return max(0, payment.refundable_remaining_cents - in_flight)

    def _require_pending(self, request_id: str) -> RefundRequest:
        request = self.require_request(request_id)
        if request.status != RefundRequestStatus.PENDING:
            raise StateViolation(
                ErrorCode.REFUND_REQUEST_DECIDED,
                request_id=request_id,
                status=request.status.value,
            )
        return request

    def _decide_op(
        self,
        request_id: str,
        status: RefundRequestStatus,
        caller: Caller,
        admin_note: str | None,
        now: dt.datetime,
        refund: Refund | None = None,
    ) -> dict[str, Any]:
        expression = (
            "SET #status = :status, decided_by = :by, decided_at = :now, admin_note = :note"
        )
        values: dict[str, Any] = {
            ":status": status.value,
            ":pending": RefundRequestStatus.PENDING.value,
            ":by": caller.customer_id or caller.role.value,
            ":now": format_datetime(now),
            ":note": admin_note,
        }
        if refund is not None:
            expression += ", refund_id = :rid"
            values[":rid"] = refund.refund_id
        return self.db.update_op(
            self.TABLE,
            {"request_id": request_id},
            expression,
            expression_attribute_values=values,
            expression_attribute_names={"#status": "status"},
            condition_expression="#status = :pending",
        )

    def _request_to_item(self, request: RefundRequest) -> dict[str, Any]:
        return request.model_dump(mode="json")

    def _item_to_request(self, item: dict[str, Any]) -> RefundRequest:
        return RefundRequest.model_validate_json(item_to_json(item))
