"""Booking transaction orchestrator.

Composes calendar math, availability, pricing and the credit ledger into a
single create-booking operation:

    validate -> check_capacity -> check_blocking_overlap -> resolve_coverage
    -> price -> [privileged_path | customer_path] -> persist

The booking, its payment, its night claims and any voucher consumption are
written in one DynamoDB transaction. The checkout session is created only
after that transaction commits; its failure leaves the booking pending and
is reported separately from the booking outcome.
"""

import datetime as dt
import os
import uuid
from typing import TYPE_CHECKING, Any

from booking_engine.models import (
    Booking,
    BookingError,
    BookingQuote,
    BookingRequest,
    BookingResult,
    BookingStatus,
    Caller,
    Cancellation,
    CoverageResult,
    CreditMismatch,
    DatesUnavailable,
    ErrorCode,
    Payment,
    PaymentProvider,
    PaymentStatus,
    PriceBreakdown,
    Property,
    StateViolation,
)
from booking_engine.utils.dates import normalize_date_only, utc_now
from booking_engine.utils.ids import generate_id
from booking_engine.utils.logging import get_logger, log_booking_operation

from .night_claims import MAX_CLAIMED_NIGHTS
from .stripe_service import StripeServiceError

if TYPE_CHECKING:
    from .availability import AvailabilityResolver
    from .booking_service import BookingService
    from .credit_ledger import CreditLedger, VoucherDraw
    from .dynamodb import DynamoDBService
    from .notification_service import NotificationService
    from .payment_service import PaymentService
    from .pricing import PricingEngine
    from .property_service import PropertyService
    from .refund_policy_service import RefundPolicyService
    from .stripe_service import StripeService

logger = get_logger(__name__)

HOLD_MINUTES = 30
EXPIRED_UNPAID_REASON = "expired_unpaid"
MAX_TRANSACTION_ITEMS = 100
# Booking put + payment put
_FIXED_BOOKING_OPS = 2


class _ValidatedStay:
    """Result of the validation and pricing steps shared by quote and create."""

    def __init__(
        self,
        prop: Property,
        start: dt.date,
        end: dt.date,
        coverage: CoverageResult,
        breakdown: PriceBreakdown,
    ) -> None:
        self.prop = prop
        self.start = start
        self.end = end
        self.coverage = coverage
        self.breakdown = breakdown

    @property
    def nights(self) -> int:
        return self.breakdown.nights

    @property
    def booking_period_id(self) -> str | None:
        arrival = self.coverage.arrival_period
        return arrival.period_id if arrival else None

    @property
    def max_vouchers(self) -> int:
        return MAX_TRANSACTION_ITEMS - _FIXED_BOOKING_OPS - self.nights


class BookingOrchestrator:
    """Quote, create and move bookings through their lifecycle."""

    def __init__(
        self,
        db: "DynamoDBService",
        properties: "PropertyService",
        availability: "AvailabilityResolver",
        pricing: "PricingEngine",
        credits: "CreditLedger",
        bookings: "BookingService",
        payments: "PaymentService",
        refund_policy: "RefundPolicyService",
        stripe: "StripeService",
        notifications: "NotificationService",
        app_url: str | None = None,
    ) -> None:
        self.db = db
        self.properties = properties
        self.availability = availability
        self.pricing = pricing
        self.credits = credits
        self.bookings = bookings
        self.payments = payments
        self.refund_policy = refund_policy
        self.stripe = stripe
        self.notifications = notifications
        self.app_url = (app_url or os.environ.get("APP_URL", "http://localhost:5173")).rstrip("/")

    # Quote

    def quote(
        self,
        request: BookingRequest,
        caller: Caller,
        now: dt.datetime | None = None,
    ) -> BookingQuote:
        """Price a stay and preview the refund policy without side effects.

        Credit is only estimated, never consumed.

        Raises:
            BookingError: The same rejections create_booking would produce
        """
        now = now or utc_now()
        if not caller.is_admin and not caller.customer_id:
            raise BookingError(ErrorCode.AUTH_REQUIRED)

        stay = self._validate_and_price(request)
        credits_cents = 0
        if request.use_credit and not caller.is_admin and caller.customer_id:
            credits_cents = self.credits.estimate_applicable(
                caller.customer_id,
                stay.breakdown.gross_total_cents,
                now,
                max_vouchers=stay.max_vouchers,
            )
        breakdown = self.pricing.with_credits(stay.breakdown, credits_cents)

        return BookingQuote(
            property_id=stay.prop.property_id,
            start_date=stay.start,
            end_date=stay.end,
            booking_period_id=stay.booking_period_id,
            price_breakdown=breakdown,
            credits_applied_cents=credits_cents,
            payable_cents=breakdown.cash_due_now_cents,
            refund_policy={
                "tiers": self.refund_policy.policy_table(),
                "applicable": dict(self.refund_policy.summarize(now, stay.start)),
                "applies_to": breakdown.refund_policy_applies_to,
            },
        )

    # Create

    def create_booking(
        self,
        request: BookingRequest,
        caller: Caller,
        now: dt.datetime | None = None,
    ) -> BookingResult:
        """Create a booking atomically.

        Args:
            request: Stay, guests and contact details
            caller: Resolved identity and role
            now: Clock override for tests

        Returns:
            BookingResult with the booking, its payment and an optional checkout URL

        Raises:
            BookingError: Validation, conflict, auth or state failures
        """
        now = now or utc_now()
        if not request.guest_name or not request.guest_name.strip():
            raise BookingError(ErrorCode.MISSING_FIELD, {"field": "guest_name"})
        if not request.guest_email or not request.guest_email.strip():
            raise BookingError(ErrorCode.MISSING_FIELD, {"field": "guest_email"})

        stay = self._validate_and_price(request)

        if caller.is_admin:
            return self._create_privileged(request, caller, stay, now)
        if not caller.customer_id:
            raise BookingError(ErrorCode.AUTH_REQUIRED)
        return self._create_for_customer(request, caller.customer_id, stay, now)

    def _validate_and_price(self, request: BookingRequest) -> _ValidatedStay:
        start = normalize_date_only(request.start_date)
        end = normalize_date_only(request.end_date)
        if end <= start:
            raise BookingError(
                ErrorCode.INVALID_DATE_RANGE,
                {"start_date": start.isoformat(), "end_date": end.isoformat()},
            )
        nights = (end - start).days
        if nights > MAX_CLAIMED_NIGHTS:
            raise BookingError(
                ErrorCode.STAY_TOO_LONG, {"nights": nights, "max_nights": MAX_CLAIMED_NIGHTS}
            )

        prop = self.properties.require_property(request.property_id)
        guests = request.guests
        if guests.counted > prop.max_guests:
            raise BookingError(
                ErrorCode.MAX_GUESTS_EXCEEDED,
                {"max_guests": prop.max_guests, "requested": guests.counted},
            )

        if self.availability.is_range_blocked(prop.property_id, start, end):
            raise DatesUnavailable(prop.property_id, start.isoformat(), end.isoformat())

        coverage = self.availability.resolve_coverage(prop.property_id, start, end)
        if not coverage.ok:
            raise BookingError(
                ErrorCode.PERIOD_CLOSED, {"period_id": coverage.closed_period_id}
            )

        min_nights = self.availability.effective_min_nights(prop, coverage)
        if nights < min_nights:
            raise BookingError(
                ErrorCode.MINIMUM_NIGHTS_NOT_MET,
                {"min_nights": min_nights, "requested": nights},
            )

        max_guests = self.availability.effective_max_guests(prop, coverage.segments)
        if guests.counted > max_guests:
            raise BookingError(
                ErrorCode.MAX_GUESTS_EXCEEDED,
                {"max_guests": max_guests, "requested": guests.counted},
            )

        breakdown = self.pricing.price_stay(prop, coverage)
        return _ValidatedStay(prop, start, end, coverage, breakdown)

    def _create_privileged(
        self,
        request: BookingRequest,
        caller: Caller,
        stay: _ValidatedStay,
        now: dt.datetime,
    ) -> BookingResult:
        booking = self._build_booking(
            request, caller.customer_id, stay, stay.breakdown, BookingStatus.CONFIRMED, now
        )
        payment = self._build_payment(
            booking,
            PaymentProvider.ADMIN,
            PaymentStatus.PAID,
            amount_cents=0,
            credits_cents=0,
            now=now,
        )
        self._persist(booking, payment, draws=[])
        log_booking_operation(
            logger,
            "create_booking",
            booking_id=booking.booking_id,
            property_id=booking.property_id,
            status=booking.status.value,
            path="privileged",
        )
        return BookingResult(booking=booking, payment=payment)

    def _create_for_customer(
        self,
        request: BookingRequest,
        customer_id: str,
        stay: _ValidatedStay,
        now: dt.datetime,
    ) -> BookingResult:
        gross_cents = stay.breakdown.gross_total_cents
        credits_cents = 0
        if request.use_credit:
            credits_cents = self.credits.estimate_applicable(
                customer_id, gross_cents, now, max_vouchers=stay.max_vouchers
            )
        draws = (
            self.credits.plan_consumption(
                customer_id, credits_cents, now, max_vouchers=stay.max_vouchers
            )
            if credits_cents > 0
            else []
        )
        breakdown = self.pricing.with_credits(stay.breakdown, credits_cents)
        payable_cents = breakdown.cash_due_now_cents

        if payable_cents == 0:
            booking = self._build_booking(
                request, customer_id, stay, breakdown, BookingStatus.CONFIRMED, now
            )
            payment = self._build_payment(
                booking,
                PaymentProvider.ADMIN,
                PaymentStatus.PAID,
                amount_cents=0,
                credits_cents=credits_cents,
                now=now,
            )
        else:
            booking = self._build_booking(
                request, customer_id, stay, breakdown, BookingStatus.PENDING, now
            )
            payment = self._build_payment(
                booking,
                PaymentProvider.STRIPE,
                PaymentStatus.UNPAID,
                amount_cents=payable_cents,
                credits_cents=credits_cents,
                now=now,
            )

        self._persist(booking, payment, draws)
        log_booking_operation(
            logger,
            "create_booking",
            booking_id=booking.booking_id,
            property_id=booking.property_id,
            status=booking.status.value,
            credits_applied_cents=credits_cents,
            payable_cents=payable_cents,
        )

        if booking.status == BookingStatus.CONFIRMED:
            return BookingResult(booking=booking, payment=payment)
        return self._attach_checkout(booking, payment, request.use_credit)

    def _persist(
        self, booking: Booking, payment: Payment, draws: list["VoucherDraw"]
    ) -> None:
        claim_ops = self.bookings.claims.claim_ops(
            booking.property_id,
            booking.start_date,
            booking.end_date,
            owner_type="booking",
            owner_id=booking.booking_id,
        )
        voucher_ops = self.credits.consume_ops(draws)
        ops = [
            self.bookings.put_op(booking),
            self.payments.payment_put_op(payment),
            *claim_ops,
            *voucher_ops,
        ]

        outcome = self.db.transact_write_detailed(ops)
        if outcome.succeeded:
            return

        failed = set(outcome.failed_indexes())
        claim_indexes = set(range(_FIXED_BOOKING_OPS, _FIXED_BOOKING_OPS + len(claim_ops)))
        voucher_indexes = set(range(_FIXED_BOOKING_OPS + len(claim_ops), len(ops)))
        if failed & claim_indexes:
            log_booking_operation(
                logger,
                "create_booking",
                property_id=booking.property_id,
                error="nights claimed concurrently",
            )
            raise DatesUnavailable(
                booking.property_id,
                booking.start_date.isoformat(),
                booking.end_date.isoformat(),
            )
        if failed & voucher_indexes:
            raise CreditMismatch(payment.credits_applied_cents)
        raise StateViolation(ErrorCode.CONCURRENT_UPDATE, booking_id=booking.booking_id)

    def _build_booking(
        self,
        request: BookingRequest,
        customer_id: str | None,
        stay: _ValidatedStay,
        breakdown: PriceBreakdown,
        status: BookingStatus,
        now: dt.datetime,
    ) -> Booking:
        return Booking(
            booking_id=generate_id("BKG"),
            property_id=stay.prop.property_id,
            customer_id=customer_id,
            start_date=stay.start,
            end_date=stay.end,
            guests=request.guests,
            guest_name=(request.guest_name or "").strip(),
            guest_email=(request.guest_email or "").strip(),
            guest_phone=request.guest_phone,
            notes=request.notes,
            total_price=breakdown.total_eur,
            currency=stay.prop.currency,
            price_breakdown=breakdown,
            booking_period_id=stay.booking_period_id,
            status=status,
            created_at=now,
            updated_at=now,
        )

    def _build_payment(
        self,
        booking: Booking,
        provider: PaymentProvider,
        status: PaymentStatus,
        *,
        amount_cents: int,
        credits_cents: int,
        now: dt.datetime,
    ) -> Payment:
        return Payment(
            booking_id=booking.booking_id,
            provider=provider,
            status=status,
            amount_cents=amount_cents,
            credits_applied_cents=credits_cents,
            currency=booking.currency,
            created_at=now,
            updated_at=now,
        )

    # Checkout sessions

    def _attach_checkout(
        self,
        booking: Booking,
        payment: Payment,
        use_credit: bool,
        idempotency_key: str | None = None,
    ) -> BookingResult:
        """Create the gateway session after commit and store its reference."""
        try:
            session = self.stripe.create_checkout_session(
                booking_id=booking.booking_id,
                amount_cents=payment.amount_cents,
                description=(
                    f"{booking.nights} nights, {booking.start_date.isoformat()} "
                    f"to {booking.end_date.isoformat()}"
                ),
                idempotency_key=idempotency_key or f"checkout:booking:{booking.booking_id}",
                success_url=(
                    f"{self.app_url}/booking/success"
                    f"?session_id={{CHECKOUT_SESSION_ID}}&booking_id={booking.booking_id}"
                ),
                cancel_url=f"{self.app_url}/booking/cancel?booking_id={booking.booking_id}",
                currency=payment.currency,
                customer_email=booking.guest_email,
                metadata={
                    "customer_id": booking.customer_id or "",
                    "credits_applied_cents": str(payment.credits_applied_cents),
                    "use_credit": "true" if use_credit else "false",
                },
            )
        except StripeServiceError as e:
            log_booking_operation(
                logger,
                "create_checkout_session",
                booking_id=booking.booking_id,
                status=booking.status.value,
                error=str(e),
            )
            self.notifications.payment_link_failed(booking, str(e))
            return BookingResult(booking=booking, payment=payment, payment_link_error=str(e))

        self.payments.set_checkout_session(
            booking.booking_id, session["session_id"], session["checkout_url"]
        )
        payment = payment.model_copy(
            update={
                "stripe_session_id": session["session_id"],
                "checkout_url": session["checkout_url"],
            }
        )
        return BookingResult(
            booking=booking, payment=payment, checkout_url=session["checkout_url"]
        )

    def retry_checkout_session(self, booking_id: str, caller: Caller) -> BookingResult:
        """New checkout session for a pending booking whose link failed or lapsed.

        Raises:
            StateViolation: If the booking is no longer awaiting payment
            BookingError: PAYMENT_GATEWAY_ERROR if the gateway fails again
        """
        booking = self.bookings.require_visible_booking(booking_id, caller)
        payment = self.payments.require_payment(booking_id)
        if (
            booking.status != BookingStatus.PENDING
            or payment.status != PaymentStatus.UNPAID
            or payment.provider != PaymentProvider.STRIPE
        ):
            raise StateViolation(
                booking_id=booking_id, status=booking.status.value, payment=payment.status.value
            )

        result = self._attach_checkout(
            booking,
            payment,
            use_credit=payment.credits_applied_cents > 0,
            idempotency_key=f"checkout:booking:{booking_id}:attempt:{uuid.uuid4().hex}",
        )
        if result.payment_link_error:
            raise BookingError(
                ErrorCode.PAYMENT_GATEWAY_ERROR,
                {"booking_id": booking_id, "error": result.payment_link_error},
            )
        return result

    # Lifecycle

    def get_booking(self, booking_id: str, caller: Caller) -> Booking:
        return self.bookings.require_visible_booking(booking_id, caller)

    def list_customer_bookings(self, caller: Caller) -> list[Booking]:
        if not caller.customer_id:
            raise BookingError(ErrorCode.AUTH_REQUIRED)
        return self.bookings.list_customer_bookings(caller.customer_id)

    def confirm_checkout(
        self,
        booking_id: str,
        session_id: str | None = None,
        payment_intent_id: str | None = None,
    ) -> Booking:
        """Gateway confirmed payment: pending -> confirmed, payment unpaid -> paid.

        Idempotent for an already confirmed booking.

        Raises:
            StateViolation: If the booking left pending some other way
        """
        booking = self.bookings.require_booking(booking_id)
        if booking.status == BookingStatus.CONFIRMED:
            return booking

        now = utc_now()
        ops = [
            self.bookings.transition_op(
                booking_id, [BookingStatus.PENDING], BookingStatus.CONFIRMED, now
            ),
            self.payments.mark_paid_op(booking_id, payment_intent_id),
        ]
        if not self.db.transact_write(ops):
            current = self.bookings.require_booking(booking_id)
            if current.status == BookingStatus.CONFIRMED:
                return current
            log_booking_operation(
                logger,
                "confirm_checkout",
                booking_id=booking_id,
                status=current.status.value,
                error="payment confirmed for a booking that is no longer pending",
                session_id=session_id,
            )
            raise StateViolation(booking_id=booking_id, status=current.status.value)

        log_booking_operation(
            logger,
            "confirm_checkout",
            booking_id=booking_id,
            status=BookingStatus.CONFIRMED.value,
            session_id=session_id,
        )
        return booking.model_copy(update={"status": BookingStatus.CONFIRMED, "updated_at": now})

    def expire_checkout(self, booking_id: str, now: dt.datetime | None = None) -> Booking:
        """Cancel an unpaid pending booking and free its nights.

        Nothing was charged, so there is no refund and no voucher.
        """
        return self._close_unpaid(
            booking_id,
            BookingStatus.CANCELLED,
            reason=EXPIRED_UNPAID_REASON,
            actor="system",
            now=now or utc_now(),
        )

    def expire_pending_bookings(
        self, now: dt.datetime | None = None, hold_minutes: int = HOLD_MINUTES
    ) -> list[str]:
        """Expire every pending booking older than the checkout hold.

        Returns:
            IDs of the bookings expired by this run
        """
        now = now or utc_now()
        cutoff = now - dt.timedelta(minutes=hold_minutes)
        expired = []
        for booking in self.bookings.list_pending_created_before(cutoff):
            try:
                self.expire_checkout(booking.booking_id, now)
            except StateViolation:
                # Confirmed or cancelled since the scan
                continue
            expired.append(booking.booking_id)
        if expired:
            logger.info("Expired %d unpaid bookings", len(expired))
        return expired

    def reject_booking(
        self, booking_id: str, caller: Caller, reason: str | None = None
    ) -> Booking:
        """Admin rejects a pending booking; its nights are released."""
        if not caller.is_admin:
            raise BookingError(ErrorCode.ADMIN_REQUIRED)
        return self._close_unpaid(
            booking_id,
            BookingStatus.REJECTED,
            reason=reason or "rejected_by_admin",
            actor=caller.customer_id or "admin",
            now=utc_now(),
        )

    def _close_unpaid(
        self,
        booking_id: str,
        next_status: BookingStatus,
        *,
        reason: str,
        actor: str,
        now: dt.datetime,
    ) -> Booking:
        booking = self.bookings.require_booking(booking_id)
        if booking.status != BookingStatus.PENDING:
            raise StateViolation(booking_id=booking_id, status=booking.status.value)
        payment = self.payments.get_payment(booking_id)

        ops: list[dict[str, Any]] = self.bookings.close_ops(
            booking, [BookingStatus.PENDING], next_status, now
        )
        if payment is not None and payment.status == PaymentStatus.UNPAID:
            ops.append(self.payments.mark_cancelled_op(booking_id))
        ops.append(
            self.bookings.cancellation_op(
                Cancellation(
                    booking_id=booking_id,
                    reason=reason,
                    cancelled_by=actor,
                    cancelled_at=now,
                )
            )
        )
        if not self.db.transact_write(ops):
            current = self.bookings.require_booking(booking_id)
            raise StateViolation(booking_id=booking_id, status=current.status.value)

        log_booking_operation(
            logger,
            "close_unpaid_booking",
            booking_id=booking_id,
            property_id=booking.property_id,
            status=next_status.value,
            reason=reason,
        )
        return booking.model_copy(update={"status": next_status, "updated_at": now})
