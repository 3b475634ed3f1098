"""Admin endpoints for bookings, the calendar and maintenance jobs."""

from fastapi import APIRouter, Depends, Query

from booking_api.dependencies import (
    get_availability_resolver,
    get_booking_orchestrator,
    get_booking_service,
    get_credit_ledger,
)
from booking_api.models.admin import (
    ExpirePendingResponse,
    ExpireVouchersResponse,
    RejectBookingRequest,
    VoucherIssueRequest,
)
from booking_api.security import require_admin
from booking_engine.models import (
    AdminCalendar,
    Booking,
    BookingStatus,
    Caller,
    CreditVoucher,
)
from booking_engine.services.availability import AvailabilityResolver
from booking_engine.services.booking_orchestrator import HOLD_MINUTES, BookingOrchestrator
from booking_engine.services.booking_service import BookingService
from booking_engine.services.credit_ledger import CreditLedger
from booking_engine.utils.dates import utc_now

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get(
    "/properties/{property_id}/calendar",
    summary="Admin calendar",
    description="Calendar with full booking details and every period.",
    response_model=AdminCalendar,
)
async def get_admin_calendar(
    property_id: str,
    from_date: str = Query(..., alias="from"),
    to_date: str = Query(..., alias="to"),
    _: Caller = Depends(require_admin),
    availability: AvailabilityResolver = Depends(get_availability_resolver),
) -> AdminCalendar:
    return availability.get_admin_calendar(property_id, from_date, to_date)


@router.get(
    "/properties/{property_id}/bookings",
    summary="List property bookings",
    response_model=list[Booking],
)
async def list_property_bookings(
    property_id: str,
    status: BookingStatus | None = Query(default=None),
    _: Caller = Depends(require_admin),
    bookings: BookingService = Depends(get_booking_service),
) -> list[Booking]:
    return bookings.list_property_bookings(property_id, status)


@router.post(
    "/bookings/{booking_id}/reject",
    summary="Reject pending booking",
    response_model=Booking,
    responses={500: {"description": "Booking is not pending"}},
)
async def reject_booking(
    booking_id: str,
    body: RejectBookingRequest | None = None,
    caller: Caller = Depends(require_admin),
    orchestrator: BookingOrchestrator = Depends(get_booking_orchestrator),
) -> Booking:
    return orchestrator.reject_booking(booking_id, caller, reason=body.reason if body else None)


@router.post(
    "/jobs/expire-pending-bookings",
    summary="Expire unpaid bookings",
    description="Cancel pending bookings whose checkout hold has lapsed.",
    response_model=ExpirePendingResponse,
)
async def expire_pending_bookings(
    hold_minutes: int = Query(default=HOLD_MINUTES, ge=1),
    _: Caller = Depends(require_admin),
    orchestrator: BookingOrchestrator = Depends(get_booking_orchestrator),
) -> ExpirePendingResponse:
    expired = orchestrator.expire_pending_bookings(hold_minutes=hold_minutes)
    return ExpirePendingResponse(expired_booking_ids=expired, expired_count=len(expired))


@router.post(
    "/jobs/expire-vouchers",
    summary="Expire vouchers",
    response_model=ExpireVouchersResponse,
)
async def expire_vouchers(
    _: Caller = Depends(require_admin),
    ledger: CreditLedger = Depends(get_credit_ledger),
) -> ExpireVouchersResponse:
    return ExpireVouchersResponse(expired_count=ledger.expire_vouchers(utc_now()))


@router.post(
    "/vouchers",
    summary="Issue voucher",
    response_model=CreditVoucher,
    status_code=201,
)
async def issue_voucher(
    body: VoucherIssueRequest,
    _: Caller = Depends(require_admin),
    ledger: CreditLedger = Depends(get_credit_ledger),
) -> CreditVoucher:
    return ledger.issue_voucher(
        body.customer_id,
        body.amount_cents,
        currency=body.currency,
        expires_at=body.expires_at,
    )


@router.get(
    "/customers/{customer_id}/vouchers",
    summary="List a customer's vouchers",
    response_model=list[CreditVoucher],
)
async def list_customer_vouchers(
    customer_id: str,
    _: Caller = Depends(require_admin),
    ledger: CreditLedger = Depends(get_credit_ledger),
) -> list[CreditVoucher]:
    return ledger.list_vouchers(customer_id)
