"""Cancellation endpoints: preview, execute and refund status.

The payout is always computed server-side from the refund policy and the
cash actually charged.
"""

from fastapi import APIRouter, Depends

from booking_api.dependencies import get_cancellation_service
from booking_api.models.bookings import CancelBookingRequest
from booking_api.security import get_caller
from booking_engine.models import (
    Caller,
    CancellationPreview,
    CancellationResult,
    RefundStatusView,
)
from booking_engine.services.cancellation_service import CancellationService

router = APIRouter(tags=["cancellations"])


@router.get(
    "/bookings/{booking_id}/cancellation-preview",
    summary="Preview cancellation",
    response_model=CancellationPreview,
)
async def preview_cancellation(
    booking_id: str,
    caller: Caller = Depends(get_caller),
    service: CancellationService = Depends(get_cancellation_service),
) -> CancellationPreview:
    return service.preview_cancellation(booking_id, caller)


@router.post(
    "/bookings/{booking_id}/cancel",
    summary="Cancel booking",
    description="""
Cancel a pending or confirmed booking and pay out per the refund policy.

**Notes:**
- 60+ days: full cash refund; 30-59: 50%; 15-29: 25%
- Less than 15 days: no cash refund, 80% voucher credit
- Applied credit is never refunded
- If the gateway refund fails after the cancellation committed, 502 is
  returned; the booking stays cancelled and an admin may retry the refund
""",
    response_model=CancellationResult,
    responses={
        403: {"description": "Not your booking"},
        404: {"description": "Booking not found"},
        500: {"description": "Booking is not cancellable"},
        502: {"description": "Refund submission failed"},
    },
)
async def cancel_booking(
    booking_id: str,
    body: CancelBookingRequest | None = None,
    caller: Caller = Depends(get_caller),
    service: CancellationService = Depends(get_cancellation_service),
) -> CancellationResult:
    return service.cancel_booking(booking_id, caller, reason=body.reason if body else None)


@router.get(
    "/bookings/{booking_id}/refund-status",
    summary="Refund status",
    response_model=RefundStatusView,
)
async def get_refund_status(
    booking_id: str,
    caller: Caller = Depends(get_caller),
    service: CancellationService = Depends(get_cancellation_service),
) -> RefundStatusView:
    return service.get_refund_status(booking_id, caller)
