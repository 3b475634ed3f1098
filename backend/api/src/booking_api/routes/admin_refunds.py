"""Admin endpoints for refund requests and failed refunds."""

from fastapi import APIRouter, Depends, Query

from booking_api.dependencies import get_cancellation_service, get_refund_request_service
from booking_api.models.bookings import RefundRequestDecisionBody
from booking_api.security import require_admin
from booking_engine.models import (
    Caller,
    Refund,
    RefundRequestDecision,
    RefundRequestStatus,
    RefundRequestSummary,
)
from booking_engine.services.cancellation_service import CancellationService
from booking_engine.services.refund_request_service import RefundRequestService

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get(
    "/refund-requests",
    summary="List refund requests",
    description="Newest first, with the amount an approval would refund now.",
    response_model=list[RefundRequestSummary],
)
async def list_refund_requests(
    status: RefundRequestStatus | None = Query(default=RefundRequestStatus.PENDING),
    caller: Caller = Depends(require_admin),
    service: RefundRequestService = Depends(get_refund_request_service),
) -> list[RefundRequestSummary]:
    return service.list_refund_requests(caller, status)


@router.post(
    "/refund-requests/{request_id}/approve",
    summary="Approve refund request",
    description="""
Refund the remaining refundable balance and cancel the booking if active.

**Notes:**
- Never refunds more than was charged minus earlier refunds
- 502 means the decision committed but the gateway refund failed; retry it
  via ``/admin/refunds/{refund_id}/retry``
""",
    response_model=RefundRequestDecision,
    responses={
        400: {"description": "No gateway payment to refund"},
        500: {"description": "Request already decided"},
        502: {"description": "Refund submission failed"},
    },
)
async def approve_refund_request(
    request_id: str,
    body: RefundRequestDecisionBody | None = None,
    caller: Caller = Depends(require_admin),
    service: RefundRequestService = Depends(get_refund_request_service),
) -> RefundRequestDecision:
    return service.approve_refund_request(
        request_id, caller, admin_note=body.admin_note if body else None
    )


@router.post(
    "/refund-requests/{request_id}/reject",
    summary="Reject refund request",
    response_model=RefundRequestDecision,
    responses={500: {"description": "Request already decided"}},
)
async def reject_refund_request(
    request_id: str,
    body: RefundRequestDecisionBody | None = None,
    caller: Caller = Depends(require_admin),
    service: RefundRequestService = Depends(get_refund_request_service),
) -> RefundRequestDecision:
    return service.reject_refund_request(
        request_id, caller, admin_note=body.admin_note if body else None
    )


@router.post(
    "/refunds/{refund_id}/retry",
    summary="Retry failed refund",
    description="Resubmit with the original idempotency key, so it can never pay twice.",
    response_model=Refund,
    responses={
        404: {"description": "Refund not found"},
        500: {"description": "Refund is not in failed status"},
        502: {"description": "Gateway failed again"},
    },
)
async def retry_refund(
    refund_id: str,
    caller: Caller = Depends(require_admin),
    service: CancellationService = Depends(get_cancellation_service),
) -> Refund:
    return service.retry_refund(refund_id, caller)
