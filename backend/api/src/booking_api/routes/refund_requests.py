"""Customer refund request endpoints."""

from fastapi import APIRouter, Depends
from starlette.status import HTTP_201_CREATED

from booking_api.dependencies import get_refund_request_service
from booking_api.models.bookings import RefundRequestCreate
from booking_api.security import get_caller, require_customer
from booking_engine.models import Caller, RefundRequest, RefundRequestPreview
from booking_engine.services.refund_request_service import RefundRequestService

router = APIRouter(tags=["refund-requests"])


@router.get(
    "/bookings/{booking_id}/refund-request-preview",
    summary="Preview refund request",
    response_model=RefundRequestPreview,
)
async def preview_refund_request(
    booking_id: str,
    caller: Caller = Depends(get_caller),
    service: RefundRequestService = Depends(get_refund_request_service),
) -> RefundRequestPreview:
    return service.preview_refund_request(booking_id, caller)


@router.post(
    "/bookings/{booking_id}/refund-requests",
    summary="Request a refund",
    description="Ask an administrator for a refund beyond the cancellation policy.",
    response_model=RefundRequest,
    status_code=HTTP_201_CREATED,
    responses={
        401: {"description": "Authentication required"},
        403: {"description": "Not your booking"},
        409: {"description": "A pending request already exists"},
    },
)
async def create_refund_request(
    booking_id: str,
    body: RefundRequestCreate | None = None,
    caller: Caller = Depends(require_customer),
    service: RefundRequestService = Depends(get_refund_request_service),
) -> RefundRequest:
    reason = body.reason if body else None
    return service.create_refund_request(booking_id, caller, reason=reason)
