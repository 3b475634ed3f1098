"""Booking endpoints: quote, create, read and checkout retry.

Identity comes from the x-user-sub / x-user-role headers set by API Gateway.
Quote and create accept customers and admins; anonymous callers get 401.
Prices are always computed server-side.
"""

from fastapi import APIRouter, Depends
from starlette.status import HTTP_201_CREATED

from booking_api.dependencies import get_booking_orchestrator
from booking_api.models.bookings import BookingCreateRequest, BookingListResponse
from booking_api.security import get_caller, require_customer
from booking_engine.models import Booking, BookingQuote, BookingResult, Caller
from booking_engine.services.booking_orchestrator import BookingOrchestrator

router = APIRouter(tags=["bookings"])


@router.post(
    "/bookings/quote",
    summary="Quote a stay",
    description="""
Price a stay and preview the refund policy without persisting anything.

Credit is estimated when ``use_credit`` is set but never consumed.
""",
    response_model=BookingQuote,
    responses={
        400: {"description": "Invalid dates, guests or minimum stay"},
        401: {"description": "Authentication required"},
        404: {"description": "Property not found"},
        409: {"description": "Dates unavailable or period closed"},
    },
)
async def quote_booking(
    body: BookingCreateRequest,
    caller: Caller = Depends(get_caller),
    orchestrator: BookingOrchestrator = Depends(get_booking_orchestrator),
) -> BookingQuote:
    return orchestrator.quote(body, caller)


@router.post(
    "/bookings",
    summary="Create booking",
    description="""
Create a booking atomically with its payment, night claims and any credit
consumption.

**Notes:**
- Admin bookings are confirmed immediately without payment
- Fully credit-covered bookings are confirmed immediately
- Otherwise the booking stays pending until the checkout completes
- If the checkout link could not be created, the booking is still returned
  with ``payment_link_error`` set; retry via ``/bookings/{id}/checkout-session``
""",
    response_model=BookingResult,
    status_code=HTTP_201_CREATED,
    responses={
        400: {"description": "Invalid request"},
        401: {"description": "Authentication required"},
        409: {"description": "Dates unavailable or period closed"},
        500: {"description": "Credit changed concurrently, please retry"},
    },
)
async def create_booking(
    body: BookingCreateRequest,
    caller: Caller = Depends(get_caller),
    orchestrator: BookingOrchestrator = Depends(get_booking_orchestrator),
) -> BookingResult:
    return orchestrator.create_booking(body, caller)


@router.get(
    "/bookings/mine",
    summary="List my bookings",
    response_model=BookingListResponse,
    responses={401: {"description": "Authentication required"}},
)
async def list_my_bookings(
    caller: Caller = Depends(require_customer),
    orchestrator: BookingOrchestrator = Depends(get_booking_orchestrator),
) -> BookingListResponse:
    bookings = orchestrator.list_customer_bookings(caller)
    return BookingListResponse(bookings=bookings, total_count=len(bookings))


@router.get(
    "/bookings/{booking_id}",
    summary="Get booking",
    response_model=Booking,
    responses={
        401: {"description": "Authentication required"},
        403: {"description": "Not your booking"},
        404: {"description": "Booking not found"},
    },
)
async def get_booking(
    booking_id: str,
    caller: Caller = Depends(get_caller),
    orchestrator: BookingOrchestrator = Depends(get_booking_orchestrator),
) -> Booking:
    return orchestrator.get_booking(booking_id, caller)


@router.post(
    "/bookings/{booking_id}/checkout-session",
    summary="Retry checkout session",
    description="Create a new checkout link for a pending, unpaid booking.",
    response_model=BookingResult,
    responses={
        500: {"description": "Booking is no longer awaiting payment"},
        502: {"description": "Payment gateway failed again"},
    },
)
async def retry_checkout_session(
    booking_id: str,
    caller: Caller = Depends(get_caller),
    orchestrator: BookingOrchestrator = Depends(get_booking_orchestrator),
) -> BookingResult:
    return orchestrator.retry_checkout_session(booking_id, caller)
