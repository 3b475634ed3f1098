"""Admin endpoints for properties and periods.

All endpoints require the admin role. Period writes are serialized per
property, so two concurrent edits can never leave overlapping periods.
"""

from fastapi import APIRouter, Depends
from starlette.status import HTTP_201_CREATED

from booking_api.dependencies import get_period_registry, get_property_service
from booking_api.models.admin import PeriodCreateRequest, PropertyUpsertRequest
from booking_api.models.common import SuccessMessage
from booking_api.security import require_admin
from booking_engine.models import Caller, Period, PeriodPatch, Property
from booking_engine.services.period_registry import PeriodRegistry
from booking_engine.services.property_service import PropertyService

router = APIRouter(prefix="/admin", tags=["admin"])


@router.put(
    "/properties/{property_id}",
    summary="Create or replace a property",
    response_model=Property,
)
async def put_property(
    property_id: str,
    body: PropertyUpsertRequest,
    _: Caller = Depends(require_admin),
    properties: PropertyService = Depends(get_property_service),
) -> Property:
    return properties.put_property(Property(property_id=property_id, **body.model_dump()))


@router.get(
    "/properties/{property_id}/periods",
    summary="List periods",
    response_model=list[Period],
)
async def list_periods(
    property_id: str,
    _: Caller = Depends(require_admin),
    registry: PeriodRegistry = Depends(get_period_registry),
) -> list[Period]:
    return registry.list_periods(property_id)


@router.post(
    "/periods",
    summary="Create period",
    response_model=Period,
    status_code=HTTP_201_CREATED,
    responses={
        400: {"description": "Invalid range or rules"},
        404: {"description": "Property not found"},
        409: {"description": "Overlaps an existing period"},
    },
)
async def create_period(
    body: PeriodCreateRequest,
    _: Caller = Depends(require_admin),
    registry: PeriodRegistry = Depends(get_period_registry),
) -> Period:
    return registry.create_period(body.property_id, body.start_date, body.end_date, body.rules())


@router.get("/periods/{period_id}", summary="Get period", response_model=Period)
async def get_period(
    period_id: str,
    _: Caller = Depends(require_admin),
    registry: PeriodRegistry = Depends(get_period_registry),
) -> Period:
    return registry.require_period(period_id)


@router.patch(
    "/periods/{period_id}",
    summary="Update period",
    description="Fields absent from the body keep their value.",
    response_model=Period,
    responses={409: {"description": "Overlaps an existing period"}},
)
async def update_period(
    period_id: str,
    body: PeriodPatch,
    _: Caller = Depends(require_admin),
    registry: PeriodRegistry = Depends(get_period_registry),
) -> Period:
    return registry.update_period(period_id, body)


@router.delete(
    "/periods/{period_id}",
    summary="Delete period",
    response_model=SuccessMessage,
    responses={409: {"description": "Referenced by bookings; close it instead"}},
)
async def delete_period(
    period_id: str,
    _: Caller = Depends(require_admin),
    registry: PeriodRegistry = Depends(get_period_registry),
) -> SuccessMessage:
    registry.delete_period(period_id)
    return SuccessMessage(message=f"Period {period_id} deleted")
