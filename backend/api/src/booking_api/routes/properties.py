"""Public property endpoints: details and the availability calendar.

Public endpoints - no authentication required. The calendar never exposes
guest details.
"""

from fastapi import APIRouter, Depends, Query

from booking_api.dependencies import get_availability_resolver, get_property_service
from booking_engine.models import Calendar, Property
from booking_engine.services.availability import AvailabilityResolver
from booking_engine.services.property_service import PropertyService

router = APIRouter(tags=["properties"])


@router.get(
    "/properties/{property_id}",
    summary="Get property details",
    response_model=Property,
    responses={404: {"description": "Property not found"}},
)
async def get_property(
    property_id: str,
    properties: PropertyService = Depends(get_property_service),
) -> Property:
    return properties.require_property(property_id)


@router.get(
    "/properties/{property_id}/calendar",
    summary="Get availability calendar",
    description="""
Daily prices and open flags for ``[from, to)`` plus occupied ranges.

**Notes:**
- Nights not covered by any period are open at the property default price
- Nights in a closed period have ``daily_open = false``
- Blocks carry only their source and dates
""",
    response_model=Calendar,
    responses={
        400: {"description": "Invalid date or range"},
        404: {"description": "Property not found"},
    },
)
async def get_calendar(
    property_id: str,
    from_date: str = Query(..., alias="from", description="First night (YYYY-MM-DD)"),
    to_date: str = Query(..., alias="to", description="Day after the last night"),
    availability: AvailabilityResolver = Depends(get_availability_resolver),
) -> Calendar:
    return availability.get_calendar(property_id, from_date, to_date)
