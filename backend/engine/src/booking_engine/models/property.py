"""Property model: the default rules applied to nights no period covers."""

from pydantic import BaseModel, ConfigDict, Field


class Property(BaseModel):
    """A rentable property and its fallback pricing/capacity rules."""

    model_config = ConfigDict(strict=True)

    property_id: str = Field(..., description="Unique property identifier")
    title: str = Field(..., description="Display name")
    currency: str = Field(default="eur", description="ISO currency code (lowercase)")
    default_nightly_price: int = Field(
        ..., ge=0, description="Nightly price in major currency units for uncovered nights"
    )
    max_guests: int = Field(..., ge=1, description="Adults + children allowed (babies excluded)")
    min_nights: int = Field(default=1, ge=1, description="Minimum stay when no period applies")
    period_version: int = Field(
        default=0, ge=0, description="Bumped on every period write for this property"
    )
