"""Period models: date-bounded pricing and availability rules."""

import datetime as dt
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_WEEKLY_THRESHOLD_NIGHTS = 7
DEFAULT_MIN_NIGHTS = 1


class PeriodRules(BaseModel):
    """Rules shared by period creation and stored periods."""

    model_config = ConfigDict(strict=True)

    is_open: bool = Field(default=True, description="False closes every night in the range")
    standard_nightly_price: int = Field(
        ..., ge=0, description="Nightly price in major currency units"
    )
    weekly_discount_bps: int | None = Field(
        default=None,
        ge=0,
        le=10000,
        description="Weekly discount in basis points (10000 = 100%)",
    )
    weekly_threshold_nights: int = Field(
        default=DEFAULT_WEEKLY_THRESHOLD_NIGHTS,
        ge=1,
        description="Stays of at least this many nights receive the weekly discount",
    )
    min_nights: int = Field(default=DEFAULT_MIN_NIGHTS, ge=1)
    max_guests: int = Field(..., ge=1, description="Adults + children allowed")
    name: str | None = None
    notes: str | None = None


class Period(PeriodRules):
    """A stored period covering ``[start_date, end_date)`` of one property."""

    period_id: str
    property_id: str
    start_date: dt.date
    end_date: dt.date
    created_at: dt.datetime
    updated_at: dt.datetime

    def covers(self, night: dt.date) -> bool:
        """True if ``night`` falls inside ``[start_date, end_date)``."""
        return self.start_date <= night < self.end_date


class PeriodPatch(BaseModel):
    """Partial update for a period.

    A field absent from the payload keeps its current value; a field sent as
    ``null`` is set to null. Use ``changes()`` to get only the fields sent.
    """

    model_config = ConfigDict(strict=False, extra="forbid")

    start_date: dt.date | str | None = None
    end_date: dt.date | str | None = None
    is_open: bool | None = None
    standard_nightly_price: int | None = Field(default=None, ge=0)
    weekly_discount_bps: int | None = Field(default=None, ge=0, le=10000)
    weekly_threshold_nights: int | None = Field(default=None, ge=1)
    min_nights: int | None = Field(default=None, ge=1)
    max_guests: int | None = Field(default=None, ge=1)
    name: str | None = None
    notes: str | None = None

    def changes(self) -> dict[str, Any]:
        """Fields explicitly present in the patch, including explicit nulls."""
        return {name: getattr(self, name) for name in self.model_fields_set}
