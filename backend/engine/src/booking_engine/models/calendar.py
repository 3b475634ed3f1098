"""Calendar read models for public and admin views."""

import datetime as dt

from pydantic import BaseModel, Field

from .blocks import BlockingEntity, PublicBlock
from .period import Period


class Calendar(BaseModel):
    """Per-night prices and open flags plus occupied ranges for a window.

    Keys of ``daily_prices`` and ``daily_open`` are ISO dates; nights not
    covered by any period are open at the property default price.
    """

    property_id: str
    from_date: dt.date
    to_date: dt.date
    currency: str
    default_nightly_price: int
    has_any_periods: bool
    daily_prices: dict[str, int]
    daily_open: dict[str, bool]
    blocks: list[PublicBlock] = Field(default_factory=list)


class AdminCalendar(Calendar):
    """Calendar with full block details and every period of the property."""

    blocks: list[BlockingEntity] = Field(default_factory=list)  # type: ignore[assignment]
    periods: list[Period] = Field(default_factory=list)
