"""Coverage segments and the immutable price breakdown snapshot."""

import datetime as dt
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from .period import Period


class CoverageSegment(BaseModel):
    """A maximal run of nights attributable to one period, or to none."""

    model_config = ConfigDict(strict=True, frozen=True)

    period: Period | None
    from_date: dt.date
    to_date: dt.date

    @property
    def nights(self) -> int:
        return (self.to_date - self.from_date).days


class CoverageResult(BaseModel):
    """Outcome of partitioning a stay into coverage segments.

    ``ok`` is False with ``reason="CLOSED"`` when any night falls in a
    closed period; segments are then empty.
    """

    model_config = ConfigDict(strict=True, frozen=True)

    ok: bool
    reason: Literal["CLOSED"] | None = None
    closed_period_id: str | None = None
    segments: list[CoverageSegment] = Field(default_factory=list)

    @property
    def arrival_period(self) -> Period | None:
        """Period of the first segment; governs rules for the whole stay."""
        return self.segments[0].period if self.segments else None


class PricedSegment(BaseModel):
    """One line of the price breakdown."""

    model_config = ConfigDict(strict=True, frozen=True)

    period_id: str | None
    from_date: dt.date
    to_date: dt.date
    nights: int
    nightly_price: int
    segment_total: int


class PriceBreakdown(BaseModel):
    """Audit snapshot of how a stay was priced.

    Stored verbatim on the booking; never recomputed from live period data.
    Major-unit fields end in ``_eur``; minor-unit fields end in ``_cents``.
    """

    model_config = ConfigDict(strict=True, frozen=True)

    currency: str = "eur"
    nights: int
    segments: list[PricedSegment]
    base_total_eur: int
    weekly_discount_applied_bps: int = 0
    weekly_discount_eur: int = 0
    total_eur: int
    gross_total_cents: int
    credits_applied_cents: int = 0
    cash_due_now_cents: int
    credit_refundable: bool = False
    refund_policy_applies_to: str = "cash_paid_to_stripe_only"
