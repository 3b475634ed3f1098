"""Availability resolver: blocking overlaps, period coverage and calendars."""

import datetime as dt
from typing import TYPE_CHECKING

from booking_engine.models import (
    AdminCalendar,
    BookingError,
    Calendar,
    CoverageResult,
    CoverageSegment,
    ErrorCode,
    Period,
    Property,
    PublicBlock,
)
from booking_engine.utils.dates import iter_nights, normalize_date_only

if TYPE_CHECKING:
    from .block_service import BlockService
    from .period_registry import PeriodRegistry
    from .property_service import PropertyService

MAX_CALENDAR_DAYS = 400


class AvailabilityResolver:
    """Answers "is this range free" and "which rules govern each night"."""

    def __init__(
        self,
        periods: "PeriodRegistry",
        blocks: "BlockService",
        properties: "PropertyService",
    ) -> None:
        self.periods = periods
        self.blocks = blocks
        self.properties = properties

    def is_range_blocked(self, property_id: str, start: dt.date, end: dt.date) -> bool:
        """True if any active booking, external or manual block overlaps ``[start, end)``."""
        return bool(self.blocks.overlapping(property_id, start, end))

    def resolve_coverage(
        self, property_id: str, start: dt.date, end: dt.date
    ) -> CoverageResult:
        """Partition ``[start, end)`` into maximal runs owned by one period or none.

        A single night inside a closed period rejects the whole range with
        ``reason="CLOSED"``. Uncovered runs carry ``period=None`` and fall back
        to the property defaults.
        """
        periods = self.periods.periods_intersecting(property_id, start, end)
        segments: list[CoverageSegment] = []

        cursor = start
        while cursor < end:
            covering = _covering(periods, cursor)
            if covering is not None:
                if not covering.is_open:
                    return CoverageResult(
                        ok=False, reason="CLOSED", closed_period_id=covering.period_id
                    )
                segment_end = min(covering.end_date, end)
            else:
                next_start = min(
                    (p.start_date for p in periods if p.start_date > cursor),
                    default=end,
                )
                segment_end = min(next_start, end)

            segments.append(
                CoverageSegment(period=covering, from_date=cursor, to_date=segment_end)
            )
            cursor = segment_end

        return CoverageResult(ok=True, segments=segments)

    @staticmethod
    def effective_max_guests(prop: Property, segments: list[CoverageSegment]) -> int:
        """Most restrictive capacity across the property and every covering period."""
        limits = [prop.max_guests]
        limits.extend(s.period.max_guests for s in segments if s.period is not None)
        return min(limits)

    @staticmethod
    def effective_min_nights(prop: Property, coverage: CoverageResult) -> int:
        """Minimum stay from the arrival period, else the property default."""
        arrival = coverage.arrival_period
        return arrival.min_nights if arrival is not None else prop.min_nights

    # Calendar read models

    def get_calendar(
        self, property_id: str, start: str | dt.date, end: str | dt.date
    ) -> Calendar:
        """Public calendar: prices, open flags and occupied ranges without PII."""
        prop, start_date, end_date = self._calendar_window(property_id, start, end)
        all_periods = self.periods.list_periods(property_id)
        daily_prices, daily_open = _daily_rules(prop, all_periods, start_date, end_date)
        blocks = self.blocks.list_blocks(property_id, start_date, end_date)

        return Calendar(
            property_id=property_id,
            from_date=start_date,
            to_date=end_date,
            currency=prop.currency,
            default_nightly_price=prop.default_nightly_price,
            has_any_periods=bool(all_periods),
            daily_prices=daily_prices,
            daily_open=daily_open,
            blocks=[PublicBlock.from_block(b) for b in blocks],
        )

    def get_admin_calendar(
        self, property_id: str, start: str | dt.date, end: str | dt.date
    ) -> AdminCalendar:
        """Admin calendar: full block details and every period of the property."""
        prop, start_date, end_date = self._calendar_window(property_id, start, end)
        all_periods = self.periods.list_periods(property_id)
        daily_prices, daily_open = _daily_rules(prop, all_periods, start_date, end_date)

        return AdminCalendar(
            property_id=property_id,
            from_date=start_date,
            to_date=end_date,
            currency=prop.currency,
            default_nightly_price=prop.default_nightly_price,
            has_any_periods=bool(all_periods),
            daily_prices=daily_prices,
            daily_open=daily_open,
            blocks=self.blocks.list_blocks(property_id, start_date, end_date),
            periods=all_periods,
        )

    def _calendar_window(
        self, property_id: str, start: str | dt.date, end: str | dt.date
    ) -> tuple[Property, dt.date, dt.date]:
        start_date = normalize_date_only(start)
        end_date = normalize_date_only(end)
        if end_date <= start_date:
            raise BookingError(
                ErrorCode.INVALID_DATE_RANGE,
                {"start_date": start_date.isoformat(), "end_date": end_date.isoformat()},
            )
        if (end_date - start_date).days > MAX_CALENDAR_DAYS:
            raise BookingError(
                ErrorCode.STAY_TOO_LONG,
                {"days": (end_date - start_date).days, "max_days": MAX_CALENDAR_DAYS},
            )
        return self.properties.require_property(property_id), start_date, end_date


def _covering(periods: list[Period], night: dt.date) -> Period | None:
    for period in periods:
        if period.covers(night):
            return period
    return None


def _daily_rules(
    prop: Property,
    periods: list[Period],
    start: dt.date,
    end: dt.date,
) -> tuple[dict[str, int], dict[str, bool]]:
    prices: dict[str, int] = {}
    open_flags: dict[str, bool] = {}
    relevant = [p for p in periods if p.start_date < end and p.end_date > start]
    for night in iter_nights(start, end):
        period = _covering(relevant, night)
        key = night.isoformat()
        if period is None:
            prices[key] = prop.default_nightly_price
            open_flags[key] = True
        else:
            prices[key] = period.standard_nightly_price
            open_flags[key] = period.is_open
    return prices, open_flags
