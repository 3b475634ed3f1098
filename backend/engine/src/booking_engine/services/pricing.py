"""Pricing engine: coverage segments to an exact integer total.

Prices are integer major currency units; no floating point is used.
"""

from booking_engine.models import CoverageResult, PriceBreakdown, PricedSegment, Property
from booking_engine.models.period import DEFAULT_WEEKLY_THRESHOLD_NIGHTS

BPS_DENOMINATOR = 10_000
CENTS_PER_UNIT = 100


class PricingEngine:
    """Prices coverage segments and applies the arrival period's weekly discount."""

    def price_segments(
        self, coverage: CoverageResult, default_nightly_price: int
    ) -> list[PricedSegment]:
        """One priced line per segment; uncovered runs use the property default."""
        lines = []
        for segment in coverage.segments:
            nightly = (
                segment.period.standard_nightly_price
                if segment.period is not None
                else default_nightly_price
            )
            lines.append(
                PricedSegment(
                    period_id=segment.period.period_id if segment.period else None,
                    from_date=segment.from_date,
                    to_date=segment.to_date,
                    nights=segment.nights,
                    nightly_price=nightly,
                    segment_total=segment.nights * nightly,
                )
            )
        return lines

    @staticmethod
    def apply_weekly_discount(
        base_total: int,
        total_nights: int,
        threshold_nights: int,
        discount_bps: int | None,
    ) -> tuple[int, int]:
        """Deduct ``floor(base_total * bps / 10000)`` when the stay is long enough.

        Returns:
            Tuple of (discount amount, applied bps); (0, 0) when not applied.
        """
        if not discount_bps or total_nights < threshold_nights:
            return 0, 0
        return base_total * discount_bps // BPS_DENOMINATOR, discount_bps

    def price_stay(self, prop: Property, coverage: CoverageResult) -> PriceBreakdown:
        """Build the breakdown for a resolved stay.

        Weekly discount parameters come only from the arrival period.

        Args:
            prop: Property whose default price covers uncovered nights
            coverage: Successful coverage result

        Returns:
            PriceBreakdown with cash due equal to the gross total
        """
        lines = self.price_segments(coverage, prop.default_nightly_price)
        nights = sum(line.nights for line in lines)
        base_total = sum(line.segment_total for line in lines)

        arrival = coverage.arrival_period
        threshold = (
            arrival.weekly_threshold_nights if arrival else DEFAULT_WEEKLY_THRESHOLD_NIGHTS
        )
        discount, applied_bps = self.apply_weekly_discount(
            base_total,
            nights,
            threshold,
            arrival.weekly_discount_bps if arrival else None,
        )
        total = base_total - discount
        gross_cents = total * CENTS_PER_UNIT

        return PriceBreakdown(
            currency=prop.currency,
            nights=nights,
            segments=lines,
            base_total_eur=base_total,
            weekly_discount_applied_bps=applied_bps,
            weekly_discount_eur=discount,
            total_eur=total,
            gross_total_cents=gross_cents,
            cash_due_now_cents=gross_cents,
        )

    @staticmethod
    def with_credits(breakdown: PriceBreakdown, credits_cents: int) -> PriceBreakdown:
        """Copy of the breakdown with credit applied to the cash due."""
        return breakdown.model_copy(
            update={
                "credits_applied_cents": credits_cents,
                "cash_due_now_cents": max(0, breakdown.gross_total_cents - credits_cents),
            }
        )
