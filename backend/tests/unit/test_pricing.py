"""Unit tests for the pricing engine: segment totals, weekly discount and credit."""

import datetime as dt

import pytest

from booking_engine.models import CoverageResult, CoverageSegment, Period, Property
from booking_engine.services.pricing import PricingEngine

CREATED = dt.datetime(2026, 12, 1, tzinfo=dt.UTC)


def _property(default_price: int = 100) -> Property:
    return Property(
        property_id="PROP-001",
        title="Seaside Cottage",
        default_nightly_price=default_price,
        max_guests=4,
    )


def _period(
    start: dt.date,
    end: dt.date,
    price: int,
    discount_bps: int | None = None,
    threshold: int = 7,
) -> Period:
    return Period(
        period_id=f"PER-{start.isoformat()}",
        property_id="PROP-001",
        start_date=start,
        end_date=end,
        standard_nightly_price=price,
        weekly_discount_bps=discount_bps,
        weekly_threshold_nights=threshold,
        max_guests=4,
        created_at=CREATED,
        updated_at=CREATED,
    )


@pytest.fixture
def engine() -> PricingEngine:
    return PricingEngine()


class TestPriceStay:
    def test_uncovered_stay_uses_property_default(self, engine: PricingEngine) -> None:
        coverage = CoverageResult(
            ok=True,
            segments=[
                CoverageSegment(
                    period=None, from_date=dt.date(2027, 3, 1), to_date=dt.date(2027, 3, 4)
                )
            ],
        )

        breakdown = engine.price_stay(_property(120), coverage)

        assert breakdown.nights == 3
        assert breakdown.total_eur == 360
        assert breakdown.gross_total_cents == 36_000
        assert breakdown.cash_due_now_cents == 36_000
        assert breakdown.segments[0].period_id is None

    def test_mixed_segments_sum_each_nightly_price(self, engine: PricingEngine) -> None:
        summer = _period(dt.date(2027, 6, 1), dt.date(2027, 9, 1), 180)
        coverage = CoverageResult(
            ok=True,
            segments=[
                CoverageSegment(
                    period=None, from_date=dt.date(2027, 5, 30), to_date=dt.date(2027, 6, 1)
                ),
                CoverageSegment(
                    period=summer, from_date=dt.date(2027, 6, 1), to_date=dt.date(2027, 6, 4)
                ),
            ],
        )

        breakdown = engine.price_stay(_property(100), coverage)

        assert [s.segment_total for s in breakdown.segments] == [200, 540]
        assert breakdown.base_total_eur == 740
        assert breakdown.weekly_discount_eur == 0

    def test_weekly_discount_from_arrival_period(self, engine: PricingEngine) -> None:
        """10% off 7 nights at 150 = 1050 - 105."""
        period = _period(dt.date(2027, 6, 1), dt.date(2027, 9, 1), 150, discount_bps=1000)
        coverage = CoverageResult(
            ok=True,
            segments=[
                CoverageSegment(
                    period=period, from_date=dt.date(2027, 6, 1), to_date=dt.date(2027, 6, 8)
                )
            ],
        )

        breakdown = engine.price_stay(_property(), coverage)

        assert breakdown.base_total_eur == 1050
        assert breakdown.weekly_discount_eur == 105
        assert breakdown.weekly_discount_applied_bps == 1000
        assert breakdown.total_eur == 945

    def test_discount_not_applied_below_threshold(self, engine: PricingEngine) -> None:
        period = _period(dt.date(2027, 6, 1), dt.date(2027, 9, 1), 150, discount_bps=1000)
        coverage = CoverageResult(
            ok=True,
            segments=[
                CoverageSegment(
                    period=period, from_date=dt.date(2027, 6, 1), to_date=dt.date(2027, 6, 7)
                )
            ],
        )

        breakdown = engine.price_stay(_property(), coverage)

        assert breakdown.weekly_discount_eur == 0
        assert breakdown.weekly_discount_applied_bps == 0
        assert breakdown.total_eur == 900

    def test_discount_ignored_when_arrival_is_uncovered(self, engine: PricingEngine) -> None:
        """A later period's discount never applies to the stay."""
        later = _period(dt.date(2027, 6, 3), dt.date(2027, 9, 1), 100, discount_bps=5000)
        coverage = CoverageResult(
            ok=True,
            segments=[
                CoverageSegment(
                    period=None, from_date=dt.date(2027, 6, 1), to_date=dt.date(2027, 6, 3)
                ),
                CoverageSegment(
                    period=later, from_date=dt.date(2027, 6, 3), to_date=dt.date(2027, 6, 10)
                ),
            ],
        )

        breakdown = engine.price_stay(_property(100), coverage)

        assert breakdown.nights == 9
        assert breakdown.weekly_discount_eur == 0
        assert breakdown.total_eur == 900

    def test_arrival_rules_with_per_segment_rates(self, engine: PricingEngine) -> None:
        """Arrival period A sets the discount; later period B only sets its own rate."""
        arrival = _period(
            dt.date(2027, 6, 1), dt.date(2027, 6, 4), 150, discount_bps=1000, threshold=7
        )
        later = _period(
            dt.date(2027, 6, 4), dt.date(2027, 9, 1), 200, discount_bps=5000, threshold=3
        )
        coverage = CoverageResult(
            ok=True,
            segments=[
                CoverageSegment(
                    period=arrival, from_date=dt.date(2027, 6, 2), to_date=dt.date(2027, 6, 4)
                ),
                CoverageSegment(
                    period=later, from_date=dt.date(2027, 6, 4), to_date=dt.date(2027, 6, 9)
                ),
            ],
        )

        breakdown = engine.price_stay(_property(), coverage)

        assert [(s.nightly_price, s.segment_total) for s in breakdown.segments] == [
            (150, 300),
            (200, 1000),
        ]
        assert breakdown.base_total_eur == 1300
        assert breakdown.weekly_discount_applied_bps == 1000
        assert breakdown.weekly_discount_eur == 130
        assert breakdown.total_eur == 1170

    def test_pricing_is_deterministic(self, engine: PricingEngine) -> None:
        summer = _period(dt.date(2027, 6, 1), dt.date(2027, 9, 1), 180, discount_bps=750)
        coverage = CoverageResult(
            ok=True,
            segments=[
                CoverageSegment(
                    period=None, from_date=dt.date(2027, 5, 28), to_date=dt.date(2027, 6, 1)
                ),
                CoverageSegment(
                    period=summer, from_date=dt.date(2027, 6, 1), to_date=dt.date(2027, 6, 6)
                ),
            ],
        )

        first = engine.price_stay(_property(), coverage)
        second = engine.price_stay(_property(), coverage)

        assert first == second
        assert first.model_dump(mode="json") == second.model_dump(mode="json")


class TestDiscountMath:
    def test_floors_fractional_discount(self) -> None:
        """333 * 1500 / 10000 = 49.95, floored to 49."""
        assert PricingEngine.apply_weekly_discount(333, 7, 7, 1500) == (49, 1500)

    def test_none_or_zero_bps(self) -> None:
        assert PricingEngine.apply_weekly_discount(1000, 14, 7, None) == (0, 0)
        assert PricingEngine.apply_weekly_discount(1000, 14, 7, 0) == (0, 0)


class TestWithCredits:
    def test_partial_credit_reduces_cash_due(self, engine: PricingEngine) -> None:
        coverage = CoverageResult(
            ok=True,
            segments=[
                CoverageSegment(
                    period=None, from_date=dt.date(2027, 3, 1), to_date=dt.date(2027, 3, 3)
                )
            ],
        )
        breakdown = engine.with_credits(engine.price_stay(_property(), coverage), 5_000)

        assert breakdown.credits_applied_cents == 5_000
        assert breakdown.cash_due_now_cents == 15_000
        assert breakdown.gross_total_cents == 20_000

    def test_credit_never_makes_cash_negative(self, engine: PricingEngine) -> None:
        coverage = CoverageResult(
            ok=True,
            segments=[
                CoverageSegment(
                    period=None, from_date=dt.date(2027, 3, 1), to_date=dt.date(2027, 3, 2)
                )
            ],
        )
        breakdown = engine.with_credits(engine.price_stay(_property(), coverage), 50_000)
        assert breakdown.cash_due_now_cents == 0
