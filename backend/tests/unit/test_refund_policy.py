"""Unit tests for RefundPolicyService tier lookup and payout math.

Tiers (days before check-in):
- 60+: 100% cash refund
- 30-59: 50% cash refund
- 15-29: 25% cash refund
- 0-14: no cash refund, 80% voucher
"""

import datetime as dt

import pytest

from booking_engine.models import RefundTier
from booking_engine.services.refund_policy_service import RefundPolicyService

# === Test Configuration ===

TEST_PAYMENT_AMOUNT = 112_500  # EUR cents (1,125.00)


@pytest.fixture
def service() -> RefundPolicyService:
    return RefundPolicyService()


class TestTierLookup:
    @pytest.mark.parametrize(
        ("days", "tier"),
        [
            (365, RefundTier.DAYS_60_PLUS),
            (60, RefundTier.DAYS_60_PLUS),
            (59, RefundTier.DAYS_30_TO_59),
            (30, RefundTier.DAYS_30_TO_59),
            (29, RefundTier.DAYS_15_TO_29),
            (15, RefundTier.DAYS_15_TO_29),
            (14, RefundTier.LESS_THAN_15),
            (0, RefundTier.LESS_THAN_15),
        ],
    )
    def test_boundaries(self, service: RefundPolicyService, days: int, tier: RefundTier) -> None:
        assert service.get_tier(days).tier == tier

    def test_negative_days_clamped(self, service: RefundPolicyService) -> None:
        assert service.get_tier(-3).tier == RefundTier.LESS_THAN_15


class TestComputeOutcome:
    def test_full_refund(self, service: RefundPolicyService) -> None:
        outcome = service.compute_outcome(90, TEST_PAYMENT_AMOUNT)
        assert outcome == {"refund_cents": TEST_PAYMENT_AMOUNT, "voucher_cents": 0}

    def test_half_refund(self, service: RefundPolicyService) -> None:
        outcome = service.compute_outcome(45, TEST_PAYMENT_AMOUNT)
        assert outcome == {"refund_cents": 56_250, "voucher_cents": 0}

    def test_quarter_refund_floors(self, service: RefundPolicyService) -> None:
        """25% of 1001 cents is 250.25, floored to 250."""
        outcome = service.compute_outcome(20, 1001)
        assert outcome == {"refund_cents": 250, "voucher_cents": 0}

    def test_late_cancellation_gets_voucher_only(self, service: RefundPolicyService) -> None:
        outcome = service.compute_outcome(3, TEST_PAYMENT_AMOUNT)
        assert outcome == {"refund_cents": 0, "voucher_cents": 90_000}

    def test_zero_cash_pays_nothing(self, service: RefundPolicyService) -> None:
        assert service.compute_outcome(90, 0) == {"refund_cents": 0, "voucher_cents": 0}


class TestSummaries:
    def test_summarize_reports_days_and_tier(self, service: RefundPolicyService) -> None:
        now = dt.datetime(2027, 1, 1, 12, 0, tzinfo=dt.UTC)
        summary = service.summarize(now, dt.date(2027, 2, 10))

        assert summary["days_before"] == 39
        assert summary["tier"] == "30_to_59"
        assert summary["refund_bps"] == 5_000

    def test_preview_payout_types(self, service: RefundPolicyService) -> None:
        now = dt.datetime(2027, 1, 1, 12, 0, tzinfo=dt.UTC)

        early = service.preview_payout(now, dt.date(2027, 6, 1), 30_000)
        late = service.preview_payout(now, dt.date(2027, 1, 5), 30_000)

        assert early["refund_type"] == "stripe_refund"
        assert early["stripe_refund_cents"] == 30_000
        assert late["refund_type"] == "voucher"
        assert late["voucher_cents"] == 24_000

    def test_policy_table_lists_all_tiers_in_order(self, service: RefundPolicyService) -> None:
        table = service.policy_table()
        assert [row["tier"] for row in table] == ["60_plus", "30_to_59", "15_to_29", "lt_15"]
        assert table[0]["max_days_before"] is None
