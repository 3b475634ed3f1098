"""Refund policy engine for cancellations.

Maps days before check-in to a cash refund and voucher split:
- 60+ days: 100% cash refund
- 30-59 days: 50% cash refund
- 15-29 days: 25% cash refund
- 0-14 days: no cash refund, 80% voucher credit

Percentages are basis points and amounts are cents, so the math is exact
integer arithmetic. Refund and voucher are computed independently and do
not need to sum to 100%. Only cash actually charged is ever used as the
base; applied credit is never refundable.
"""

import datetime as dt
from typing import NamedTuple, TypedDict

from booking_engine.models import RefundTier, RefundType
from booking_engine.utils.dates import days_before_start

BPS_DENOMINATOR = 10_000


class TierRule(NamedTuple):
    """One row of the policy table. ``max_days_before`` is inclusive, None = no limit."""

    tier: RefundTier
    min_days_before: int
    max_days_before: int | None
    label: str
    description: str
    refund_bps: int
    voucher_bps: int


class RefundOutcome(TypedDict):
    """Cash refund and voucher amounts in cents."""

    refund_cents: int
    voucher_cents: int


class PolicySummary(TypedDict):
    """The tier that applies to a cancellation, safe to show to customers."""

    days_before: int
    tier: str
    label: str
    description: str
    refund_bps: int
    voucher_bps: int


class PayoutPreview(TypedDict):
    """What a cancellation would pay out right now."""

    refund_type: str
    stripe_refund_cents: int
    voucher_cents: int


class RefundPolicyService:
    """Tier lookup and payout computation. First matching tier wins."""

    TIERS: tuple[TierRule, ...] = (
        TierRule(
            RefundTier.DAYS_60_PLUS,
            60,
            None,
            "60+ days before check-in",
            "Full refund to your original payment method.",
            10_000,
            0,
        ),
        TierRule(
            RefundTier.DAYS_30_TO_59,
            30,
            59,
            "30–59 days before check-in",
            "50% refund to your original payment method.",
            5_000,
            0,
        ),
        TierRule(
            RefundTier.DAYS_15_TO_29,
            15,
            29,
            "15–29 days before check-in",
            "25% refund to your original payment method.",
            2_500,
            0,
        ),
        TierRule(
            RefundTier.LESS_THAN_15,
            0,
            14,
            "Less than 15 days before check-in",
            "No cash refund. 80% voucher credit for future bookings.",
            0,
            8_000,
        ),
    )

    def get_tier(self, days_before: int) -> TierRule:
        """Tier for a day count; negative counts are clamped to 0."""
        days = max(0, days_before)
        for rule in self.TIERS:
            if days >= rule.min_days_before and (
                rule.max_days_before is None or days <= rule.max_days_before
            ):
                return rule
        return self.TIERS[-1]

    def compute_outcome(self, days_before: int, booking_total_cents: int) -> RefundOutcome:
        """Apply the tier's basis points to the cash total, flooring each part.

        Args:
            days_before: Whole days before check-in
            booking_total_cents: Cash charged in cents (never applied credit)

        Returns:
            RefundOutcome with refund and voucher cents
        """
        rule = self.get_tier(days_before)
        total = max(0, booking_total_cents)
        return RefundOutcome(
            refund_cents=total * rule.refund_bps // BPS_DENOMINATOR,
            voucher_cents=total * rule.voucher_bps // BPS_DENOMINATOR,
        )

    def summarize(self, now: dt.datetime, check_in: dt.date) -> PolicySummary:
        """Policy tier that applies when cancelling at ``now``."""
        days = days_before_start(now, check_in)
        rule = self.get_tier(days)
        return PolicySummary(
            days_before=days,
            tier=rule.tier.value,
            label=rule.label,
            description=rule.description,
            refund_bps=rule.refund_bps,
            voucher_bps=rule.voucher_bps,
        )

    def preview_payout(
        self,
        now: dt.datetime,
        check_in: dt.date,
        cash_paid_cents: int,
    ) -> PayoutPreview:
        """Payout a cancellation at ``now`` would produce for the cash paid."""
        outcome = self.compute_outcome(days_before_start(now, check_in), cash_paid_cents)
        if outcome["refund_cents"] > 0:
            refund_type = RefundType.STRIPE_REFUND
        elif outcome["voucher_cents"] > 0:
            refund_type = RefundType.VOUCHER
        else:
            refund_type = RefundType.NONE
        return PayoutPreview(
            refund_type=refund_type.value,
            stripe_refund_cents=outcome["refund_cents"],
            voucher_cents=outcome["voucher_cents"],
        )

    def policy_table(self) -> list[dict[str, object]]:
        """The full tier table for display."""
        return [
            {
                "tier": rule.tier.value,
                "min_days_before": rule.min_days_before,
                "max_days_before": rule.max_days_before,
                "label": rule.label,
                "description": rule.description,
                "refund_bps": rule.refund_bps,
                "voucher_bps": rule.voucher_bps,
            }
            for rule in self.TIERS
        ]
