"""Unit tests for CreditLedger consumption order, planning and expiry."""

import datetime as dt
from typing import Any

import pytest

from booking_engine.models import CreditMismatch, CreditVoucher, VoucherStatus
from booking_engine.services.credit_ledger import consumption_order

NOW = dt.datetime(2027, 1, 1, 12, 0, tzinfo=dt.UTC)


def _expires(days: int) -> dt.datetime:
    return NOW + dt.timedelta(days=days)


def _voucher(
    voucher_id: str,
    remaining_cents: int,
    *,
    expires_at: dt.datetime | None,
    created_at: dt.datetime,
) -> CreditVoucher:
    return CreditVoucher(
        voucher_id=voucher_id,
        customer_id="cust-123",
        currency="eur",
        issued_cents=remaining_cents,
        remaining_cents=remaining_cents,
        status=VoucherStatus.ACTIVE,
        expires_at=expires_at,
        created_at=created_at,
    )


class TestUsableVouchers:
    def test_soonest_expiry_first_and_never_expiring_last(self, credit_ledger: Any) -> None:
        forever = credit_ledger.issue_voucher("cust-123", 1_000)
        later = credit_ledger.issue_voucher("cust-123", 1_000, expires_at=_expires(90))
        sooner = credit_ledger.issue_voucher("cust-123", 1_000, expires_at=_expires(10))

        usable = credit_ledger.usable_vouchers("cust-123", NOW)

        assert [v.voucher_id for v in usable] == [
            sooner.voucher_id,
            later.voucher_id,
            forever.voucher_id,
        ]

    def test_expired_and_other_customers_excluded(self, credit_ledger: Any) -> None:
        credit_ledger.issue_voucher("cust-123", 1_000, expires_at=NOW - dt.timedelta(days=1))
        credit_ledger.issue_voucher("cust-456", 1_000)

        assert credit_ledger.usable_vouchers("cust-123", NOW) == []
        assert credit_ledger.estimate_applicable("cust-123", 10_000, NOW) == 0


class TestEstimateAndPlan:
    def test_estimate_is_capped_by_amount_due(self, credit_ledger: Any) -> None:
        credit_ledger.issue_voucher("cust-123", 8_000)
        credit_ledger.issue_voucher("cust-123", 8_000)

        assert credit_ledger.estimate_applicable("cust-123", 10_000, NOW) == 10_000
        assert credit_ledger.estimate_applicable("cust-123", 50_000, NOW) == 16_000

    def test_max_vouchers_limits_estimate(self, credit_ledger: Any) -> None:
        for _ in range(3):
            credit_ledger.issue_voucher("cust-123", 1_000)

        assert credit_ledger.estimate_applicable("cust-123", 10_000, NOW, max_vouchers=2) == 2_000

    def test_plan_takes_partial_amount_from_last_voucher(self, credit_ledger: Any) -> None:
        first = credit_ledger.issue_voucher("cust-123", 3_000, expires_at=_expires(5))
        second = credit_ledger.issue_voucher("cust-123", 5_000, expires_at=_expires(50))

        draws = credit_ledger.plan_consumption("cust-123", 4_000, NOW)

        assert [(d.voucher.voucher_id, d.take_cents) for d in draws] == [
            (first.voucher_id, 3_000),
            (second.voucher_id, 1_000),
        ]
        assert draws[1].remaining_after == 4_000

    def test_plan_raises_when_balance_short(self, credit_ledger: Any) -> None:
        credit_ledger.issue_voucher("cust-123", 1_000)

        with pytest.raises(CreditMismatch):
            credit_ledger.plan_consumption("cust-123", 2_000, NOW)


class TestConsume:
    def test_consume_spends_and_finalizes_vouchers(self, credit_ledger: Any) -> None:
        first = credit_ledger.issue_voucher("cust-123", 3_000, expires_at=_expires(5))
        second = credit_ledger.issue_voucher("cust-123", 5_000, expires_at=_expires(50))

        credit_ledger.consume("cust-123", 4_000, NOW)

        by_id = {v.voucher_id: v for v in credit_ledger.list_vouchers("cust-123")}
        assert by_id[first.voucher_id].remaining_cents == 0
        assert by_id[first.voucher_id].status == VoucherStatus.SPENT
        assert by_id[second.voucher_id].remaining_cents == 4_000
        assert by_id[second.voucher_id].status == VoucherStatus.ACTIVE

    def test_stale_plan_fails_conditional_write(self, credit_ledger: Any, db: Any) -> None:
        """A plan made before a concurrent spend cannot commit."""
        credit_ledger.issue_voucher("cust-123", 5_000)
        stale = credit_ledger.plan_consumption("cust-123", 2_000, NOW)

        credit_ledger.consume("cust-123", 1_000, NOW)

        assert db.transact_write(credit_ledger.consume_ops(stale)) is False
        assert credit_ledger.list_vouchers("cust-123")[0].remaining_cents == 4_000


class TestExpireVouchers:
    def test_expires_only_active_past_expiry(self, credit_ledger: Any) -> None:
        past = credit_ledger.issue_voucher("cust-123", 1_000, expires_at=_expires(1))
        credit_ledger.issue_voucher("cust-123", 1_000, expires_at=_expires(30))
        credit_ledger.issue_voucher("cust-123", 1_000)

        count = credit_ledger.expire_vouchers(NOW + dt.timedelta(days=2))

        assert count == 1
        statuses = {v.voucher_id: v.status for v in credit_ledger.list_vouchers("cust-123")}
        assert statuses[past.voucher_id] == VoucherStatus.EXPIRED
        assert list(statuses.values()).count(VoucherStatus.ACTIVE) == 2

    def test_second_run_is_a_no_op(self, credit_ledger: Any) -> None:
        credit_ledger.issue_voucher("cust-123", 1_000, expires_at=_expires(1))
        later = NOW + dt.timedelta(days=2)

        assert credit_ledger.expire_vouchers(later) == 1
        assert credit_ledger.expire_vouchers(later) == 0


class TestConsumptionOrder:
    """Expiry ascending with no expiry last, then creation time, then voucher ID."""

    @pytest.fixture
    def vouchers(self) -> list[CreditVoucher]:
        expiry = _expires(30)
        created = NOW - dt.timedelta(days=20)
        # Listed in reverse of the expected draw order
        return [
            _voucher("VCH-F", 100, expires_at=None, created_at=created - dt.timedelta(days=5)),
            _voucher("VCH-E", 200, expires_at=_expires(60), created_at=created),
            _voucher("VCH-D", 300, expires_at=expiry, created_at=created + dt.timedelta(days=1)),
            _voucher("VCH-C", 400, expires_at=expiry, created_at=created),
            _voucher("VCH-B", 500, expires_at=expiry, created_at=created - dt.timedelta(days=1)),
            _voucher("VCH-A", 600, expires_at=expiry, created_at=created - dt.timedelta(days=1)),
        ]

    def test_sort_key_breaks_ties(self, vouchers: list[CreditVoucher]) -> None:
        ordered = sorted(vouchers, key=consumption_order)

        assert [v.voucher_id for v in ordered] == [
            "VCH-A",
            "VCH-B",
            "VCH-C",
            "VCH-D",
            "VCH-E",
            "VCH-F",
        ]

    def test_plan_follows_sort_key(
        self, credit_ledger: Any, vouchers: list[CreditVoucher]
    ) -> None:
        assert credit_ledger.db.transact_write([credit_ledger.issue_op(v) for v in vouchers])

        draws = credit_ledger.plan_consumption("cust-123", 2_050, NOW)

        assert [(d.voucher.voucher_id, d.take_cents) for d in draws] == [
            ("VCH-A", 600),
            ("VCH-B", 500),
            ("VCH-C", 400),
            ("VCH-D", 300),
            ("VCH-E", 200),
            ("VCH-F", 50),
        ]

    def test_undated_voucher_drawn_after_dated_ones(self, credit_ledger: Any) -> None:
        undated = credit_ledger.issue_voucher("cust-123", 5_000)
        dated = credit_ledger.issue_voucher("cust-123", 1_000, expires_at=_expires(365))

        draws = credit_ledger.plan_consumption("cust-123", 1_500, NOW)

        assert [(d.voucher.voucher_id, d.take_cents) for d in draws] == [
            (dated.voucher_id, 1_000),
            (undated.voucher_id, 500),
        ]
