"""Credit ledger: per-customer vouchers issued by cancellations.

Vouchers are spent soonest-to-expire first, ties broken by creation time,
with never-expiring vouchers last. Consumption is expressed as conditional
transaction operations so it commits or rolls back together with the
booking it pays for; a concurrent spend makes the condition fail.
"""

import datetime as dt
from typing import TYPE_CHECKING, Any, NamedTuple

from boto3.dynamodb.conditions import Attr

from booking_engine.models import CreditMismatch, CreditVoucher, VoucherStatus
from booking_engine.utils.dates import (
    format_datetime,
    parse_datetime,
    parse_optional_datetime,
    utc_now,
)
from booking_engine.utils.ids import generate_id
from booking_engine.utils.logging import get_logger

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService

logger = get_logger(__name__)

_FAR_FUTURE = dt.datetime.max.replace(tzinfo=dt.UTC)


class VoucherDraw(NamedTuple):
    """Amount to take from one voucher."""

    voucher: CreditVoucher
    take_cents: int

    @property
    def remaining_after(self) -> int:
        return self.voucher.remaining_cents - self.take_cents


def consumption_order(voucher: CreditVoucher) -> tuple[dt.datetime, dt.datetime, str]:
    """Sort key: expiry ascending (none last), then creation, then ID."""
    return (voucher.expires_at or _FAR_FUTURE, voucher.created_at, voucher.voucher_id)


class CreditLedger:
    """Estimate, plan and consume customer credit."""

    TABLE = "vouchers"

    def __init__(self, db: "DynamoDBService") -> None:
        self.db = db

    def list_vouchers(self, customer_id: str) -> list[CreditVoucher]:
        """All vouchers of a customer, newest first."""
        items = self.db.query_by_gsi(
            self.TABLE, "customer_id-index", "customer_id", customer_id
        )
        vouchers = [self._item_to_voucher(item) for item in items]
        return sorted(vouchers, key=lambda v: v.created_at, reverse=True)

    def usable_vouchers(self, customer_id: str, now: dt.datetime) -> list[CreditVoucher]:
        """Active, unexpired, non-empty vouchers in consumption order."""
        usable = [v for v in self.list_vouchers(customer_id) if v.is_usable(now)]
        return sorted(usable, key=consumption_order)

    def estimate_applicable(
        self,
        customer_id: str,
        due_cents: int,
        now: dt.datetime,
        max_vouchers: int | None = None,
    ) -> int:
        """Credit that would apply to ``due_cents`` right now. Read-only."""
        draws = self._walk(customer_id, due_cents, now, max_vouchers)
        return sum(draw.take_cents for draw in draws)

    def plan_consumption(
        self,
        customer_id: str,
        amount_cents: int,
        now: dt.datetime,
        max_vouchers: int | None = None,
    ) -> list[VoucherDraw]:
        """Draws covering exactly ``amount_cents``.

        Raises:
            CreditMismatch: If the usable balance no longer covers the amount
        """
        draws = self._walk(customer_id, amount_cents, now, max_vouchers)
        available = sum(d.take_cents for d in draws)
        if available != amount_cents:
            raise CreditMismatch(amount_cents, available)
        return draws

    def consume_ops(self, draws: list[VoucherDraw]) -> list[dict[str, Any]]:
        """Conditional updates guarded by the balance each draw was planned on.

        A voucher drawn down to zero is finalized as ``spent``.
        """
        ops = []
        for draw in draws:
            remaining = draw.remaining_after
            ops.append(
                self.db.update_op(
                    self.TABLE,
                    {"voucher_id": draw.voucher.voucher_id},
                    "SET remaining_cents = :remaining, #status = :next, updated_at = :now",
                    expression_attribute_values={
                        ":seen": draw.voucher.remaining_cents,
                        ":remaining": remaining,
                        ":active": VoucherStatus.ACTIVE.value,
                        ":next": (
                            VoucherStatus.SPENT.value
                            if remaining == 0
                            else VoucherStatus.ACTIVE.value
                        ),
                        ":now": format_datetime(utc_now()),
                    },
                    expression_attribute_names={"#status": "status"},
                    condition_expression="remaining_cents = :seen AND #status = :active",
                )
            )
        return ops

    def consume(
        self, customer_id: str, amount_cents: int, now: dt.datetime
    ) -> list[VoucherDraw]:
        """Consume credit on its own, outside a booking transaction.

        Raises:
            CreditMismatch: If the balance is short or changed concurrently
        """
        draws = self.plan_consumption(customer_id, amount_cents, now)
        if draws and not self.db.transact_write(self.consume_ops(draws)):
            raise CreditMismatch(amount_cents)
        return draws

    def build_voucher(
        self,
        customer_id: str,
        amount_cents: int,
        *,
        origin_booking_id: str | None = None,
        currency: str = "eur",
        expires_at: dt.datetime | None = None,
    ) -> CreditVoucher:
        return CreditVoucher(
            voucher_id=generate_id("VCH"),
            customer_id=customer_id,
            currency=currency,
            issued_cents=amount_cents,
            remaining_cents=amount_cents,
            status=VoucherStatus.ACTIVE,
            expires_at=expires_at,
            origin_booking_id=origin_booking_id,
            created_at=utc_now(),
        )

    def issue_op(self, voucher: CreditVoucher) -> dict[str, Any]:
        """Transactional put of a newly issued voucher."""
        return self.db.put_op(
            self.TABLE,
            self._voucher_to_item(voucher),
            condition_expression="attribute_not_exists(voucher_id)",
        )

    def issue_voucher(
        self,
        customer_id: str,
        amount_cents: int,
        *,
        origin_booking_id: str | None = None,
        currency: str = "eur",
        expires_at: dt.datetime | None = None,
    ) -> CreditVoucher:
        """Create and store one new voucher; vouchers are never merged."""
        voucher = self.build_voucher(
            customer_id,
            amount_cents,
            origin_booking_id=origin_booking_id,
            currency=currency,
            expires_at=expires_at,
        )
        self.db.put_item(
            self.TABLE,
            self._voucher_to_item(voucher),
            condition_expression="attribute_not_exists(voucher_id)",
        )
        logger.info(
            "Issued voucher %s (%d cents) to %s", voucher.voucher_id, amount_cents, customer_id
        )
        return voucher

    def expire_vouchers(self, now: dt.datetime) -> int:
        """Mark active vouchers past their expiry as expired. Returns the count."""
        items = self.db.scan(
            self.TABLE,
            filter_expression=Attr("status").eq(VoucherStatus.ACTIVE.value)
            & Attr("expires_at").exists(),
        )
        expired = 0
        for item in items:
            voucher = self._item_to_voucher(item)
            if voucher.expires_at is None or voucher.expires_at > now:
                continue
            updated = self.db.update_item(
                self.TABLE,
                {"voucher_id": voucher.voucher_id},
                "SET #status = :expired, updated_at = :now",
                {
                    ":expired": VoucherStatus.EXPIRED.value,
                    ":active": VoucherStatus.ACTIVE.value,
                    ":now": format_datetime(now),
                },
                {"#status": "status"},
                condition_expression="#status = :active",
            )
            if updated is not None:
                expired += 1
        if expired:
            logger.info("Expired %d vouchers", expired)
        return expired

    def _walk(
        self,
        customer_id: str,
        due_cents: int,
        now: dt.datetime,
        max_vouchers: int | None = None,
    ) -> list[VoucherDraw]:
        draws: list[VoucherDraw] = []
        still_due = max(0, due_cents)
        for voucher in self.usable_vouchers(customer_id, now):
            if still_due <= 0 or (max_vouchers is not None and len(draws) >= max_vouchers):
                break
            take = min(voucher.remaining_cents, still_due)
            draws.append(VoucherDraw(voucher, take))
            still_due -= take
        return draws

    def _voucher_to_item(self, voucher: CreditVoucher) -> dict[str, Any]:
        item = voucher.model_dump(mode="json")
        item["updated_at"] = format_datetime(voucher.created_at)
        return item

    def _item_to_voucher(self, item: dict[str, Any]) -> CreditVoucher:
        return CreditVoucher(
            voucher_id=item["voucher_id"],
            customer_id=item["customer_id"],
            currency=item.get("currency", "eur"),
            issued_cents=int(item["issued_cents"]),
            remaining_cents=int(item["remaining_cents"]),
            status=VoucherStatus(item["status"]),
            expires_at=parse_optional_datetime(item.get("expires_at")),
            origin_booking_id=item.get("origin_booking_id"),
            created_at=parse_datetime(item["created_at"]),
        )
