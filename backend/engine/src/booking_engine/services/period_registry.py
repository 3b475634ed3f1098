"""Period registry: pricing and availability rules per property date range.

Periods of one property never intersect. The overlap check runs on every
create and update (excluding the record itself on update), and each write
bumps the property's ``period_version`` in the same transaction so two
concurrent admin writes cannot both pass the check.
"""

import datetime as dt
from typing import TYPE_CHECKING, Any

from booking_engine.models import (
    BookingError,
    ErrorCode,
    OverlapConflict,
    Period,
    PeriodInUse,
    PeriodPatch,
    PeriodRules,
    StateViolation,
)
from booking_engine.utils.dates import normalize_date_only, parse_datetime, utc_now
from booking_engine.utils.ids import generate_id
from booking_engine.utils.logging import get_logger

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService
    from .property_service import PropertyService

logger = get_logger(__name__)

_NON_NULLABLE_FIELDS = frozenset(
    {
        "start_date",
        "end_date",
        "is_open",
        "standard_nightly_price",
        "weekly_threshold_nights",
        "min_nights",
        "max_guests",
    }
)


class PeriodRegistry:
    """CRUD over periods with the non-overlap invariant enforced at write time."""

    TABLE = "periods"
    BOOKINGS_TABLE = "bookings"

    def __init__(
        self,
        db: "DynamoDBService",
        properties: "PropertyService",
    ) -> None:
        self.db = db
        self.properties = properties

    # Reads

    def get_period(self, period_id: str) -> Period | None:
        item = self.db.get_item(self.TABLE, {"period_id": period_id})
        return self._item_to_period(item) if item else None

    def require_period(self, period_id: str) -> Period:
        period = self.get_period(period_id)
        if period is None:
            raise BookingError(ErrorCode.PERIOD_NOT_FOUND, {"period_id": period_id})
        return period

    def list_periods(self, property_id: str) -> list[Period]:
        """All periods of a property, ordered by start date."""
        items = self.db.query_by_gsi(
            self.TABLE, "property_id-index", "property_id", property_id
        )
        periods = [self._item_to_period(item) for item in items]
        return sorted(periods, key=lambda p: (p.start_date, p.end_date))

    def periods_intersecting(
        self, property_id: str, start: dt.date, end: dt.date
    ) -> list[Period]:
        """Periods with ``existing.start < end AND existing.end > start``, by start date."""
        return [
            p
            for p in self.list_periods(property_id)
            if p.start_date < end and p.end_date > start
        ]

    def find_overlap(
        self,
        property_id: str,
        start: dt.date,
        end: dt.date,
        ignore_id: str | None = None,
    ) -> Period | None:
        """First period intersecting ``[start, end)``, skipping ``ignore_id``."""
        for period in self.periods_intersecting(property_id, start, end):
            if period.period_id != ignore_id:
                return period
        return None

    # Writes

    def create_period(
        self,
        property_id: str,
        start: str | dt.date,
        end: str | dt.date,
        rules: PeriodRules,
    ) -> Period:
        """Create a period after validating range, property and overlap.

        Raises:
            BookingError: INVALID_DATE_RANGE or PROPERTY_NOT_FOUND
            OverlapConflict: If the range intersects another period
        """
        start_date = normalize_date_only(start)
        end_date = normalize_date_only(end)
        _require_ordered(start_date, end_date)

        prop = self.properties.require_property(property_id, consistent_read=True)
        self._ensure_no_overlap(property_id, start_date, end_date)

        now = utc_now()
        period = Period(
            period_id=generate_id("PER"),
            property_id=property_id,
            start_date=start_date,
            end_date=end_date,
            created_at=now,
            updated_at=now,
            **rules.model_dump(),
        )

        self._commit(
            prop,
            self.db.put_op(
                self.TABLE,
                self._period_to_item(period),
                condition_expression="attribute_not_exists(period_id)",
            ),
        )
        logger.info(
            "Created period %s for property %s [%s, %s)",
            period.period_id,
            property_id,
            start_date,
            end_date,
        )
        return period

    def update_period(self, period_id: str, patch: PeriodPatch) -> Period:
        """Apply a partial update and re-check overlap against other periods.

        Fields absent from the patch keep their value; explicit nulls clear
        nullable fields and are rejected for required ones.
        """
        current = self.require_period(period_id)
        changes = patch.changes()

        nulled = sorted(k for k, v in changes.items() if v is None and k in _NON_NULLABLE_FIELDS)
        if nulled:
            raise BookingError(
                ErrorCode.INVALID_PERIOD_RULES, {"null_fields": ",".join(nulled)}
            )

        if "start_date" in changes:
            changes["start_date"] = normalize_date_only(changes["start_date"])
        if "end_date" in changes:
            changes["end_date"] = normalize_date_only(changes["end_date"])

        merged = current.model_dump()
        merged.update(changes)
        merged["updated_at"] = utc_now()
        try:
            updated = Period.model_validate(merged)
        except ValueError as e:
            raise BookingError(ErrorCode.INVALID_PERIOD_RULES, {"error": str(e)}) from e

        _require_ordered(updated.start_date, updated.end_date)
        # Version read before the check; any period write after it fails the commit.
        prop = self.properties.require_property(updated.property_id, consistent_read=True)
        self._ensure_no_overlap(
            updated.property_id, updated.start_date, updated.end_date, ignore_id=period_id
        )

        self._commit(
            prop,
            self.db.put_op(
                self.TABLE,
                self._period_to_item(updated),
                condition_expression="attribute_exists(period_id)",
            ),
        )
        logger.info("Updated period %s fields=%s", period_id, sorted(changes))
        return updated

    def delete_period(self, period_id: str) -> None:
        """Delete a period that no booking references.

        Raises:
            PeriodInUse: If any booking used this period as its arrival period
        """
        period = self.require_period(period_id)
        prop = self.properties.require_property(period.property_id, consistent_read=True)
        references = self.db.query_by_gsi(
            self.BOOKINGS_TABLE,
            "booking_period_id-index",
            "booking_period_id",
            period_id,
        )
        if references:
            raise PeriodInUse(period_id, len(references))

        self._commit(
            prop,
            self.db.delete_op(
                self.TABLE,
                {"period_id": period_id},
                condition_expression="attribute_exists(period_id)",
            ),
        )
        logger.info("Deleted period %s", period_id)

    def _ensure_no_overlap(
        self,
        property_id: str,
        start: dt.date,
        end: dt.date,
        ignore_id: str | None = None,
    ) -> None:
        conflict = self.find_overlap(property_id, start, end, ignore_id)
        if conflict is not None:
            raise OverlapConflict(conflict.period_id, conflict.start_date, conflict.end_date)

    def _commit(self, prop: Any, operation: dict[str, Any]) -> None:
        outcome = self.db.transact_write_detailed(
            [self.properties.period_version_op(prop), operation]
        )
        if not outcome.succeeded:
            raise StateViolation(
                ErrorCode.CONCURRENT_UPDATE, property_id=prop.property_id
            )

    # Mapping

    def _period_to_item(self, period: Period) -> dict[str, Any]:
        return period.model_dump(mode="json")

    def _item_to_period(self, item: dict[str, Any]) -> Period:
        discount = item.get("weekly_discount_bps")
        return Period(
            period_id=item["period_id"],
            property_id=item["property_id"],
            start_date=dt.date.fromisoformat(item["start_date"]),
            end_date=dt.date.fromisoformat(item["end_date"]),
            is_open=bool(item.get("is_open", True)),
            standard_nightly_price=int(item["standard_nightly_price"]),
            weekly_discount_bps=int(discount) if discount is not None else None,
            weekly_threshold_nights=int(item.get("weekly_threshold_nights", 7)),
            min_nights=int(item.get("min_nights", 1)),
            max_guests=int(item["max_guests"]),
            name=item.get("name"),
            notes=item.get("notes"),
            created_at=parse_datetime(item["created_at"]),
            updated_at=parse_datetime(item["updated_at"]),
        )


def _require_ordered(start: dt.date, end: dt.date) -> None:
    if end <= start:
        raise BookingError(
            ErrorCode.INVALID_DATE_RANGE,
            {"start_date": start.isoformat(), "end_date": end.isoformat()},
        )
