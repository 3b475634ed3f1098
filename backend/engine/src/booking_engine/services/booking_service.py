"""Booking persistence and guarded status transitions."""

import datetime as dt
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from boto3.dynamodb.conditions import Attr

from booking_engine.models import (
    Booking,
    BookingError,
    BookingStatus,
    Caller,
    Cancellation,
    ErrorCode,
)
from booking_engine.utils.dates import format_datetime, utc_now

from .dynamodb import item_to_json

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService
    from .night_claims import NightClaims


class BookingService:
    """Reads and writes bookings and their cancellation records."""

    TABLE = "bookings"
    CANCELLATIONS_TABLE = "cancellations"

    def __init__(self, db: "DynamoDBService", claims: "NightClaims") -> None:
        self.db = db
        self.claims = claims

    def get_booking(self, booking_id: str) -> Booking | None:
        item = self.db.get_item(self.TABLE, {"booking_id": booking_id}, consistent_read=True)
        return self._item_to_booking(item) if item else None

    def require_booking(self, booking_id: str) -> Booking:
        booking = self.get_booking(booking_id)
        if booking is None:
            raise BookingError(ErrorCode.BOOKING_NOT_FOUND, {"booking_id": booking_id})
        return booking

    def require_visible_booking(self, booking_id: str, caller: Caller) -> Booking:
        """Booking owned by the caller, or any booking for an admin.

        Raises:
            BookingError: AUTH_REQUIRED, BOOKING_NOT_FOUND or FORBIDDEN
        """
        if not caller.is_admin and not caller.customer_id:
            raise BookingError(ErrorCode.AUTH_REQUIRED)
        booking = self.require_booking(booking_id)
        if not caller.is_admin and booking.customer_id != caller.customer_id:
            raise BookingError(ErrorCode.FORBIDDEN, {"booking_id": booking_id})
        return booking

    def list_customer_bookings(self, customer_id: str) -> list[Booking]:
        """A customer's bookings, newest first."""
        items = self.db.query_by_gsi(
            self.TABLE, "customer_id-index", "customer_id", customer_id
        )
        bookings = [self._item_to_booking(item) for item in items]
        return sorted(bookings, key=lambda b: b.created_at, reverse=True)

    def list_property_bookings(
        self, property_id: str, status: BookingStatus | None = None
    ) -> list[Booking]:
        filter_expression = Attr("status").eq(status.value) if status else None
        items = self.db.query_by_gsi(
            self.TABLE,
            "property_id-index",
            "property_id",
            property_id,
            filter_expression=filter_expression,
        )
        return sorted(
            (self._item_to_booking(item) for item in items), key=lambda b: b.start_date
        )

    def list_pending_created_before(self, cutoff: dt.datetime) -> list[Booking]:
        """Pending bookings whose checkout hold started before ``cutoff``."""
        items = self.db.scan(
            self.TABLE,
            filter_expression=Attr("status").eq(BookingStatus.PENDING.value)
            & Attr("created_at").lt(format_datetime(cutoff)),
        )
        return [self._item_to_booking(item) for item in items]

    # Transaction operations

    def put_op(self, booking: Booking) -> dict[str, Any]:
        return self.db.put_op(
            self.TABLE,
            self._booking_to_item(booking),
            condition_expression="attribute_not_exists(booking_id)",
        )

    def transition_op(
        self,
        booking_id: str,
        expected: Iterable[BookingStatus],
        next_status: BookingStatus,
        now: dt.datetime | None = None,
    ) -> dict[str, Any]:
        """Status update guarded by the status the caller last saw."""
        expected = list(expected)
        placeholders = [f":expected{i}" for i in range(len(expected))]
        values: dict[str, Any] = {
            ":next": next_status.value,
            ":now": format_datetime(now or utc_now()),
        }
        values.update({p: s.value for p, s in zip(placeholders, expected)})
        return self.db.update_op(
            self.TABLE,
            {"booking_id": booking_id},
            "SET #status = :next, updated_at = :now",
            expression_attribute_values=values,
            expression_attribute_names={"#status": "status"},
            condition_expression=f"#status IN ({', '.join(placeholders)})",
        )

    def close_ops(
        self,
        booking: Booking,
        expected: Iterable[BookingStatus],
        next_status: BookingStatus,
        now: dt.datetime | None = None,
    ) -> list[dict[str, Any]]:
        """Move a booking out of the active set and release its nights."""
        return [
            self.transition_op(booking.booking_id, expected, next_status, now),
            *self.claims.release_ops(
                booking.property_id, booking.start_date, booking.end_date, booking.booking_id
            ),
        ]

    def cancellation_op(self, cancellation: Cancellation) -> dict[str, Any]:
        return self.db.put_op(
            self.CANCELLATIONS_TABLE,
            cancellation.model_dump(mode="json"),
            condition_expression="attribute_not_exists(booking_id)",
        )

    def get_cancellation(self, booking_id: str) -> Cancellation | None:
        item = self.db.get_item(self.CANCELLATIONS_TABLE, {"booking_id": booking_id})
        return Cancellation.model_validate_json(item_to_json(item)) if item else None

    def _booking_to_item(self, booking: Booking) -> dict[str, Any]:
        item = booking.model_dump(mode="json")
        item["created_at"] = format_datetime(booking.created_at)
        item["updated_at"] = format_datetime(booking.updated_at)
        return item

    def _item_to_booking(self, item: dict[str, Any]) -> Booking:
        return Booking.model_validate_json(item_to_json(item))
