"""Blocking entity storage and the single overlap query.

Direct bookings, external (imported) holds and manual admin holds are read
into one tagged union so the overlap test is applied in one place.
"""

import datetime as dt
from typing import TYPE_CHECKING, Any

from boto3.dynamodb.conditions import Attr

from booking_engine.models import (
    ACTIVE_BOOKING_STATUSES,
    BookingError,
    BookingStatus,
    DatesUnavailable,
    DirectBookingBlock,
    ErrorCode,
    ExternalBlock,
    ExternalBlockImport,
    ExternalProvider,
    ManualBlock,
)
from booking_engine.utils.dates import normalize_date_only, parse_optional_datetime, utc_now
from booking_engine.utils.ids import generate_id
from booking_engine.utils.logging import get_logger

from .night_claims import MAX_CLAIMED_NIGHTS

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService
    from .night_claims import NightClaims
    from .property_service import PropertyService

logger = get_logger(__name__)

AnyBlock = DirectBookingBlock | ExternalBlock | ManualBlock


class BlockService:
    """Reads all blocking sources and manages manual and external holds."""

    BOOKINGS_TABLE = "bookings"
    EXTERNAL_TABLE = "external-blocks"
    MANUAL_TABLE = "manual-blocks"

    def __init__(
        self,
        db: "DynamoDBService",
        properties: "PropertyService",
        claims: "NightClaims",
    ) -> None:
        self.db = db
        self.properties = properties
        self.claims = claims

    # Reads

    def direct_blocks(self, property_id: str) -> list[DirectBookingBlock]:
        items = self.db.query_by_gsi(
            self.BOOKINGS_TABLE,
            "property_id-index",
            "property_id",
            property_id,
            filter_expression=Attr("status").is_in(
                [s.value for s in ACTIVE_BOOKING_STATUSES]
            ),
        )
        return [
            DirectBookingBlock(
                block_id=item["booking_id"],
                property_id=item["property_id"],
                start_date=dt.date.fromisoformat(item["start_date"]),
                end_date=dt.date.fromisoformat(item["end_date"]),
                status=BookingStatus(item["status"]),
                guest_name=item.get("guest_name"),
                customer_id=item.get("customer_id"),
            )
            for item in items
        ]

    def external_blocks(self, property_id: str) -> list[ExternalBlock]:
        items = self.db.query_by_gsi(
            self.EXTERNAL_TABLE, "property_id-index", "property_id", property_id
        )
        return [self._item_to_external(item) for item in items]

    def manual_blocks(self, property_id: str) -> list[ManualBlock]:
        items = self.db.query_by_gsi(
            self.MANUAL_TABLE, "property_id-index", "property_id", property_id
        )
        return [self._item_to_manual(item) for item in items]

    def list_blocks(
        self,
        property_id: str,
        start: dt.date | None = None,
        end: dt.date | None = None,
    ) -> list[AnyBlock]:
        """Every blocking entity of a property, optionally limited to a window."""
        blocks: list[AnyBlock] = [
            *self.direct_blocks(property_id),
            *self.external_blocks(property_id),
            *self.manual_blocks(property_id),
        ]
        if start is not None and end is not None:
            blocks = [b for b in blocks if b.overlaps(start, end)]
        return sorted(blocks, key=lambda b: (b.start_date, b.end_date, b.source.value))

    def overlapping(
        self, property_id: str, start: dt.date, end: dt.date
    ) -> list[AnyBlock]:
        """Blocking entities whose range intersects ``[start, end)``."""
        return self.list_blocks(property_id, start, end)

    # Manual blocks

    def create_manual_block(
        self,
        property_id: str,
        start: str | dt.date,
        end: str | dt.date,
        reason: str | None = None,
        created_by: str | None = None,
    ) -> ManualBlock:
        """Create an admin hold; claims its nights so bookings cannot race it.

        Raises:
            DatesUnavailable: If any blocking entity already overlaps the range
        """
        start_date = normalize_date_only(start)
        end_date = normalize_date_only(end)
        _validate_range(start_date, end_date)
        self.properties.require_property(property_id)

        if self.overlapping(property_id, start_date, end_date):
            raise DatesUnavailable(property_id, start_date, end_date)

        block = ManualBlock(
            block_id=generate_id("BLK"),
            property_id=property_id,
            start_date=start_date,
            end_date=end_date,
            reason=reason,
            created_by=created_by,
            created_at=utc_now(),
        )
        outcome = self.db.transact_write_detailed(
            [
                self.db.put_op(
                    self.MANUAL_TABLE,
                    block.model_dump(mode="json"),
                    condition_expression="attribute_not_exists(block_id)",
                ),
                *self.claims.claim_ops(
                    property_id, start_date, end_date, "manual_block", block.block_id
                ),
            ]
        )
        if not outcome.succeeded:
            raise DatesUnavailable(property_id, start_date, end_date)

        logger.info(
            "Manual block %s created for %s [%s, %s)",
            block.block_id,
            property_id,
            start_date,
            end_date,
        )
        return block

    def delete_manual_block(self, block_id: str) -> None:
        """Remove an admin hold and release its nights."""
        item = self.db.get_item(self.MANUAL_TABLE, {"block_id": block_id})
        if not item:
            raise BookingError(ErrorCode.BLOCK_NOT_FOUND, {"block_id": block_id})
        block = self._item_to_manual(item)

        outcome = self.db.transact_write_detailed(
            [
                self.db.delete_op(
                    self.MANUAL_TABLE,
                    {"block_id": block_id},
                    condition_expression="attribute_exists(block_id)",
                ),
                *self.claims.release_ops(
                    block.property_id, block.start_date, block.end_date, block_id
                ),
            ]
        )
        if not outcome.succeeded:
            raise BookingError(ErrorCode.CONCURRENT_UPDATE, {"block_id": block_id})
        logger.info("Manual block %s deleted", block_id)

    # External blocks

    def upsert_external_block(
        self,
        property_id: str,
        provider: ExternalProvider,
        event: ExternalBlockImport,
    ) -> ExternalBlock:
        """Store or refresh one imported hold, keyed by provider and UID."""
        _validate_range(event.start_date, event.end_date, max_nights=None)
        block = ExternalBlock(
            block_id=_external_block_id(property_id, provider, event.uid),
            property_id=property_id,
            provider=provider,
            uid=event.uid,
            summary=event.summary,
            start_date=event.start_date,
            end_date=event.end_date,
        )
        self.db.put_item(self.EXTERNAL_TABLE, block.model_dump(mode="json"))
        return block

    def replace_external_blocks(
        self,
        property_id: str,
        provider: ExternalProvider,
        events: list[ExternalBlockImport],
    ) -> list[ExternalBlock]:
        """Make the stored holds of one provider match an imported feed.

        Holds of other providers are left untouched.
        """
        self.properties.require_property(property_id)
        stored = [b for b in self.external_blocks(property_id) if b.provider == provider]
        kept = [self.upsert_external_block(property_id, provider, e) for e in events]

        kept_ids = {b.block_id for b in kept}
        removed = [b for b in stored if b.block_id not in kept_ids]
        for block in removed:
            self.db.delete_item(self.EXTERNAL_TABLE, {"block_id": block.block_id})

        logger.info(
            "External sync %s for %s: %d kept, %d removed",
            provider.value,
            property_id,
            len(kept),
            len(removed),
        )
        return kept

    # Mapping

    def _item_to_external(self, item: dict[str, Any]) -> ExternalBlock:
        return ExternalBlock(
            block_id=item["block_id"],
            property_id=item["property_id"],
            provider=ExternalProvider(item["provider"]),
            uid=item["uid"],
            summary=item.get("summary"),
            start_date=dt.date.fromisoformat(item["start_date"]),
            end_date=dt.date.fromisoformat(item["end_date"]),
        )

    def _item_to_manual(self, item: dict[str, Any]) -> ManualBlock:
        return ManualBlock(
            block_id=item["block_id"],
            property_id=item["property_id"],
            start_date=dt.date.fromisoformat(item["start_date"]),
            end_date=dt.date.fromisoformat(item["end_date"]),
            reason=item.get("reason"),
            created_by=item.get("created_by"),
            created_at=parse_optional_datetime(item.get("created_at")),
        )


def _external_block_id(property_id: str, provider: ExternalProvider, uid: str) -> str:
    return f"{property_id}:{provider.value}:{uid}"


def _validate_range(
    start: dt.date, end: dt.date, max_nights: int | None = MAX_CLAIMED_NIGHTS
) -> None:
    if end <= start:
        raise BookingError(
            ErrorCode.INVALID_DATE_RANGE,
            {"start_date": start.isoformat(), "end_date": end.isoformat()},
        )
    if max_nights is not None and (end - start).days > max_nights:
        raise BookingError(
            ErrorCode.STAY_TOO_LONG,
            {"nights": (end - start).days, "max_nights": max_nights},
        )
