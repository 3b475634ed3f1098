"""Property storage: default price and capacity rules per property."""

from typing import TYPE_CHECKING, Any

from booking_engine.models import BookingError, ErrorCode, Property, StateViolation

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService


class PropertyService:
    """Read and write property records."""

    TABLE = "properties"

    def __init__(self, db: "DynamoDBService") -> None:
        self.db = db

    def get_property(
        self, property_id: str, consistent_read: bool = False
    ) -> Property | None:
        item = self.db.get_item(
            self.TABLE, {"property_id": property_id}, consistent_read=consistent_read
        )
        if not item:
            return None
        return self._item_to_property(item)

    def require_property(
        self, property_id: str, consistent_read: bool = False
    ) -> Property:
        """Get a property or raise PROPERTY_NOT_FOUND."""
        prop = self.get_property(property_id, consistent_read=consistent_read)
        if prop is None:
            raise BookingError(
                ErrorCode.PROPERTY_NOT_FOUND, {"property_id": property_id}
            )
        return prop

    def put_property(self, prop: Property) -> Property:
        """Create or replace a property, preserving its period version.

        The put is conditional on the version read, so it never rolls back a
        period write that landed in between.

        Raises:
            StateViolation: CONCURRENT_UPDATE if the property changed meanwhile
        """
        existing = self.get_property(prop.property_id, consistent_read=True)
        if existing is None:
            prop = prop.model_copy(update={"period_version": 0})
            written = self.db.put_item(
                self.TABLE,
                self._property_to_item(prop),
                condition_expression="attribute_not_exists(property_id)",
            )
        else:
            prop = prop.model_copy(update={"period_version": existing.period_version})
            written = self.db.put_item(
                self.TABLE,
                self._property_to_item(prop),
                condition_expression=(
                    "attribute_not_exists(period_version) OR period_version = :seen"
                ),
                expression_attribute_values={":seen": existing.period_version},
            )
        if not written:
            raise StateViolation(ErrorCode.CONCURRENT_UPDATE, property_id=prop.property_id)
        return prop

    def period_version_op(self, prop: Property) -> dict[str, Any]:
        """Transactional bump of ``period_version`` guarded by the version read.

        Any concurrent period write for the same property makes the guard fail.
        """
        return self.db.update_op(
            self.TABLE,
            {"property_id": prop.property_id},
            "SET period_version = :next",
            expression_attribute_values={
                ":seen": prop.period_version,
                ":next": prop.period_version + 1,
            },
            condition_expression=(
                "attribute_not_exists(period_version) OR period_version = :seen"
            ),
        )

    def _property_to_item(self, prop: Property) -> dict[str, Any]:
        return prop.model_dump(mode="json")

    def _item_to_property(self, item: dict[str, Any]) -> Property:
        return Property(
            property_id=item["property_id"],
            title=item["title"],
            currency=item.get("currency", "eur"),
            default_nightly_price=int(item["default_nightly_price"]),
            max_guests=int(item["max_guests"]),
            min_nights=int(item.get("min_nights", 1)),
            period_version=int(item.get("period_version", 0)),
        )
