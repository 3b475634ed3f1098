"""Per-night inventory claims.

Every active booking and every manual block owns one item per occupied
night, keyed by ``(property_id, night)``. Claims are written with
``attribute_not_exists`` inside the same transaction as the owning record,
so two overlapping writers can never both commit.

A DynamoDB transaction holds at most 100 operations, which caps a single
stay or manual block at ``MAX_CLAIMED_NIGHTS``.
"""

import datetime as dt
from typing import TYPE_CHECKING, Any

from booking_engine.utils.dates import iter_nights

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService

MAX_CLAIMED_NIGHTS = 90


class NightClaims:
    """Builds claim and release operations for transactional writes."""

    TABLE = "night-claims"

    def __init__(self, db: "DynamoDBService") -> None:
        self.db = db

    def claim_ops(
        self,
        property_id: str,
        start: dt.date,
        end: dt.date,
        owner_type: str,
        owner_id: str,
    ) -> list[dict[str, Any]]:
        """Put operations that fail if any night in ``[start, end)`` is taken."""
        return [
            self.db.put_op(
                self.TABLE,
                {
                    "property_id": property_id,
                    "night": night.isoformat(),
                    "owner_type": owner_type,
                    "owner_id": owner_id,
                },
                condition_expression="attribute_not_exists(night)",
            )
            for night in iter_nights(start, end)
        ]

    def release_ops(
        self,
        property_id: str,
        start: dt.date,
        end: dt.date,
        owner_id: str,
    ) -> list[dict[str, Any]]:
        """Delete operations for claims still held by ``owner_id``."""
        return [
            self.db.delete_op(
                self.TABLE,
                {"property_id": property_id, "night": night.isoformat()},
                condition_expression="attribute_not_exists(night) OR owner_id = :owner",
                expression_attribute_values={":owner": owner_id},
            )
            for night in iter_nights(start, end)
        ]

