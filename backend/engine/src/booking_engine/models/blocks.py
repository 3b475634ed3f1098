"""Blocking entities: every record that can occupy nights of a property.

The three variants share the same ``[start_date, end_date)`` accessor so the
overlap test is written once and applied to the tagged union.
"""

import datetime as dt
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from .enums import BlockSource, BookingStatus, ExternalProvider


class _Block(BaseModel):
    model_config = ConfigDict(strict=True)

    block_id: str
    property_id: str
    start_date: dt.date
    end_date: dt.date

    def overlaps(self, start: dt.date, end: dt.date) -> bool:
        """Half-open overlap with ``[start, end)``."""
        return self.start_date < end and self.end_date > start


class DirectBookingBlock(_Block):
    """A pending or confirmed booking made on this platform."""

    source: Literal[BlockSource.DIRECT] = BlockSource.DIRECT
    status: BookingStatus
    guest_name: str | None = Field(default=None, description="Admin views only")
    customer_id: str | None = Field(default=None, description="Admin views only")


class ExternalBlock(_Block):
    """A hold imported from another channel's calendar."""

    source: Literal[BlockSource.EXTERNAL] = BlockSource.EXTERNAL
    provider: ExternalProvider
    uid: str = Field(..., description="Provider event UID, unique per provider")
    summary: str | None = None


class ManualBlock(_Block):
    """An administrator hold with a reason and no guest data."""

    source: Literal[BlockSource.MANUAL] = BlockSource.MANUAL
    reason: str | None = None
    created_by: str | None = None
    created_at: dt.datetime | None = None


BlockingEntity = Annotated[
    Union[DirectBookingBlock, ExternalBlock, ManualBlock],
    Field(discriminator="source"),
]


class PublicBlock(BaseModel):
    """Occupied range with guest and admin details stripped."""

    model_config = ConfigDict(strict=True, frozen=True)

    source: BlockSource
    start_date: dt.date
    end_date: dt.date

    @classmethod
    def from_block(
        cls, block: DirectBookingBlock | ExternalBlock | ManualBlock
    ) -> "PublicBlock":
        return cls(source=block.source, start_date=block.start_date, end_date=block.end_date)


class ExternalBlockImport(BaseModel):
    """One event handed over by a calendar importer."""

    model_config = ConfigDict(strict=False)

    uid: str
    start_date: dt.date
    end_date: dt.date
    summary: str | None = None
