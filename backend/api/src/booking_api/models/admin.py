"""API models for admin endpoints: properties, periods, blocks and jobs."""

import datetime as dt

from pydantic import BaseModel, ConfigDict, Field

from booking_engine.models import (
    ExternalBlockImport,
    ExternalProvider,
    PeriodRules,
)


class PropertyUpsertRequest(BaseModel):
    """Create or replace a property's default rules."""

    model_config = ConfigDict(strict=True)

    title: str
    currency: str = "eur"
    default_nightly_price: int = Field(..., ge=0)
    max_guests: int = Field(..., ge=1)
    min_nights: int = Field(default=1, ge=1)


class PeriodCreateRequest(PeriodRules):
    """A new period over ``[start_date, end_date)``."""

    model_config = ConfigDict(
        strict=False,
        json_schema_extra={
            "examples": [
                {
                    "property_id": "PROP-SUMMERHOUSE",
                    "start_date": "2026-06-01",
                    "end_date": "2026-09-01",
                    "standard_nightly_price": 180,
                    "weekly_discount_bps": 1000,
                    "min_nights": 3,
                    "max_guests": 6,
                    "name": "Summer",
                }
            ]
        },
    )

    property_id: str
    start_date: str
    end_date: str

    def rules(self) -> PeriodRules:
        return PeriodRules.model_validate(
            self.model_dump(exclude={"property_id", "start_date", "end_date"})
        )


class ManualBlockCreateRequest(BaseModel):
    """Admin hold over ``[start_date, end_date)``."""

    model_config = ConfigDict(strict=True)

    property_id: str
    start_date: str
    end_date: str
    reason: str | None = None


class ExternalBlocksReplaceRequest(BaseModel):
    """Full feed of one external channel for one property."""

    model_config = ConfigDict(strict=False)

    provider: ExternalProvider = ExternalProvider.BOOKING_COM
    events: list[ExternalBlockImport] = Field(default_factory=list)


class VoucherIssueRequest(BaseModel):
    """Goodwill credit issued by an admin."""

    model_config = ConfigDict(strict=False)

    customer_id: str
    amount_cents: int = Field(..., gt=0)
    currency: str = "eur"
    expires_at: dt.datetime | None = None


class ExpirePendingResponse(BaseModel):
    """Result of the unpaid-booking expiry job."""

    model_config = ConfigDict(strict=True)

    expired_booking_ids: list[str] = Field(default_factory=list)
    expired_count: int = 0


class ExpireVouchersResponse(BaseModel):
    """Result of the voucher expiry job."""

    model_config = ConfigDict(strict=True)

    expired_count: int = 0


class RejectBookingRequest(BaseModel):
    model_config = ConfigDict(strict=True)

    reason: str | None = Field(default=None, max_length=500)
