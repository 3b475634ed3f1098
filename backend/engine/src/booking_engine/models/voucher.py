"""Credit voucher model."""

import datetime as dt

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .enums import VoucherStatus


class CreditVoucher(BaseModel):
    """Non-refundable stored value owned by one customer, in cents."""

    model_config = ConfigDict(strict=True)

    voucher_id: str
    customer_id: str
    currency: str = "eur"
    issued_cents: int = Field(..., gt=0)
    remaining_cents: int = Field(..., ge=0)
    status: VoucherStatus = VoucherStatus.ACTIVE
    expires_at: dt.datetime | None = None
    origin_booking_id: str | None = None
    created_at: dt.datetime

    @model_validator(mode="after")
    def _remaining_within_issued(self) -> "CreditVoucher":
        if self.remaining_cents > self.issued_cents:
            raise ValueError("remaining_cents cannot exceed issued_cents")
        return self

    def is_usable(self, now: dt.datetime) -> bool:
        """Active, not expired and with a positive balance."""
        if self.status != VoucherStatus.ACTIVE or self.remaining_cents <= 0:
            return False
        return self.expires_at is None or self.expires_at > now
