"""API models for the customer voucher wallet."""

from pydantic import BaseModel, ConfigDict, Field

from booking_engine.models import CreditVoucher


class VoucherView(CreditVoucher):
    """A voucher with its usability resolved at request time."""

    is_expired: bool = False
    usable: bool = False


class VoucherListResponse(BaseModel):
    """A customer's vouchers, newest first."""

    model_config = ConfigDict(strict=True)

    vouchers: list[VoucherView] = Field(default_factory=list)
    total_remaining_cents: int = Field(
        default=0, description="Sum over usable vouchers only"
    )
