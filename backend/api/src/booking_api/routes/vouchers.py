"""Customer voucher wallet."""

from fastapi import APIRouter, Depends

from booking_api.dependencies import get_credit_ledger
from booking_api.models.vouchers import VoucherListResponse, VoucherView
from booking_api.security import require_customer
from booking_engine.models import Caller, VoucherStatus
from booking_engine.services.credit_ledger import CreditLedger
from booking_engine.utils.dates import utc_now

router = APIRouter(tags=["vouchers"])


@router.get(
    "/vouchers/mine",
    summary="List my vouchers",
    description="Every voucher of the caller; only usable ones count toward the total.",
    response_model=VoucherListResponse,
    responses={401: {"description": "Authentication required"}},
)
async def list_my_vouchers(
    caller: Caller = Depends(require_customer),
    ledger: CreditLedger = Depends(get_credit_ledger),
) -> VoucherListResponse:
    now = utc_now()
    views = [
        VoucherView(
            **voucher.model_dump(),
            is_expired=voucher.status == VoucherStatus.EXPIRED
            or (voucher.expires_at is not None and voucher.expires_at <= now),
            usable=voucher.is_usable(now),
        )
        for voucher in ledger.list_vouchers(caller.customer_id or "")
    ]
    return VoucherListResponse(
        vouchers=views,
        total_remaining_cents=sum(v.remaining_cents for v in views if v.usable),
    )
