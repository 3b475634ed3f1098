"""Admin endpoints for manual holds and external calendar imports."""

from fastapi import APIRouter, Depends, Query
from starlette.status import HTTP_201_CREATED

from booking_api.dependencies import get_block_service
from booking_api.models.admin import ExternalBlocksReplaceRequest, ManualBlockCreateRequest
from booking_api.models.common import SuccessMessage
from booking_api.security import require_admin
from booking_engine.models import BlockingEntity, Caller, ExternalBlock, ManualBlock
from booking_engine.services.block_service import BlockService
from booking_engine.utils.dates import normalize_date_only

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get(
    "/properties/{property_id}/blocks",
    summary="List blocking entities",
    response_model=list[BlockingEntity],
)
async def list_blocks(
    property_id: str,
    from_date: str | None = Query(default=None, alias="from"),
    to_date: str | None = Query(default=None, alias="to"),
    _: Caller = Depends(require_admin),
    blocks: BlockService = Depends(get_block_service),
) -> list[BlockingEntity]:
    start = normalize_date_only(from_date) if from_date else None
    end = normalize_date_only(to_date) if to_date else None
    return list(blocks.list_blocks(property_id, start, end))


@router.post(
    "/blocks",
    summary="Create manual block",
    response_model=ManualBlock,
    status_code=HTTP_201_CREATED,
    responses={409: {"description": "Overlaps a booking or another block"}},
)
async def create_manual_block(
    body: ManualBlockCreateRequest,
    caller: Caller = Depends(require_admin),
    blocks: BlockService = Depends(get_block_service),
) -> ManualBlock:
    return blocks.create_manual_block(
        body.property_id,
        body.start_date,
        body.end_date,
        reason=body.reason,
        created_by=caller.customer_id,
    )


@router.delete(
    "/blocks/{block_id}",
    summary="Delete manual block",
    response_model=SuccessMessage,
)
async def delete_manual_block(
    block_id: str,
    _: Caller = Depends(require_admin),
    blocks: BlockService = Depends(get_block_service),
) -> SuccessMessage:
    blocks.delete_manual_block(block_id)
    return SuccessMessage(message=f"Block {block_id} deleted")


@router.put(
    "/properties/{property_id}/external-blocks",
    summary="Replace imported holds",
    description="Make the stored holds of one provider match the given feed.",
    response_model=list[ExternalBlock],
)
async def replace_external_blocks(
    property_id: str,
    body: ExternalBlocksReplaceRequest,
    _: Caller = Depends(require_admin),
    blocks: BlockService = Depends(get_block_service),
) -> list[ExternalBlock]:
    return blocks.replace_external_blocks(property_id, body.provider, body.events)
