"""lc_refund REST API — 1 endpoint.

409 responses carry structured data (existing transaction id, remaining
refundable amount) in the envelope's `data` field.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from src.lc_common.context import LedgerContext
from src.lc_common.response import ApiResponse, success_response
from src.lc_gateway.auth.dependencies import get_ledger_context
from src.lc_refund.application.schemas import RefundRequest, RefundResponse
from src.lc_refund.application.service import RefundService

router = APIRouter(tags=["refunds"])

_service = RefundService()


@router.post("/refunds")
async def create_refund(
    body: RefundRequest,
    ctx: Annotated[LedgerContext, Depends(get_ledger_context)],
    request: Request,
) -> ApiResponse:
    result = await _service.refund(
        ctx,
        original_reference_id=body.original_reference_id,
        reason=body.reason,
        amount=body.amount_cents,
        refund_from=body.refund_from,
        idempotency_key=body.idempotency_key,
        execute_processor_refund=body.execute_processor_refund,
    )
    resp = success_response(RefundResponse.from_result(result).model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp
