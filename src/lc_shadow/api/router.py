"""lc_shadow REST API — 2 read-only endpoints."""

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from src.lc_common.context import LedgerContext
from src.lc_common.response import ApiResponse, success_response
from src.lc_gateway.auth.dependencies import get_ledger_context
from src.lc_shadow.application.schemas import CashPositionResponse, ObligationsResponse
from src.lc_shadow.application.service import ShadowLedgerService

router = APIRouter(tags=["shadow-ledger"])

_service = ShadowLedgerService()


@router.get("/obligations")
async def get_obligations(
    ctx: Annotated[LedgerContext, Depends(get_ledger_context)],
    request: Request,
    horizon_date: date = Query(..., description="Include obligations expected on or before this date"),
) -> ApiResponse:
    summary = await _service.get_obligations(ctx, horizon_date)
    resp = success_response(ObligationsResponse.from_summary(summary).model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/cash-position")
async def get_cash_position(
    ctx: Annotated[LedgerContext, Depends(get_ledger_context)],
    request: Request,
    horizon_date: date = Query(..., description="Include obligations expected on or before this date"),
) -> ApiResponse:
    position = await _service.get_cash_position(ctx, horizon_date)
    resp = success_response(CashPositionResponse.from_position(position).model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp
