"""lc_policy REST API — preflight authorization, policies and instruments."""

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from src.lc_common.context import LedgerContext
from src.lc_common.response import ApiResponse, success_response
from src.lc_gateway.auth.dependencies import get_ledger_context
from src.lc_policy.application.admin_service import PolicyAdminService
from src.lc_policy.application.schemas import (
    CreatePolicyRequest,
    DecisionValidityResponse,
    InstrumentOut,
    InvalidateInstrumentResponse,
    PolicyListResponse,
    PolicyOut,
    PreflightRequest,
    PreflightResponse,
    RegisterInstrumentRequest,
)
from src.lc_policy.application.service import PreflightService

router = APIRouter(tags=["authorization"])

_service = PreflightService()
_admin = PolicyAdminService()


def _respond(request: Request, data: dict) -> ApiResponse:
    resp = success_response(data)
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/preflight-authorize")
async def preflight_authorize(
    body: PreflightRequest,
    ctx: Annotated[LedgerContext, Depends(get_ledger_context)],
    request: Request,
) -> ApiResponse:
    result = await _service.preflight(ctx, body.idempotency_key, body.to_proposed())
    return _respond(request, PreflightResponse.from_result(result).model_dump())


@router.get("/authorizations/{decision_id}/valid")
async def is_decision_valid(
    decision_id: uuid.UUID,
    ctx: Annotated[LedgerContext, Depends(get_ledger_context)],
    request: Request,
) -> ApiResponse:
    valid = await _service.is_decision_valid(ctx, str(decision_id))
    data = DecisionValidityResponse(decision_id=str(decision_id), valid=valid)
    return _respond(request, data.model_dump())


@router.post("/policies")
async def create_policy(
    body: CreatePolicyRequest,
    ctx: Annotated[LedgerContext, Depends(get_ledger_context)],
    request: Request,
) -> ApiResponse:
    policy = await _admin.create_policy(
        ctx, body.policy_type, body.config, body.severity, body.priority
    )
    return _respond(request, PolicyOut.from_domain(policy).model_dump())


@router.get("/policies")
async def list_policies(
    ctx: Annotated[LedgerContext, Depends(get_ledger_context)],
    request: Request,
    include_inactive: bool = Query(False, description="Also return deactivated policies"),
) -> ApiResponse:
    policies = await _admin.list_policies(ctx, include_inactive)
    data = PolicyListResponse(policies=[PolicyOut.from_domain(p) for p in policies])
    return _respond(request, data.model_dump())


@router.delete("/policies/{policy_id}")
async def deactivate_policy(
    policy_id: uuid.UUID,
    ctx: Annotated[LedgerContext, Depends(get_ledger_context)],
    request: Request,
) -> ApiResponse:
    policy = await _admin.deactivate_policy(ctx, str(policy_id))
    return _respond(request, PolicyOut.from_domain(policy).model_dump())


@router.post("/instruments")
async def register_instrument(
    body: RegisterInstrumentRequest,
    ctx: Annotated[LedgerContext, Depends(get_ledger_context)],
    request: Request,
) -> ApiResponse:
    instrument = await _admin.register_instrument(
        ctx,
        external_ref=body.external_ref,
        amount=body.amount_cents,
        counterparty_name=body.counterparty_name,
        currency=body.currency,
        cadence=body.cadence,
    )
    return _respond(request, InstrumentOut.from_domain(instrument).model_dump())


@router.post("/instruments/{instrument_id}/invalidate")
async def invalidate_instrument(
    instrument_id: uuid.UUID,
    ctx: Annotated[LedgerContext, Depends(get_ledger_context)],
    request: Request,
) -> ApiResponse:
    result = await _admin.invalidate_instrument(ctx, str(instrument_id))
    return _respond(request, InvalidateInstrumentResponse.from_domain(result).model_dump())
