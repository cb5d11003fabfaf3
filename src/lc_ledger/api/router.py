"""lc_ledger REST API — postings, reversals, balances and invariant checks.

All endpoints are scoped by the X-Ledger-Id header.
"""

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Request

from src.lc_common.context import LedgerContext
from src.lc_common.response import ApiResponse, success_response
from src.lc_gateway.auth.dependencies import get_ledger_context
from src.lc_ledger.application.schemas import (
    AccountBalance,
    BalancesResponse,
    ExpenseRequest,
    InvariantsResponse,
    PostingResponse,
    PostTransactionRequest,
    ReversalResponse,
    ReverseRequest,
    SaleRequest,
    SaleResponse,
    TransactionResponse,
)
from src.lc_ledger.application.service import PostingService

router = APIRouter(tags=["ledger"])

_service = PostingService()


def _respond(request: Request, data: dict) -> ApiResponse:
    resp = success_response(data)
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/transactions")
async def post_transaction(
    body: PostTransactionRequest,
    ctx: Annotated[LedgerContext, Depends(get_ledger_context)],
    request: Request,
) -> ApiResponse:
    result = await _service.post(ctx, body.to_posting_request())
    return _respond(request, PostingResponse.from_result(result).model_dump())


@router.get("/transactions/{transaction_id}")
async def get_transaction(
    transaction_id: uuid.UUID,
    ctx: Annotated[LedgerContext, Depends(get_ledger_context)],
    request: Request,
) -> ApiResponse:
    tx, entries = await _service.get_transaction(ctx, str(transaction_id))
    return _respond(request, TransactionResponse.from_domain(tx, entries).model_dump())


@router.post("/transactions/{transaction_id}/reverse")
async def reverse_transaction(
    transaction_id: uuid.UUID,
    body: ReverseRequest,
    ctx: Annotated[LedgerContext, Depends(get_ledger_context)],
    request: Request,
) -> ApiResponse:
    result = await _service.reverse_transaction(
        ctx, str(transaction_id), body.reason, body.amount_cents, body.idempotency_key
    )
    return _respond(request, ReversalResponse.from_result(result).model_dump())


@router.post("/sales")
async def record_sale(
    body: SaleRequest,
    ctx: Annotated[LedgerContext, Depends(get_ledger_context)],
    request: Request,
) -> ApiResponse:
    result = await _service.record_sale(
        ctx,
        reference_id=body.reference_id,
        creator_id=body.creator_id,
        amount=body.amount_cents,
        creator_percent=body.creator_percent,
        product_id=body.product_id,
        product_name=body.product_name,
        description=body.description,
        tags=body.tags,
    )
    return _respond(request, SaleResponse.from_sale(result).model_dump())


@router.post("/expenses")
async def record_expense(
    body: ExpenseRequest,
    ctx: Annotated[LedgerContext, Depends(get_ledger_context)],
    request: Request,
) -> ApiResponse:
    result = await _service.record_expense(
        ctx,
        reference_id=body.reference_id,
        amount=body.amount_cents,
        category=body.category,
        vendor=body.vendor,
        description=body.description,
        tags=body.tags,
    )
    return _respond(request, PostingResponse.from_result(result).model_dump())


@router.get("/balances")
async def get_balances(
    ctx: Annotated[LedgerContext, Depends(get_ledger_context)],
    request: Request,
) -> ApiResponse:
    accounts = await _service.get_balances(ctx)
    data = BalancesResponse(accounts=[AccountBalance.from_account(a) for a in accounts])
    return _respond(request, data.model_dump())


@router.get("/invariants")
async def verify_invariants(
    ctx: Annotated[LedgerContext, Depends(get_ledger_context)],
    request: Request,
) -> ApiResponse:
    violations = await _service.verify_invariants(ctx)
    data = InvariantsResponse(ok=not violations, violations=violations)
    return _respond(request, data.model_dump())
