"""Pydantic schemas for lc_refund API."""

from typing import Literal

from pydantic import BaseModel, Field

from src.lc_common.cents import cents_to_display
from src.lc_refund.domain.models import RefundResult


class RefundRequest(BaseModel):
    original_reference_id: str = Field(..., min_length=1, max_length=255)
    amount_cents: int | None = Field(None, gt=0, description="Omit to refund everything remaining")
    refund_from: Literal["both", "platform_only", "creator_only"] = "both"
    reason: str = Field(..., min_length=1, max_length=500)
    idempotency_key: str | None = Field(None, min_length=1, max_length=200)
    execute_processor_refund: bool = False


class RefundBreakdownOut(BaseModel):
    from_creator_cents: int
    from_platform_cents: int


class RefundResponse(BaseModel):
    transaction_id: str
    reference_id: str
    original_transaction_id: str
    refunded_amount_cents: int
    refunded_amount_display: str
    breakdown: RefundBreakdownOut
    is_full_refund: bool
    remaining_refundable_cents: int
    processor_refund_id: str | None
    status: str

    @classmethod
    def from_result(cls, result: RefundResult) -> "RefundResponse":
        return cls(
            transaction_id=result.transaction_id,
            reference_id=result.reference_id,
            original_transaction_id=result.original_transaction_id,
            refunded_amount_cents=result.refunded_amount,
            refunded_amount_display=cents_to_display(result.refunded_amount),
            breakdown=RefundBreakdownOut(
                from_creator_cents=result.from_creator,
                from_platform_cents=result.from_platform,
            ),
            is_full_refund=result.is_full_refund,
            remaining_refundable_cents=result.remaining_refundable,
            processor_refund_id=result.processor_refund_id,
            status=result.status,
        )
