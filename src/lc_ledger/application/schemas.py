"""Pydantic schemas for lc_ledger API."""

from typing import Literal

from pydantic import BaseModel, Field

from src.lc_common.cents import cents_to_display
from src.lc_common.enums import TransactionType
from src.lc_common.errors import InvalidInputError
from src.lc_ledger.domain.metadata import AdjustmentMetadata, GenericMetadata
from src.lc_ledger.domain.models import (
    Account,
    AccountRef,
    Entry,
    EntryDraft,
    PostingRequest,
    PostingResult,
    ReversalResult,
    SaleResult,
    Transaction,
)

# Types with a dedicated endpoint (their metadata is derived, never caller-supplied)
_DEDICATED_TYPES = frozenset({
    TransactionType.SALE.value,
    TransactionType.REFUND.value,
    TransactionType.REVERSAL.value,
})

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class EntryIn(BaseModel):
    account_type: str = Field(..., min_length=1, max_length=64)
    entity_id: str = Field("", max_length=255)
    entry_type: Literal["debit", "credit"]
    amount_cents: int = Field(..., ge=0)


class PostTransactionRequest(BaseModel):
    reference_id: str = Field(..., min_length=1, max_length=255)
    transaction_type: str
    entries: list[EntryIn] = Field(..., min_length=2)
    description: str | None = Field(None, max_length=500)
    currency: str | None = Field(None, min_length=3, max_length=3)
    status: Literal["completed", "draft"] = "completed"
    reason: str | None = Field(None, max_length=500, description="Required for adjustments")
    tags: dict[str, str] = Field(default_factory=dict)

    def to_posting_request(self) -> PostingRequest:
        if self.transaction_type in _DEDICATED_TYPES:
            raise InvalidInputError(
                f"{self.transaction_type} transactions must use their dedicated endpoint"
            )
        if self.transaction_type == TransactionType.ADJUSTMENT.value:
            if not self.reason:
                raise InvalidInputError("reason is required for adjustments")
            metadata = AdjustmentMetadata(reason=self.reason, tags=self.tags)
        else:
            metadata = GenericMetadata(tags=self.tags)
        return PostingRequest(
            reference_id=self.reference_id,
            transaction_type=self.transaction_type,
            entries=[
                EntryDraft(AccountRef(e.account_type, e.entity_id), e.entry_type, e.amount_cents)
                for e in self.entries
            ],
            metadata=metadata,
            description=self.description,
            currency=self.currency,
            status=self.status,
        )


class SaleRequest(BaseModel):
    reference_id: str = Field(..., min_length=1, max_length=255)
    creator_id: str = Field(..., min_length=1, max_length=255)
    amount_cents: int = Field(..., gt=0)
    creator_percent: float | None = Field(None, ge=0, le=100)
    product_id: str | None = None
    product_name: str | None = None
    description: str | None = Field(None, max_length=500)
    tags: dict[str, str] = Field(default_factory=dict)


class ExpenseRequest(BaseModel):
    reference_id: str = Field(..., min_length=1, max_length=255)
    amount_cents: int = Field(..., gt=0)
    category: str = Field(..., min_length=1, max_length=255)
    vendor: str | None = None
    description: str | None = Field(None, max_length=500)
    tags: dict[str, str] = Field(default_factory=dict)


class ReverseRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)
    amount_cents: int | None = Field(None, gt=0, description="Partial amount; omit to reverse the rest")
    idempotency_key: str | None = Field(None, min_length=1, max_length=200)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class PostingResponse(BaseModel):
    transaction_id: str
    status: str
    amount_cents: int
    amount_display: str

    @classmethod
    def from_result(cls, result: PostingResult) -> "PostingResponse":
        return cls(
            transaction_id=result.transaction_id,
            status=result.status,
            amount_cents=result.amount,
            amount_display=cents_to_display(result.amount),
        )


class SaleResponse(PostingResponse):
    creator_amount_cents: int
    platform_amount_cents: int
    creator_percent: float

    @classmethod
    def from_sale(cls, result: SaleResult) -> "SaleResponse":
        return cls(
            transaction_id=result.posting.transaction_id,
            status=result.posting.status,
            amount_cents=result.posting.amount,
            amount_display=cents_to_display(result.posting.amount),
            creator_amount_cents=result.creator_amount,
            platform_amount_cents=result.platform_amount,
            creator_percent=result.creator_percent,
        )


class EntryOut(BaseModel):
    account_type: str
    entity_id: str
    entry_type: str
    amount_cents: int


class ReversalResponse(BaseModel):
    original_transaction_id: str
    void_type: str
    reversal_transaction_id: str | None
    reversed_amount_cents: int
    is_full_reversal: bool
    status: str
    entries: list[EntryOut]

    @classmethod
    def from_result(cls, result: ReversalResult) -> "ReversalResponse":
        return cls(
            original_transaction_id=result.original_transaction_id,
            void_type=result.void_type,
            reversal_transaction_id=result.reversal_transaction_id,
            reversed_amount_cents=result.reversed_amount,
            is_full_reversal=result.is_full_reversal,
            status=result.status,
            entries=[
                EntryOut(
                    account_type=e.account.account_type,
                    entity_id=e.account.entity_id,
                    entry_type=e.entry_type,
                    amount_cents=e.amount,
                )
                for e in result.entries
            ],
        )


class AccountBalance(BaseModel):
    account_id: str
    account_type: str
    entity_id: str
    name: str
    normal_side: str
    balance_cents: int
    balance_display: str

    @classmethod
    def from_account(cls, account: Account) -> "AccountBalance":
        return cls(
            account_id=account.id,
            account_type=account.account_type,
            entity_id=account.entity_id,
            name=account.name,
            normal_side=account.normal_side,
            balance_cents=account.balance,
            balance_display=cents_to_display(account.balance),
        )


class BalancesResponse(BaseModel):
    accounts: list[AccountBalance]


class TransactionResponse(BaseModel):
    id: str
    transaction_type: str
    reference_id: str
    description: str | None
    amount_cents: int
    amount_display: str
    currency: str
    status: str
    reverses: str | None
    reversed_by: str | None
    metadata: dict
    created_at: str
    entries: list[EntryOut]

    @classmethod
    def from_domain(cls, tx: Transaction, entries: list[Entry]) -> "TransactionResponse":
        return cls(
            id=tx.id,
            transaction_type=tx.transaction_type,
            reference_id=tx.reference_id,
            description=tx.description,
            amount_cents=tx.amount,
            amount_display=cents_to_display(tx.amount),
            currency=tx.currency,
            status=tx.status,
            reverses=tx.reverses,
            reversed_by=tx.reversed_by,
            metadata=tx.metadata.model_dump() if tx.metadata is not None else {},
            created_at=tx.created_at.isoformat() if tx.created_at else "",
            entries=[
                EntryOut(
                    account_type=e.account_type,
                    entity_id=e.entity_id,
                    entry_type=e.entry_type,
                    amount_cents=e.amount,
                )
                for e in entries
            ],
        )


class InvariantsResponse(BaseModel):
    ok: bool
    violations: list[str]
