"""Typed transaction metadata.

One closed variant per transaction kind, discriminated by `kind`. Only
`tags` is free-form, and it is reserved for caller-supplied, non-semantic
labels. Stored as JSONB on the transactions row.
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter


class _MetadataBase(BaseModel):
    tags: dict[str, str] = Field(default_factory=dict)


class SaleMetadata(_MetadataBase):
    kind: Literal["sale"] = "sale"
    creator_id: str
    creator_amount: int
    platform_amount: int
    creator_percent: float
    product_id: str | None = None
    product_name: str | None = None


class RefundMetadata(_MetadataBase):
    kind: Literal["refund"] = "refund"
    original_transaction_id: str
    original_reference_id: str
    reason: str
    refund_from: str
    from_creator: int
    from_platform: int
    external_refund_id: str | None = None
    processor_refund_id: str | None = None


class ReversalMetadata(_MetadataBase):
    kind: Literal["reversal"] = "reversal"
    original_transaction_id: str
    reason: str
    is_partial: bool


class ExpenseMetadata(_MetadataBase):
    kind: Literal["expense"] = "expense"
    category: str
    vendor: str | None = None


class AdjustmentMetadata(_MetadataBase):
    kind: Literal["adjustment"] = "adjustment"
    reason: str


class GenericMetadata(_MetadataBase):
    kind: Literal["generic"] = "generic"


TransactionMetadata = Annotated[
    Union[
        SaleMetadata,
        RefundMetadata,
        ReversalMetadata,
        ExpenseMetadata,
        AdjustmentMetadata,
        GenericMetadata,
    ],
    Field(discriminator="kind"),
]

_ADAPTER: TypeAdapter[TransactionMetadata] = TypeAdapter(TransactionMetadata)


def metadata_to_json(metadata: TransactionMetadata) -> str:
    return metadata.model_dump_json()


def metadata_from_db(raw: object) -> TransactionMetadata:
    """Parse the JSONB column (dict from asyncpg, or str) back into a variant."""
    if raw is None or raw == {}:
        return GenericMetadata()
    if isinstance(raw, (str, bytes)):
        return _ADAPTER.validate_json(raw)
    return _ADAPTER.validate_python(raw)
