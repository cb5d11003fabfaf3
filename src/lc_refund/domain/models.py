"""Domain models for lc_refund."""

from dataclasses import dataclass
from typing import Literal


@dataclass
class RefundResult:
    transaction_id: str
    reference_id: str
    original_transaction_id: str
    refunded_amount: int
    from_creator: int
    from_platform: int
    is_full_refund: bool
    remaining_refundable: int
    processor_refund_id: str | None = None
    status: Literal["created"] = "created"
