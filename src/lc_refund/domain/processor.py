"""Payment processor port for executing real-world refunds.

Implementations wrap a processor SDK and must raise ProcessorRefundError
when the processor rejects or fails the refund. The idempotency key passed
in is the ledger reference id, so a retried request never refunds twice at
the processor either.
"""

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class ProcessorRefund:
    id: str
    status: str


class PaymentProcessor(Protocol):
    async def refund(
        self,
        *,
        charge_reference: str,
        amount: int,
        currency: str,
        idempotency_key: str,
    ) -> ProcessorRefund: ...
