"""RefundService — cumulative, partial-refund-safe refunds of sales.

The whole read-check-write sequence runs in ONE database transaction that
starts by locking the original sale row (SELECT ... FOR UPDATE). Concurrent
refunds of the same sale therefore serialize on that lock, and the second
one sees the first one's committed refund when it sums prior refunds:

  lock sale -> sum prior refunds -> fully-refunded check -> duplicate check
  -> exceeds check -> split over the cumulative refunded total
  -> [processor refund] -> post refund -> flip sale to reversed -> COMMIT

A fully refunded sale answers AlreadyFullyRefunded to every later attempt,
retries of the refund that completed it included.

Processor refunds (optional) run after validation and before commit. A
processor failure aborts the ledger write; a ledger failure after a
successful processor refund raises LedgerInconsistencyError and is logged
for manual reconciliation.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError

from src.lc_common.cents import validate_cents
from src.lc_common.context import LedgerContext
from src.lc_common.enums import (
    AccountType,
    EntryType,
    RefundFrom,
    TransactionStatus,
    TransactionType,
)
from src.lc_common.errors import (
    AlreadyFullyRefundedError,
    DuplicateRefundError,
    ExceedsRefundableError,
    InvalidInputError,
    LedgerInconsistencyError,
    ProcessorRefundError,
    StorageError,
    TransactionNotFoundError,
)
from src.lc_common.outbox import EventOutbox, LedgerEvent, RedisEventOutbox
from src.lc_ledger.application.service import PostingService
from src.lc_ledger.domain.metadata import RefundMetadata, SaleMetadata
from src.lc_ledger.domain.models import AccountRef, EntryDraft, PostingRequest, Transaction
from src.lc_ledger.domain.references import content_reference, keyed_reference
from src.lc_ledger.domain.repository import LedgerRepositoryProtocol
from src.lc_ledger.domain.validation import validate_reference_id
from src.lc_ledger.infrastructure.persistence import LedgerRepository
from src.lc_refund.domain.models import RefundResult
from src.lc_refund.domain.processor import PaymentProcessor, ProcessorRefund
from src.lc_refund.domain.split import RefundBreakdown, compute_refund_split

logger = logging.getLogger(__name__)

_REFUND_FROM = frozenset(r.value for r in RefundFrom)
_REFUNDABLE_STATUSES = frozenset({TransactionStatus.COMPLETED.value, TransactionStatus.REVERSED.value})


def refund_reference(
    original_transaction_id: str,
    amount: int | None,
    refund_from: str,
    reason: str,
    idempotency_key: str | None = None,
) -> str:
    """Deterministic reference id for one refund intent."""
    if idempotency_key:
        return validate_reference_id(keyed_reference("refund", idempotency_key), "idempotency_key")
    return content_reference(
        "refund",
        original_transaction_id,
        "remaining" if amount is None else amount,
        refund_from,
        reason,
    )


def refund_entries(creator_id: str, amount: int, breakdown: RefundBreakdown) -> list[EntryDraft]:
    entries: list[EntryDraft] = []
    if breakdown.from_platform:
        entries.append(
            EntryDraft(AccountRef(AccountType.PLATFORM_REVENUE.value), EntryType.DEBIT.value, breakdown.from_platform)
        )
    if breakdown.from_creator:
        entries.append(
            EntryDraft(
                AccountRef(AccountType.CREATOR_BALANCE.value, creator_id),
                EntryType.DEBIT.value,
                breakdown.from_creator,
            )
        )
    entries.append(EntryDraft(AccountRef(AccountType.CASH.value), EntryType.CREDIT.value, amount))
    return entries


class RefundService:
    def __init__(
        self,
        repo: LedgerRepositoryProtocol | None = None,
        posting: PostingService | None = None,
        processor: PaymentProcessor | None = None,
        outbox: EventOutbox | None = None,
    ) -> None:
        self._repo: LedgerRepositoryProtocol = repo or LedgerRepository()
        self._outbox: EventOutbox = outbox or RedisEventOutbox()
        self._posting = posting or PostingService(repo=self._repo, outbox=self._outbox)
        self._processor = processor

    async def refund(
        self,
        ctx: LedgerContext,
        original_reference_id: str,
        reason: str,
        amount: int | None = None,
        refund_from: str = RefundFrom.BOTH.value,
        idempotency_key: str | None = None,
        execute_processor_refund: bool = False,
    ) -> RefundResult:
        # Validation happens before any I/O
        validate_reference_id(original_reference_id, "original_reference_id")
        if not reason or not reason.strip():
            raise InvalidInputError("reason is required")
        if refund_from not in _REFUND_FROM:
            raise InvalidInputError(f"unknown refund_from {refund_from!r}")
        if amount is not None:
            validate_cents(amount, allow_zero=False)
        if execute_processor_refund and self._processor is None:
            raise InvalidInputError("no payment processor is configured for this deployment")

        db = ctx.db
        processor_refund: ProcessorRefund | None = None
        reference_id = ""
        try:
            original = await self._repo.lock_transaction_by_reference(
                db, ctx.ledger_id, original_reference_id, TransactionType.SALE.value
            )
            if original is None:
                raise TransactionNotFoundError(original_reference_id)

            if original.status not in _REFUNDABLE_STATUSES:
                raise InvalidInputError(f"cannot refund a {original.status} sale")
            already_refunded = await self._repo.sum_reversed_amount(db, ctx.ledger_id, original.id)
            remaining = original.amount - already_refunded
            if remaining <= 0:
                raise AlreadyFullyRefundedError(original.id, original.reversed_by)

            reference_id = refund_reference(original.id, amount, refund_from, reason, idempotency_key)
            existing = await self._repo.get_transaction_by_reference(db, ctx.ledger_id, reference_id)
            if existing is not None:
                raise DuplicateRefundError(existing.id, reference_id)

            sale = original.metadata
            if not isinstance(sale, SaleMetadata):
                raise InvalidInputError(f"sale {original.id} has no recorded creator/platform split")
            refund_amount = remaining if amount is None else amount
            if refund_amount > remaining:
                raise ExceedsRefundableError(refund_amount, remaining)

            prior_legs = await self._repo.sum_reversal_legs(db, ctx.ledger_id, original.id)
            breakdown = compute_refund_split(
                refund_amount,
                sale.creator_amount,
                sale.platform_amount,
                refund_from,
                already_from_creator=prior_legs.get(
                    (EntryType.DEBIT.value, AccountType.CREATOR_BALANCE.value, sale.creator_id), 0
                ),
                already_from_platform=prior_legs.get(
                    (EntryType.DEBIT.value, AccountType.PLATFORM_REVENUE.value, ""), 0
                ),
            )

            if execute_processor_refund:
                processor_refund = await self._execute_processor_refund(
                    original, refund_amount, reference_id
                )

            posting = await self._posting.post_in_transaction(
                ctx,
                PostingRequest(
                    reference_id=reference_id,
                    transaction_type=TransactionType.REFUND.value,
                    entries=refund_entries(sale.creator_id, refund_amount, breakdown),
                    metadata=RefundMetadata(
                        original_transaction_id=original.id,
                        original_reference_id=original.reference_id,
                        reason=reason,
                        refund_from=refund_from,
                        from_creator=breakdown.from_creator,
                        from_platform=breakdown.from_platform,
                        external_refund_id=idempotency_key,
                        processor_refund_id=processor_refund.id if processor_refund else None,
                    ),
                    description=f"Refund: {reason}",
                    currency=original.currency,
                    reverses=original.id,
                ),
                refund_amount,
            )
            if posting.is_duplicate:
                raise DuplicateRefundError(posting.transaction_id, reference_id)

            is_full = already_refunded + refund_amount >= original.amount
            if is_full:
                await self._repo.mark_reversed(db, original.id, posting.transaction_id)
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            if processor_refund is not None:
                raise self._inconsistency(processor_refund, reference_id, exc) from exc
            logger.error("Refund of %s failed: %s", original_reference_id, exc)
            raise StorageError("Refund failed; nothing was written") from exc
        except Exception as exc:
            await db.rollback()
            if processor_refund is not None:
                raise self._inconsistency(processor_refund, reference_id, exc) from exc
            raise

        result = RefundResult(
            transaction_id=posting.transaction_id,
            reference_id=reference_id,
            original_transaction_id=original.id,
            refunded_amount=refund_amount,
            from_creator=breakdown.from_creator,
            from_platform=breakdown.from_platform,
            is_full_refund=is_full,
            remaining_refundable=remaining - refund_amount,
            processor_refund_id=processor_refund.id if processor_refund else None,
        )
        await self._outbox.notify_best_effort(
            LedgerEvent(
                ledger_id=ctx.ledger_id,
                event_type="refund.posted",
                payload={
                    "transaction_id": result.transaction_id,
                    "original_transaction_id": result.original_transaction_id,
                    "refunded_amount_cents": result.refunded_amount,
                    "is_full_refund": result.is_full_refund,
                },
            )
        )
        return result

    async def _execute_processor_refund(
        self, original: Transaction, amount: int, reference_id: str
    ) -> ProcessorRefund:
        assert self._processor is not None
        try:
            return await self._processor.refund(
                charge_reference=original.reference_id,
                amount=amount,
                currency=original.currency,
                idempotency_key=reference_id,
            )
        except ProcessorRefundError:
            raise
        except Exception as exc:
            raise ProcessorRefundError(str(exc) or exc.__class__.__name__) from exc

    @staticmethod
    def _inconsistency(
        processor_refund: ProcessorRefund, reference_id: str, exc: BaseException
    ) -> LedgerInconsistencyError:
        logger.error(
            "LEDGER INCONSISTENCY: processor refund %s executed but ledger write for %s failed: %r",
            processor_refund.id,
            reference_id,
            exc,
        )
        return LedgerInconsistencyError(processor_refund.id, reference_id)
