"""PostingService — the only writer of transactions, entries and cached balances.

Every mutating operation runs as one unit of work on ctx.db:
  transaction row -> accounts (ensure) -> entries -> cached balance deltas
then commit. Any exception rolls the whole unit back; SQLAlchemy failures
surface as StorageError. The deferred balance trigger re-checks
debits == credits at COMMIT, so an unbalanced set can never become durable
even if validation here were bypassed.

Refund and reversal flows call post_in_transaction() so that their row lock,
remaining-amount check, posting and status flip share a single commit.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError

from config.settings import settings
from src.lc_common.cents import split_by_percent, split_cumulative, validate_cents
from src.lc_common.context import LedgerContext
from src.lc_common.enums import (
    AccountType,
    EntryType,
    TransactionStatus,
    TransactionType,
)
from src.lc_common.errors import (
    AlreadyReversedError,
    ExceedsRefundableError,
    InternalError,
    InvalidInputError,
    StorageError,
    TransactionNotFoundError,
)
from src.lc_common.outbox import EventOutbox, LedgerEvent, RedisEventOutbox
from src.lc_ledger.domain.accounts import balance_delta, normal_side_for
from src.lc_ledger.domain.invariants import verify_ledger_invariants
from src.lc_ledger.domain.metadata import (
    ExpenseMetadata,
    ReversalMetadata,
    SaleMetadata,
)
from src.lc_ledger.domain.models import (
    Account,
    AccountRef,
    Entry,
    EntryDraft,
    NewTransaction,
    PostingRequest,
    PostingResult,
    ReversalResult,
    SaleResult,
    Transaction,
)
from src.lc_ledger.domain.references import content_reference, keyed_reference
from src.lc_ledger.domain.repository import LedgerRepositoryProtocol
from src.lc_ledger.domain.validation import validate_posting, validate_reference_id
from src.lc_ledger.infrastructure.persistence import LedgerRepository

logger = logging.getLogger(__name__)

_FINAL_STATUSES = frozenset({TransactionStatus.REVERSED.value, TransactionStatus.VOIDED.value})


def _flip(entry_type: str) -> str:
    return EntryType.CREDIT.value if entry_type == EntryType.DEBIT.value else EntryType.DEBIT.value


def reversal_reference(
    original_transaction_id: str,
    amount: int | None,
    reason: str,
    idempotency_key: str | None = None,
) -> str:
    """Deterministic reference id for one reversal intent."""
    if idempotency_key:
        return validate_reference_id(keyed_reference("reversal", idempotency_key), "idempotency_key")
    return content_reference(
        "reversal", original_transaction_id, "remaining" if amount is None else amount, reason
    )


def reversing_entries(
    entries: list[Entry],
    amount: int,
    reversed_legs: dict[tuple[str, str, str], int] | None = None,
) -> list[EntryDraft]:
    """Flip every leg of the original and prorate each side to `amount`.

    reversed_legs holds what earlier refunds and reversals already posted
    against each leg, keyed by (entry_type, account_type, entity_id) of the
    flipped leg. Each side is allocated over the cumulative reversed total,
    so successive partial reversals return every leg to exactly zero; the
    rounding residual goes to the side's largest leg. Zero legs are dropped.
    """
    reversed_legs = reversed_legs or {}
    drafts: list[EntryDraft] = []
    for side in (EntryType.DEBIT.value, EntryType.CREDIT.value):
        totals: dict[AccountRef, int] = {}
        for e in entries:
            if e.entry_type == side and e.amount > 0:
                totals[e.account_ref] = totals.get(e.account_ref, 0) + e.amount
        if not totals:
            continue
        refs = list(totals)
        weights = [totals[ref] for ref in refs]
        allocated = [
            reversed_legs.get((_flip(side), ref.account_type, ref.entity_id), 0) for ref in refs
        ]
        largest = max(range(len(weights)), key=lambda i: weights[i])
        shares = split_cumulative(amount, weights, allocated, largest)
        for ref, share in zip(refs, shares):
            if share > 0:
                drafts.append(EntryDraft(ref, _flip(side), share))
    return drafts


class PostingService:
    def __init__(
        self,
        repo: LedgerRepositoryProtocol | None = None,
        outbox: EventOutbox | None = None,
    ) -> None:
        self._repo: LedgerRepositoryProtocol = repo or LedgerRepository()
        self._outbox: EventOutbox = outbox or RedisEventOutbox()

    # ------------------------------------------------------------------
    # Core posting
    # ------------------------------------------------------------------

    async def post(self, ctx: LedgerContext, request: PostingRequest) -> PostingResult:
        """Post a balanced transaction. Duplicate reference ids are a success status."""
        amount = validate_posting(request)
        try:
            result = await self.post_in_transaction(ctx, request, amount)
            await ctx.db.commit()
        except SQLAlchemyError as exc:
            await ctx.db.rollback()
            logger.error("Posting failed for %s: %s", request.reference_id, exc)
            raise StorageError("Posting failed; nothing was written") from exc
        except Exception:
            await ctx.db.rollback()
            raise
        if not result.is_duplicate:
            await self._notify_posted(ctx, request, result)
        return result

    async def post_in_transaction(
        self, ctx: LedgerContext, request: PostingRequest, amount: int | None = None
    ) -> PostingResult:
        """Write the posting inside the caller's open unit of work. Never commits."""
        if amount is None:
            amount = validate_posting(request)
        db = ctx.db

        transaction_id = await self._repo.insert_transaction(
            db,
            NewTransaction(
                ledger_id=ctx.ledger_id,
                reference_id=request.reference_id,
                transaction_type=request.transaction_type,
                amount=amount,
                currency=request.currency or settings.DEFAULT_CURRENCY,
                status=request.status,
                metadata=request.metadata,
                description=request.description,
                reverses=request.reverses,
            ),
        )
        if transaction_id is None:
            # Lost the unique-constraint race (or a plain retry): read back the winner
            existing = await self._repo.get_transaction_by_reference(
                db, ctx.ledger_id, request.reference_id
            )
            if existing is None:
                raise InternalError(
                    f"Reference {request.reference_id} conflicted but no row was found"
                )
            logger.info(
                "Duplicate reference %s in ledger %s -> %s",
                request.reference_id, ctx.ledger_id, existing.id,
            )
            return PostingResult(existing.id, "duplicate", existing.amount)

        accounts: dict[AccountRef, Account] = {}
        for ref in sorted({e.account for e in request.entries}, key=lambda r: (r.account_type, r.entity_id)):
            accounts[ref] = await self._repo.ensure_account(
                db, ctx.ledger_id, ref, normal_side_for(ref.account_type).value
            )

        await self._repo.insert_entries(
            db,
            transaction_id,
            [(accounts[e.account].id, e.entry_type, e.amount) for e in request.entries],
        )

        # Drafts carry entries but do not move balances until completed
        if request.status == TransactionStatus.COMPLETED.value:
            deltas: dict[str, int] = {}
            for e in request.entries:
                account = accounts[e.account]
                deltas[account.id] = deltas.get(account.id, 0) + balance_delta(
                    account.normal_side, e.entry_type, e.amount
                )
            await self._repo.apply_balance_deltas(db, deltas)

        return PostingResult(transaction_id, "created", amount)

    # ------------------------------------------------------------------
    # Convenience postings
    # ------------------------------------------------------------------

    async def record_sale(
        self,
        ctx: LedgerContext,
        reference_id: str,
        creator_id: str,
        amount: int,
        creator_percent: float | None = None,
        product_id: str | None = None,
        product_name: str | None = None,
        description: str | None = None,
        tags: dict[str, str] | None = None,
    ) -> SaleResult:
        validate_cents(amount, allow_zero=False)
        if not creator_id:
            raise InvalidInputError("creator_id is required")
        percent = settings.DEFAULT_CREATOR_PERCENT if creator_percent is None else creator_percent
        creator_amount, platform_amount = split_by_percent(amount, percent)

        entries = [EntryDraft(AccountRef(AccountType.CASH.value), EntryType.DEBIT.value, amount)]
        if platform_amount:
            entries.append(
                EntryDraft(AccountRef(AccountType.PLATFORM_REVENUE.value), EntryType.CREDIT.value, platform_amount)
            )
        if creator_amount:
            entries.append(
                EntryDraft(
                    AccountRef(AccountType.CREATOR_BALANCE.value, creator_id),
                    EntryType.CREDIT.value,
                    creator_amount,
                )
            )

        posting = await self.post(
            ctx,
            PostingRequest(
                reference_id=reference_id,
                transaction_type=TransactionType.SALE.value,
                entries=entries,
                metadata=SaleMetadata(
                    creator_id=creator_id,
                    creator_amount=creator_amount,
                    platform_amount=platform_amount,
                    creator_percent=float(percent),
                    product_id=product_id,
                    product_name=product_name,
                    tags=tags or {},
                ),
                description=description or (f"Sale: {product_name}" if product_name else None),
            ),
        )
        return SaleResult(posting, creator_amount, platform_amount, float(percent))

    async def record_expense(
        self,
        ctx: LedgerContext,
        reference_id: str,
        amount: int,
        category: str,
        vendor: str | None = None,
        description: str | None = None,
        tags: dict[str, str] | None = None,
    ) -> PostingResult:
        validate_cents(amount, allow_zero=False)
        if not category:
            raise InvalidInputError("category is required")
        return await self.post(
            ctx,
            PostingRequest(
                reference_id=reference_id,
                transaction_type=TransactionType.EXPENSE.value,
                entries=[
                    EntryDraft(AccountRef(AccountType.EXPENSE.value, category), EntryType.DEBIT.value, amount),
                    EntryDraft(AccountRef(AccountType.CASH.value), EntryType.CREDIT.value, amount),
                ],
                metadata=ExpenseMetadata(category=category, vendor=vendor, tags=tags or {}),
                description=description,
            ),
        )

    # ------------------------------------------------------------------
    # Reversal / void
    # ------------------------------------------------------------------

    async def reverse_transaction(
        self,
        ctx: LedgerContext,
        transaction_id: str,
        reason: str,
        partial_amount: int | None = None,
        idempotency_key: str | None = None,
    ) -> ReversalResult:
        """Void a draft, or post a reversing transaction against a completed one.

        A reversal covering everything not yet reversed (refunds included)
        flips the original to `reversed` in the same commit. Without an
        idempotency_key the reference is derived from the amount and reason,
        so separate reversals of the same amount need different reasons.
        """
        if not reason or not reason.strip():
            raise InvalidInputError("reason is required")
        if partial_amount is not None:
            validate_cents(partial_amount, allow_zero=False)

        db = ctx.db
        try:
            original = await self._repo.lock_transaction(db, ctx.ledger_id, transaction_id)
            if original is None:
                raise TransactionNotFoundError(transaction_id)
            if original.status in _FINAL_STATUSES:
                raise AlreadyReversedError(original.id, original.status, original.reversed_by)

            if original.status == TransactionStatus.DRAFT.value:
                result = await self._void_draft(ctx, original, partial_amount)
            else:
                result = await self._post_reversal(
                    ctx, original, reason, partial_amount, idempotency_key
                )
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.error("Reversal of %s failed: %s", transaction_id, exc)
            raise StorageError("Reversal failed; nothing was written") from exc
        except Exception:
            await db.rollback()
            raise

        if result.status == "created":
            await self._outbox.notify_best_effort(
                LedgerEvent(
                    ledger_id=ctx.ledger_id,
                    event_type=f"transaction.{'voided' if result.void_type == 'void' else 'reversed'}",
                    payload={
                        "original_transaction_id": result.original_transaction_id,
                        "reversal_transaction_id": result.reversal_transaction_id,
                        "reversed_amount_cents": result.reversed_amount,
                        "is_full_reversal": result.is_full_reversal,
                    },
                )
            )
        return result

    async def _void_draft(
        self, ctx: LedgerContext, original: Transaction, partial_amount: int | None
    ) -> ReversalResult:
        if partial_amount is not None and partial_amount != original.amount:
            raise InvalidInputError("draft transactions can only be voided in full")
        if not await self._repo.mark_voided(ctx.db, original.id):
            raise AlreadyReversedError(original.id, original.status, original.reversed_by)
        return ReversalResult(
            original_transaction_id=original.id,
            void_type="void",
            reversed_amount=original.amount,
            is_full_reversal=True,
        )

    async def _post_reversal(
        self,
        ctx: LedgerContext,
        original: Transaction,
        reason: str,
        partial_amount: int | None,
        idempotency_key: str | None,
    ) -> ReversalResult:
        already = await self._repo.sum_reversed_amount(ctx.db, ctx.ledger_id, original.id)
        remaining = original.amount - already
        if remaining <= 0:
            raise AlreadyReversedError(original.id, TransactionStatus.REVERSED.value, original.reversed_by)
        amount = remaining if partial_amount is None else partial_amount
        if amount > remaining:
            raise ExceedsRefundableError(amount, remaining)

        entries = reversing_entries(
            await self._repo.list_entries(ctx.db, original.id),
            amount,
            await self._repo.sum_reversal_legs(ctx.db, ctx.ledger_id, original.id),
        )
        reference_id = reversal_reference(original.id, partial_amount, reason, idempotency_key)
        posting = await self.post_in_transaction(
            ctx,
            PostingRequest(
                reference_id=reference_id,
                transaction_type=TransactionType.REVERSAL.value,
                entries=entries,
                metadata=ReversalMetadata(
                    original_transaction_id=original.id,
                    reason=reason,
                    is_partial=amount < original.amount,
                ),
                description=f"Reversal of {original.reference_id}: {reason}",
                currency=original.currency,
                reverses=original.id,
            ),
        )

        is_full = already + amount >= original.amount
        if posting.is_duplicate:
            return ReversalResult(
                original_transaction_id=original.id,
                void_type="reversing_entry",
                reversal_transaction_id=posting.transaction_id,
                reversed_amount=posting.amount,
                is_full_reversal=False,
                status="duplicate",
            )
        if is_full:
            await self._repo.mark_reversed(ctx.db, original.id, posting.transaction_id)
        return ReversalResult(
            original_transaction_id=original.id,
            void_type="reversing_entry",
            reversal_transaction_id=posting.transaction_id,
            reversed_amount=amount,
            is_full_reversal=is_full,
            entries=entries,
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_balances(self, ctx: LedgerContext) -> list[Account]:
        return await self._repo.list_accounts(ctx.db, ctx.ledger_id)

    async def get_transaction(
        self, ctx: LedgerContext, transaction_id: str
    ) -> tuple[Transaction, list[Entry]]:
        tx = await self._repo.get_transaction(ctx.db, ctx.ledger_id, transaction_id)
        if tx is None:
            raise TransactionNotFoundError(transaction_id)
        return tx, await self._repo.list_entries(ctx.db, tx.id)

    async def verify_invariants(self, ctx: LedgerContext) -> list[str]:
        return await verify_ledger_invariants(ctx.db, ctx.ledger_id)

    async def _notify_posted(
        self, ctx: LedgerContext, request: PostingRequest, result: PostingResult
    ) -> None:
        await self._outbox.notify_best_effort(
            LedgerEvent(
                ledger_id=ctx.ledger_id,
                event_type=f"transaction.{request.transaction_type}.posted",
                payload={
                    "transaction_id": result.transaction_id,
                    "reference_id": request.reference_id,
                    "amount_cents": result.amount,
                    "status": request.status,
                },
            )
        )
