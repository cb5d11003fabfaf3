"""Unit tests for PostingService against the in-memory ledger repository."""

from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError

from fakes import FakeSession, InMemoryLedgerRepository
from src.lc_common.context import LedgerContext
from src.lc_common.errors import (
    InvalidInputError,
    StorageError,
    TransactionNotFoundError,
    UnbalancedEntriesError,
)
from src.lc_ledger.application.service import PostingService
from src.lc_ledger.domain.metadata import ExpenseMetadata, GenericMetadata, SaleMetadata
from src.lc_ledger.domain.models import AccountRef, EntryDraft, PostingRequest

LEDGER = "11111111-1111-1111-1111-111111111111"
OTHER_LEDGER = "22222222-2222-2222-2222-222222222222"


def _setup() -> tuple[PostingService, InMemoryLedgerRepository, FakeSession, AsyncMock]:
    repo = InMemoryLedgerRepository()
    outbox = AsyncMock()
    return PostingService(repo=repo, outbox=outbox), repo, FakeSession(repo), outbox


def _income(reference_id: str = "inc-1", amount: int = 5000, status: str = "completed") -> PostingRequest:
    return PostingRequest(
        reference_id=reference_id,
        transaction_type="income",
        entries=[
            EntryDraft(AccountRef("cash"), "debit", amount),
            EntryDraft(AccountRef("income"), "credit", amount),
        ],
        metadata=GenericMetadata(),
        status=status,
    )


class TestPost:
    async def test_creates_transaction_and_moves_balances(self) -> None:
        svc, repo, db, outbox = _setup()
        ctx = LedgerContext(LEDGER, db)

        result = await svc.post(ctx, _income())

        assert result.status == "created"
        assert result.amount == 5000
        assert repo.balance_of(LEDGER, "cash") == 5000
        assert repo.balance_of(LEDGER, "income") == 5000
        assert db.commits == 1
        outbox.notify_best_effort.assert_awaited_once()
        event = outbox.notify_best_effort.await_args.args[0]
        assert event.event_type == "transaction.income.posted"

    async def test_duplicate_reference_returns_existing(self) -> None:
        svc, repo, db, outbox = _setup()
        ctx = LedgerContext(LEDGER, db)

        first = await svc.post(ctx, _income())
        second = await svc.post(ctx, _income(amount=9999))

        assert second.status == "duplicate"
        assert second.is_duplicate
        assert second.transaction_id == first.transaction_id
        assert second.amount == 5000
        assert len(repo.transactions) == 1
        assert repo.balance_of(LEDGER, "cash") == 5000
        assert outbox.notify_best_effort.await_count == 1

    async def test_same_reference_in_other_ledger_is_independent(self) -> None:
        svc, repo, db, _ = _setup()

        await svc.post(LedgerContext(LEDGER, db), _income())
        other = await svc.post(LedgerContext(OTHER_LEDGER, db), _income())

        assert other.status == "created"
        assert repo.balance_of(OTHER_LEDGER, "cash") == 5000

    async def test_unbalanced_rejected_before_io(self) -> None:
        svc, repo, db, _ = _setup()
        req = _income()
        req.entries[1] = EntryDraft(AccountRef("income"), "credit", 4999)

        with pytest.raises(UnbalancedEntriesError):
            await svc.post(LedgerContext(LEDGER, db), req)
        assert repo.transactions == {}
        assert db.commits == 0

    async def test_draft_writes_entries_without_balances(self) -> None:
        svc, repo, db, _ = _setup()

        result = await svc.post(LedgerContext(LEDGER, db), _income(status="draft"))

        assert repo.transactions[result.transaction_id].status == "draft"
        assert len(repo.legs(result.transaction_id)) == 2
        assert repo.balance_of(LEDGER, "cash") == 0

    async def test_storage_failure_rolls_back_everything(self) -> None:
        svc, repo, db, outbox = _setup()
        repo.fail_on["apply_balance_deltas"] = OperationalError("UPDATE", {}, Exception("down"))

        with pytest.raises(StorageError):
            await svc.post(LedgerContext(LEDGER, db), _income())

        assert db.rollbacks == 1
        assert repo.transactions == {}
        assert repo.entries == []
        outbox.notify_best_effort.assert_not_awaited()


class TestRecordSale:
    async def test_default_split(self) -> None:
        svc, repo, db, _ = _setup()

        result = await svc.record_sale(
            LedgerContext(LEDGER, db), "sale_1", "creator_1", 2999, product_name="Ebook"
        )

        assert result.creator_amount == 2399
        assert result.platform_amount == 600
        assert result.creator_percent == 80.0
        tx = repo.transactions[result.posting.transaction_id]
        assert tx.transaction_type == "sale"
        assert tx.description == "Sale: Ebook"
        assert isinstance(tx.metadata, SaleMetadata)
        assert tx.metadata.creator_id == "creator_1"
        assert repo.legs(tx.id) == {
            ("debit", "cash", "", 2999),
            ("credit", "platform_revenue", "", 600),
            ("credit", "creator_balance", "creator_1", 2399),
        }
        assert repo.balance_of(LEDGER, "creator_balance", "creator_1") == 2399

    async def test_full_creator_share_skips_platform_leg(self) -> None:
        svc, repo, db, _ = _setup()

        result = await svc.record_sale(LedgerContext(LEDGER, db), "sale_2", "c", 1000, creator_percent=100)

        legs = repo.legs(result.posting.transaction_id)
        assert len(legs) == 2
        assert all(leg[1] != "platform_revenue" for leg in legs)

    async def test_missing_creator_raises(self) -> None:
        svc, _, db, _ = _setup()
        with pytest.raises(InvalidInputError, match="creator_id"):
            await svc.record_sale(LedgerContext(LEDGER, db), "sale_3", "", 1000)


class TestRecordExpense:
    async def test_debits_category_expense(self) -> None:
        svc, repo, db, _ = _setup()

        result = await svc.record_expense(
            LedgerContext(LEDGER, db), "exp-1", 1200, "software", vendor="Acme"
        )

        tx = repo.transactions[result.transaction_id]
        assert isinstance(tx.metadata, ExpenseMetadata)
        assert tx.metadata.vendor == "Acme"
        assert repo.balance_of(LEDGER, "expense", "software") == 1200
        assert repo.balance_of(LEDGER, "cash") == -1200

    async def test_missing_category_raises(self) -> None:
        svc, _, db, _ = _setup()
        with pytest.raises(InvalidInputError, match="category"):
            await svc.record_expense(LedgerContext(LEDGER, db), "exp-2", 1200, "")


class TestReads:
    async def test_get_transaction_with_entries(self) -> None:
        svc, _, db, _ = _setup()
        ctx = LedgerContext(LEDGER, db)
        posted = await svc.post(ctx, _income())

        tx, entries = await svc.get_transaction(ctx, posted.transaction_id)

        assert tx.reference_id == "inc-1"
        assert sum(e.amount for e in entries if e.entry_type == "debit") == 5000

    async def test_get_transaction_scoped_to_ledger(self) -> None:
        svc, _, db, _ = _setup()
        posted = await svc.post(LedgerContext(LEDGER, db), _income())

        with pytest.raises(TransactionNotFoundError):
            await svc.get_transaction(LedgerContext(OTHER_LEDGER, db), posted.transaction_id)

    async def test_get_balances(self) -> None:
        svc, _, db, _ = _setup()
        ctx = LedgerContext(LEDGER, db)
        await svc.post(ctx, _income())

        accounts = await svc.get_balances(ctx)

        assert {(a.account_type, a.balance) for a in accounts} == {("cash", 5000), ("income", 5000)}
