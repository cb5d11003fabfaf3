"""LedgerRepository — concrete implementation of LedgerRepositoryProtocol.

Idempotency and concurrency are delegated to PostgreSQL:
  - transactions: UNIQUE (ledger_id, reference_id), inserted with
    ON CONFLICT DO NOTHING; a concurrent loser waits on the index entry and
    then reads back the winner's committed row.
  - accounts: UNIQUE (ledger_id, account_type, entity_id) upsert.
  - refunds/reversals lock the original row with SELECT ... FOR UPDATE.

Transaction ownership: The CALLER (application service) is responsible for
committing or rolling back.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.lc_common.errors import InternalError
from src.lc_ledger.domain.accounts import account_name
from src.lc_ledger.domain.metadata import metadata_from_db, metadata_to_json
from src.lc_ledger.domain.models import (
    Account,
    AccountRef,
    Entry,
    NewTransaction,
    Transaction,
)

# ---------------------------------------------------------------------------
# SQL: accounts
# ---------------------------------------------------------------------------

_ACCOUNT_COLUMNS = """
    id, ledger_id, account_type, entity_id, name, normal_side,
    balance, is_active, created_at
"""

_ENSURE_ACCOUNT_SQL = text(f"""
    INSERT INTO accounts (ledger_id, account_type, entity_id, name, normal_side)
    VALUES (:ledger_id, :account_type, :entity_id, :name, :normal_side)
    ON CONFLICT (ledger_id, account_type, entity_id) DO UPDATE
        SET updated_at = NOW()
    RETURNING {_ACCOUNT_COLUMNS}
""")

_APPLY_BALANCE_SQL = text("""
    UPDATE accounts
    SET balance = balance + :delta,
        updated_at = NOW()
    WHERE id = :account_id
""")

_LIST_ACCOUNTS_SQL = text(f"""
    SELECT {_ACCOUNT_COLUMNS}
    FROM accounts
    WHERE ledger_id = :ledger_id
    ORDER BY account_type, entity_id
""")

_CASH_BALANCE_SQL = text("""
    SELECT COALESCE(SUM(balance), 0)
    FROM accounts
    WHERE ledger_id = :ledger_id AND account_type = 'cash' AND is_active
""")

# ---------------------------------------------------------------------------
# SQL: transactions
# ---------------------------------------------------------------------------

_INSERT_TRANSACTION_SQL = text("""
    INSERT INTO transactions
        (ledger_id, transaction_type, reference_id, description,
         amount, currency, status, reverses, metadata)
    VALUES
        (:ledger_id, :transaction_type, :reference_id, :description,
         :amount, :currency, :status, CAST(:reverses AS UUID), CAST(:metadata AS JSONB))
    ON CONFLICT (ledger_id, reference_id) DO NOTHING
    RETURNING id
""")

_TX_COLUMNS = """
    id, ledger_id, transaction_type, reference_id, description,
    amount, currency, status, reverses, reversed_by, metadata, created_at
"""

_GET_TX_SQL = text(f"""
    SELECT {_TX_COLUMNS}
    FROM transactions
    WHERE ledger_id = :ledger_id AND id = CAST(:id AS UUID)
""")

_GET_TX_BY_REF_SQL = text(f"""
    SELECT {_TX_COLUMNS}
    FROM transactions
    WHERE ledger_id = :ledger_id AND reference_id = :reference_id
""")

_LOCK_TX_SQL = text(f"""
    SELECT {_TX_COLUMNS}
    FROM transactions
    WHERE ledger_id = :ledger_id AND id = CAST(:id AS UUID)
    FOR UPDATE
""")

_LOCK_TX_BY_REF_SQL = text(f"""
    SELECT {_TX_COLUMNS}
    FROM transactions
    WHERE ledger_id = :ledger_id
      AND reference_id = :reference_id
      AND transaction_type = :transaction_type
    FOR UPDATE
""")

_SUM_REVERSED_SQL = text("""
    SELECT COALESCE(SUM(amount), 0)
    FROM transactions
    WHERE ledger_id = :ledger_id
      AND reverses = CAST(:original_id AS UUID)
      AND transaction_type IN ('refund', 'reversal')
      AND status IN ('completed', 'reversed')
""")

_SUM_REVERSAL_LEGS_SQL = text("""
    SELECT e.entry_type, a.account_type, a.entity_id, SUM(e.amount) AS amount
    FROM entries e
    JOIN accounts a     ON a.id = e.account_id
    JOIN transactions t ON t.id = e.transaction_id
    WHERE t.ledger_id = :ledger_id
      AND t.reverses = CAST(:original_id AS UUID)
      AND t.transaction_type IN ('refund', 'reversal')
      AND t.status IN ('completed', 'reversed')
    GROUP BY e.entry_type, a.account_type, a.entity_id
""")

_MARK_REVERSED_SQL = text("""
    UPDATE transactions
    SET status = 'reversed',
        reversed_by = CAST(:reversed_by AS UUID),
        updated_at = NOW()
    WHERE id = CAST(:id AS UUID) AND status = 'completed'
    RETURNING id
""")

_MARK_VOIDED_SQL = text("""
    UPDATE transactions
    SET status = 'voided', updated_at = NOW()
    WHERE id = CAST(:id AS UUID) AND status = 'draft'
    RETURNING id
""")

# ---------------------------------------------------------------------------
# SQL: entries
# ---------------------------------------------------------------------------

_INSERT_ENTRY_SQL = text("""
    INSERT INTO entries (transaction_id, account_id, entry_type, amount)
    VALUES (CAST(:transaction_id AS UUID), CAST(:account_id AS UUID), :entry_type, :amount)
""")

_LIST_ENTRIES_SQL = text("""
    SELECT e.id, e.transaction_id, e.account_id, e.entry_type, e.amount,
           a.account_type, a.entity_id
    FROM entries e
    JOIN accounts a ON a.id = e.account_id
    WHERE e.transaction_id = CAST(:transaction_id AS UUID)
    ORDER BY e.id
""")

_SUM_EXPENSE_DEBITS_SQL = text("""
    SELECT COALESCE(SUM(e.amount), 0)
    FROM entries e
    JOIN accounts a     ON a.id = e.account_id
    JOIN transactions t ON t.id = e.transaction_id
    WHERE t.ledger_id = :ledger_id
      AND t.status = 'completed'
      AND t.created_at >= :since
      AND a.account_type = 'expense'
      AND e.entry_type = 'debit'
      AND (CAST(:category AS TEXT) IS NULL OR a.entity_id = :category)
""")


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _row_to_account(row: Any) -> Account:
    return Account(
        id=str(row.id),
        ledger_id=str(row.ledger_id),
        account_type=row.account_type,
        entity_id=row.entity_id,
        name=row.name,
        normal_side=row.normal_side,
        balance=row.balance,
        is_active=row.is_active,
        created_at=row.created_at,
    )


def _row_to_transaction(row: Any) -> Transaction:
    return Transaction(
        id=str(row.id),
        ledger_id=str(row.ledger_id),
        transaction_type=row.transaction_type,
        reference_id=row.reference_id,
        description=row.description,
        amount=row.amount,
        currency=row.currency,
        status=row.status,
        reverses=str(row.reverses) if row.reverses else None,
        reversed_by=str(row.reversed_by) if row.reversed_by else None,
        metadata=metadata_from_db(row.metadata),
        created_at=row.created_at,
    )


def _row_to_entry(row: Any) -> Entry:
    return Entry(
        id=row.id,
        transaction_id=str(row.transaction_id),
        account_id=str(row.account_id),
        entry_type=row.entry_type,
        amount=row.amount,
        account_type=row.account_type,
        entity_id=row.entity_id,
    )


class LedgerRepository:
    """Concrete repository — raw SQL, no commits."""

    async def ensure_account(
        self, db: AsyncSession, ledger_id: str, ref: AccountRef, normal_side: str
    ) -> Account:
        result = await db.execute(
            _ENSURE_ACCOUNT_SQL,
            {
                "ledger_id": ledger_id,
                "account_type": ref.account_type,
                "entity_id": ref.entity_id,
                "name": account_name(ref.account_type, ref.entity_id),
                "normal_side": normal_side,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Account upsert returned no rows — this should never happen")
        return _row_to_account(row)

    async def insert_transaction(self, db: AsyncSession, tx: NewTransaction) -> str | None:
        result = await db.execute(
            _INSERT_TRANSACTION_SQL,
            {
                "ledger_id": tx.ledger_id,
                "transaction_type": tx.transaction_type,
                "reference_id": tx.reference_id,
                "description": tx.description,
                "amount": tx.amount,
                "currency": tx.currency,
                "status": tx.status,
                "reverses": tx.reverses,
                "metadata": metadata_to_json(tx.metadata),
            },
        )
        row = result.fetchone()
        return str(row.id) if row else None

    async def get_transaction(
        self, db: AsyncSession, ledger_id: str, transaction_id: str
    ) -> Transaction | None:
        result = await db.execute(_GET_TX_SQL, {"ledger_id": ledger_id, "id": transaction_id})
        row = result.fetchone()
        return _row_to_transaction(row) if row else None

    async def get_transaction_by_reference(
        self, db: AsyncSession, ledger_id: str, reference_id: str
    ) -> Transaction | None:
        result = await db.execute(
            _GET_TX_BY_REF_SQL, {"ledger_id": ledger_id, "reference_id": reference_id}
        )
        row = result.fetchone()
        return _row_to_transaction(row) if row else None

    async def lock_transaction(
        self, db: AsyncSession, ledger_id: str, transaction_id: str
    ) -> Transaction | None:
        result = await db.execute(_LOCK_TX_SQL, {"ledger_id": ledger_id, "id": transaction_id})
        row = result.fetchone()
        return _row_to_transaction(row) if row else None

    async def lock_transaction_by_reference(
        self, db: AsyncSession, ledger_id: str, reference_id: str, transaction_type: str
    ) -> Transaction | None:
        result = await db.execute(
            _LOCK_TX_BY_REF_SQL,
            {
                "ledger_id": ledger_id,
                "reference_id": reference_id,
                "transaction_type": transaction_type,
            },
        )
        row = result.fetchone()
        return _row_to_transaction(row) if row else None

    async def insert_entries(
        self, db: AsyncSession, transaction_id: str, entries: list[tuple[str, str, int]]
    ) -> None:
        await db.execute(
            _INSERT_ENTRY_SQL,
            [
                {
                    "transaction_id": transaction_id,
                    "account_id": account_id,
                    "entry_type": entry_type,
                    "amount": amount,
                }
                for account_id, entry_type, amount in entries
            ],
        )

    async def apply_balance_deltas(self, db: AsyncSession, deltas: dict[str, int]) -> None:
        # Fixed lock order across concurrent postings avoids deadlocks
        params = [
            {"account_id": account_id, "delta": delta}
            for account_id, delta in sorted(deltas.items())
            if delta != 0
        ]
        if params:
            await db.execute(_APPLY_BALANCE_SQL, params)

    async def list_entries(self, db: AsyncSession, transaction_id: str) -> list[Entry]:
        result = await db.execute(_LIST_ENTRIES_SQL, {"transaction_id": transaction_id})
        return [_row_to_entry(row) for row in result.fetchall()]

    async def sum_reversed_amount(
        self, db: AsyncSession, ledger_id: str, original_transaction_id: str
    ) -> int:
        result = await db.execute(
            _SUM_REVERSED_SQL,
            {"ledger_id": ledger_id, "original_id": original_transaction_id},
        )
        return int(result.scalar_one())

    async def sum_reversal_legs(
        self, db: AsyncSession, ledger_id: str, original_transaction_id: str
    ) -> dict[tuple[str, str, str], int]:
        result = await db.execute(
            _SUM_REVERSAL_LEGS_SQL,
            {"ledger_id": ledger_id, "original_id": original_transaction_id},
        )
        return {
            (row.entry_type, row.account_type, row.entity_id): int(row.amount)
            for row in result.fetchall()
        }

    async def mark_reversed(
        self, db: AsyncSession, transaction_id: str, reversed_by: str
    ) -> bool:
        result = await db.execute(
            _MARK_REVERSED_SQL, {"id": transaction_id, "reversed_by": reversed_by}
        )
        return result.fetchone() is not None

    async def mark_voided(self, db: AsyncSession, transaction_id: str) -> bool:
        result = await db.execute(_MARK_VOIDED_SQL, {"id": transaction_id})
        return result.fetchone() is not None

    async def list_accounts(self, db: AsyncSession, ledger_id: str) -> list[Account]:
        result = await db.execute(_LIST_ACCOUNTS_SQL, {"ledger_id": ledger_id})
        return [_row_to_account(row) for row in result.fetchall()]

    async def get_cash_balance(self, db: AsyncSession, ledger_id: str) -> int:
        result = await db.execute(_CASH_BALANCE_SQL, {"ledger_id": ledger_id})
        return int(result.scalar_one())

    async def sum_expense_debits(
        self, db: AsyncSession, ledger_id: str, since: datetime, category: str | None
    ) -> int:
        result = await db.execute(
            _SUM_EXPENSE_DEBITS_SQL,
            {"ledger_id": ledger_id, "since": since, "category": category},
        )
        return int(result.scalar_one())
