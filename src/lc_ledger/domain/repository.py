"""Repository Protocol — dependency inversion for testability.

Unit tests inject a fake or mock that conforms to this Protocol.
Infrastructure layer provides the real implementation.
"""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.lc_ledger.domain.models import Account, AccountRef, Entry, NewTransaction, Transaction


class LedgerRepositoryProtocol(Protocol):
    async def ensure_account(
        self, db: AsyncSession, ledger_id: str, ref: AccountRef, normal_side: str
    ) -> Account: ...

    async def insert_transaction(
        self, db: AsyncSession, tx: NewTransaction
    ) -> str | None:
        """Return the new id, or None when (ledger_id, reference_id) already exists."""
        ...

    async def get_transaction(
        self, db: AsyncSession, ledger_id: str, transaction_id: str
    ) -> Transaction | None: ...

    async def get_transaction_by_reference(
        self, db: AsyncSession, ledger_id: str, reference_id: str
    ) -> Transaction | None: ...

    async def lock_transaction(
        self, db: AsyncSession, ledger_id: str, transaction_id: str
    ) -> Transaction | None:
        """SELECT ... FOR UPDATE; serializes refunds/reversals of one original."""
        ...

    async def lock_transaction_by_reference(
        self, db: AsyncSession, ledger_id: str, reference_id: str, transaction_type: str
    ) -> Transaction | None: ...

    async def insert_entries(
        self, db: AsyncSession, transaction_id: str, entries: list[tuple[str, str, int]]
    ) -> None:
        """entries: (account_id, entry_type, amount) triples."""
        ...

    async def apply_balance_deltas(self, db: AsyncSession, deltas: dict[str, int]) -> None: ...

    async def list_entries(self, db: AsyncSession, transaction_id: str) -> list[Entry]: ...

    async def sum_reversed_amount(
        self, db: AsyncSession, ledger_id: str, original_transaction_id: str
    ) -> int:
        """Sum of refund/reversal transactions whose `reverses` is the original."""
        ...

    async def sum_reversal_legs(
        self, db: AsyncSession, ledger_id: str, original_transaction_id: str
    ) -> dict[tuple[str, str, str], int]:
        """Entry amounts of those same transactions keyed by (entry_type, account_type, entity_id)."""
        ...

    async def mark_reversed(
        self, db: AsyncSession, transaction_id: str, reversed_by: str
    ) -> bool: ...

    async def mark_voided(self, db: AsyncSession, transaction_id: str) -> bool: ...

    async def list_accounts(self, db: AsyncSession, ledger_id: str) -> list[Account]: ...

    async def get_cash_balance(self, db: AsyncSession, ledger_id: str) -> int: ...

    async def sum_expense_debits(
        self, db: AsyncSession, ledger_id: str, since: datetime, category: str | None
    ) -> int: ...
