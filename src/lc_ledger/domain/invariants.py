"""Ledger-wide invariant checks.

INV-BAL:   every transaction's debit legs sum to its credit legs
INV-CACHE: every cached account balance equals the sum of its posted entries
"""

import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

_UNBALANCED_SQL = text("""
    SELECT t.id, t.reference_id,
           COALESCE(SUM(CASE WHEN e.entry_type = 'debit'  THEN e.amount END), 0) AS debits,
           COALESCE(SUM(CASE WHEN e.entry_type = 'credit' THEN e.amount END), 0) AS credits
    FROM transactions t
    LEFT JOIN entries e ON e.transaction_id = t.id
    WHERE t.ledger_id = :ledger_id
    GROUP BY t.id, t.reference_id
    HAVING COALESCE(SUM(CASE WHEN e.entry_type = 'debit'  THEN e.amount END), 0)
        != COALESCE(SUM(CASE WHEN e.entry_type = 'credit' THEN e.amount END), 0)
""")

_BALANCE_DRIFT_SQL = text("""
    SELECT a.id, a.account_type, a.entity_id, a.balance,
           COALESCE(SUM(
               CASE WHEN (e.entry_type = 'debit') = (a.normal_side = 'debit')
                    THEN e.amount ELSE -e.amount END
           ), 0) AS derived
    FROM accounts a
    LEFT JOIN (entries e
               JOIN transactions t
                 ON t.id = e.transaction_id
                AND t.status IN ('completed', 'reversed'))
      ON e.account_id = a.id
    WHERE a.ledger_id = :ledger_id
    GROUP BY a.id, a.account_type, a.entity_id, a.balance
    HAVING a.balance != COALESCE(SUM(
               CASE WHEN (e.entry_type = 'debit') = (a.normal_side = 'debit')
                    THEN e.amount ELSE -e.amount END
           ), 0)
""")


async def verify_ledger_invariants(db: AsyncSession, ledger_id: str) -> list[str]:
    """Check INV-BAL and INV-CACHE for one ledger. Returns violation strings."""
    violations: list[str] = []

    for row in (await db.execute(_UNBALANCED_SQL, {"ledger_id": ledger_id})).fetchall():
        violations.append(
            f"INV-BAL violated: transaction {row.id} ({row.reference_id}) "
            f"debits={row.debits} != credits={row.credits}"
        )

    for row in (await db.execute(_BALANCE_DRIFT_SQL, {"ledger_id": ledger_id})).fetchall():
        label = f"{row.account_type}:{row.entity_id}" if row.entity_id else row.account_type
        violations.append(
            f"INV-CACHE violated: account {row.id} ({label}) "
            f"cached={row.balance} != derived={row.derived}"
        )

    for msg in violations:
        logger.error(msg)
    return violations
