"""ShadowRepository — SELECT-only access to projected_transactions."""

from datetime import date
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.lc_shadow.domain.models import ProjectedObligation

_LIST_PENDING_SQL = text("""
    SELECT id, ledger_id, expected_date, amount, currency, status,
           counterparty_name, authorizing_instrument_id
    FROM projected_transactions
    WHERE ledger_id = :ledger_id
      AND status = 'pending'
      AND expected_date <= :horizon
    ORDER BY expected_date, id
""")

_SUM_PENDING_SQL = text("""
    SELECT COALESCE(SUM(amount), 0)
    FROM projected_transactions
    WHERE ledger_id = :ledger_id
      AND status = 'pending'
      AND (CAST(:horizon AS DATE) IS NULL OR expected_date <= :horizon)
""")


def _row_to_obligation(row: Any) -> ProjectedObligation:
    return ProjectedObligation(
        id=str(row.id),
        ledger_id=str(row.ledger_id),
        expected_date=row.expected_date,
        amount=row.amount,
        currency=row.currency,
        status=row.status,
        counterparty=row.counterparty_name,
        authorizing_instrument_id=(
            str(row.authorizing_instrument_id) if row.authorizing_instrument_id else None
        ),
    )


class ShadowRepository:
    async def list_pending_obligations(
        self, db: AsyncSession, ledger_id: str, horizon: date
    ) -> list[ProjectedObligation]:
        result = await db.execute(_LIST_PENDING_SQL, {"ledger_id": ledger_id, "horizon": horizon})
        return [_row_to_obligation(row) for row in result.fetchall()]

    async def sum_pending_obligations(
        self, db: AsyncSession, ledger_id: str, horizon: date | None = None
    ) -> int:
        result = await db.execute(_SUM_PENDING_SQL, {"ledger_id": ledger_id, "horizon": horizon})
        return int(result.scalar_one())
