"""ShadowLedgerService — read-only projection of future obligations.

Nothing here writes to accounts, transactions or entries. Obligation reads
run inside a SAVEPOINT and degrade to an empty summary on failure so that a
broken projection never fails the caller's primary request.
"""

import logging
from datetime import date

from sqlalchemy.exc import SQLAlchemyError

from src.lc_common.context import LedgerContext
from src.lc_common.errors import StorageError
from src.lc_ledger.domain.repository import LedgerRepositoryProtocol
from src.lc_ledger.infrastructure.persistence import LedgerRepository
from src.lc_shadow.domain.models import CashPosition, ObligationsSummary
from src.lc_shadow.domain.projection import breach_risk, summarize
from src.lc_shadow.domain.repository import ShadowRepositoryProtocol
from src.lc_shadow.infrastructure.persistence import ShadowRepository

logger = logging.getLogger(__name__)


class ShadowLedgerService:
    def __init__(
        self,
        repo: ShadowRepositoryProtocol | None = None,
        ledger_repo: LedgerRepositoryProtocol | None = None,
    ) -> None:
        self._repo: ShadowRepositoryProtocol = repo or ShadowRepository()
        self._ledger_repo: LedgerRepositoryProtocol = ledger_repo or LedgerRepository()

    async def get_obligations(self, ctx: LedgerContext, horizon: date) -> ObligationsSummary:
        summary, _ = await self._obligations_or_empty(ctx, horizon)
        return summary

    async def get_cash_position(self, ctx: LedgerContext, horizon: date) -> CashPosition:
        """Real cash balance plus pending obligations up to horizon.

        The cash balance is authoritative and its failure propagates; the
        obligation side degrades (degraded=True, nothing pending).
        """
        try:
            cash = await self._ledger_repo.get_cash_balance(ctx.db, ctx.ledger_id)
        except SQLAlchemyError as exc:
            logger.error("Cash balance read failed for ledger %s: %s", ctx.ledger_id, exc)
            raise StorageError("Could not read cash balance") from exc

        obligations, degraded = await self._obligations_or_empty(ctx, horizon)
        return CashPosition(
            cash_balance=cash,
            horizon_date=horizon,
            obligations=obligations,
            risk=breach_risk(cash, obligations.pending_total),
            degraded=degraded,
        )

    async def _obligations_or_empty(
        self, ctx: LedgerContext, horizon: date
    ) -> tuple[ObligationsSummary, bool]:
        try:
            async with ctx.db.begin_nested():
                items = await self._repo.list_pending_obligations(ctx.db, ctx.ledger_id, horizon)
        except SQLAlchemyError as exc:
            logger.warning(
                "Shadow ledger unavailable for ledger %s, returning no obligations: %s",
                ctx.ledger_id,
                exc,
            )
            return ObligationsSummary(), True
        return summarize(items), False
