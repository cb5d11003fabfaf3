"""SavepointPolicyLookups — the read surface policy rules evaluate against.

Each read runs in its own SAVEPOINT: a failing query (timeout, bad cast)
rolls back only that savepoint, so the engine can fail open on the policy
and still persist its decision in the outer transaction.
"""

from datetime import datetime

from src.lc_common.context import LedgerContext
from src.lc_ledger.domain.repository import LedgerRepositoryProtocol
from src.lc_policy.domain.models import Instrument
from src.lc_policy.domain.repository import PolicyRepositoryProtocol
from src.lc_shadow.domain.repository import ShadowRepositoryProtocol


class SavepointPolicyLookups:
    def __init__(
        self,
        ctx: LedgerContext,
        policy_repo: PolicyRepositoryProtocol,
        ledger_repo: LedgerRepositoryProtocol,
        shadow_repo: ShadowRepositoryProtocol,
    ) -> None:
        self._ctx = ctx
        self._policy_repo = policy_repo
        self._ledger_repo = ledger_repo
        self._shadow_repo = shadow_repo

    async def get_instrument(self, instrument_id: str) -> Instrument | None:
        db = self._ctx.db
        async with db.begin_nested():
            return await self._policy_repo.get_instrument(db, self._ctx.ledger_id, instrument_id)

    async def sum_expense_debits(self, since: datetime, category: str | None) -> int:
        db = self._ctx.db
        async with db.begin_nested():
            return await self._ledger_repo.sum_expense_debits(db, self._ctx.ledger_id, since, category)

    async def get_cash_balance(self) -> int:
        db = self._ctx.db
        async with db.begin_nested():
            return await self._ledger_repo.get_cash_balance(db, self._ctx.ledger_id)

    async def sum_pending_obligations(self) -> int:
        db = self._ctx.db
        async with db.begin_nested():
            return await self._shadow_repo.sum_pending_obligations(db, self._ctx.ledger_id)
