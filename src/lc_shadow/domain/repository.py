"""Repository Protocol for the shadow ledger. Read-only by contract."""

from datetime import date
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.lc_shadow.domain.models import ProjectedObligation


class ShadowRepositoryProtocol(Protocol):
    async def list_pending_obligations(
        self, db: AsyncSession, ledger_id: str, horizon: date
    ) -> list[ProjectedObligation]: ...

    async def sum_pending_obligations(
        self, db: AsyncSession, ledger_id: str, horizon: date | None = None
    ) -> int:
        """Sum of all pending projections, optionally bounded by expected_date <= horizon."""
        ...
