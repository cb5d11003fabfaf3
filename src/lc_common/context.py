"""LedgerContext — the explicit tenant + store handle passed to every core operation."""

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession


@dataclass(frozen=True)
class LedgerContext:
    ledger_id: str
    db: AsyncSession
