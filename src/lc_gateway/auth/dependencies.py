"""FastAPI dependency: get_ledger_context.

Usage in any ledger-scoped router:
    from src.lc_gateway.auth.dependencies import get_ledger_context

    @router.get("/balances")
    async def balances(ctx: LedgerContext = Depends(get_ledger_context)):
        ...

Resolves the tenant from the X-Ledger-Id header. Caller authentication is
handled upstream; this only guarantees the ledger exists and is active.
"""

import uuid
from typing import Annotated

from fastapi import Depends, Header
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.lc_common.context import LedgerContext
from src.lc_common.database import get_db_session
from src.lc_common.errors import InvalidInputError, LedgerNotFoundError

_ACTIVE_LEDGER_SQL = text("""
    SELECT id FROM ledgers
    WHERE id = CAST(:ledger_id AS UUID) AND status = 'active'
""")


async def get_ledger_context(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    x_ledger_id: Annotated[str, Header(alias="X-Ledger-Id")],
) -> LedgerContext:
    """Raise 400 for a malformed id and 404 (LedgerNotFoundError) for unknown or archived ledgers."""
    try:
        ledger_id = str(uuid.UUID(x_ledger_id))
    except ValueError:
        raise InvalidInputError("X-Ledger-Id must be a UUID") from None

    result = await db.execute(_ACTIVE_LEDGER_SQL, {"ledger_id": ledger_id})
    if result.fetchone() is None:
        raise LedgerNotFoundError(ledger_id)
    return LedgerContext(ledger_id=ledger_id, db=db)
