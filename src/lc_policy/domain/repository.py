"""Repository Protocols for lc_policy.

PolicyRepositoryProtocol owns decisions, policies, instruments and security
events. PolicyLookups is the narrow read surface policy rules evaluate
against; it is bound to one ledger and every call may raise SQLAlchemyError,
which the engine treats as "no violation".
"""

from datetime import datetime
from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.lc_policy.domain.models import (
    AuthorizationDecision,
    Instrument,
    NewDecision,
    NewInstrument,
    Policy,
)


class PolicyRepositoryProtocol(Protocol):
    # --- decisions ---
    async def get_decision(
        self, db: AsyncSession, ledger_id: str, idempotency_key: str
    ) -> AuthorizationDecision | None: ...

    async def get_decision_by_id(
        self, db: AsyncSession, ledger_id: str, decision_id: str
    ) -> AuthorizationDecision | None: ...

    async def delete_decision(self, db: AsyncSession, decision_id: str) -> None: ...

    async def insert_decision(
        self, db: AsyncSession, decision: NewDecision
    ) -> AuthorizationDecision | None:
        """Return None when (ledger_id, idempotency_key) already exists."""
        ...

    # --- policies ---
    async def list_policies(
        self, db: AsyncSession, ledger_id: str, active_only: bool = True
    ) -> list[Policy]:
        """Ordered by priority ascending."""
        ...

    async def insert_policy(
        self,
        db: AsyncSession,
        ledger_id: str,
        policy_type: str,
        config: dict[str, Any],
        severity: str,
        priority: int,
    ) -> Policy | None:
        """Return None when (ledger_id, policy_type, priority) already exists."""
        ...

    async def deactivate_policy(
        self, db: AsyncSession, ledger_id: str, policy_id: str
    ) -> Policy | None: ...

    # --- instruments ---
    async def get_instrument(
        self, db: AsyncSession, ledger_id: str, instrument_id: str
    ) -> Instrument | None: ...

    async def find_instrument_conflict(
        self, db: AsyncSession, ledger_id: str, fingerprint: str, external_ref: str
    ) -> Instrument | None: ...

    async def insert_instrument(
        self, db: AsyncSession, instrument: NewInstrument
    ) -> Instrument | None:
        """Return None on a fingerprint or external_ref conflict."""
        ...

    async def invalidate_instrument(
        self, db: AsyncSession, ledger_id: str, instrument_id: str
    ) -> Instrument | None: ...

    async def cancel_pending_projections(
        self, db: AsyncSession, ledger_id: str, instrument_id: str
    ) -> int: ...

    # --- security events ---
    async def record_security_event(
        self,
        db: AsyncSession,
        ledger_id: str,
        event_type: str,
        severity: str,
        details: dict[str, Any],
    ) -> None:
        """Best-effort: failures are logged and swallowed."""
        ...


class PolicyLookups(Protocol):
    async def get_instrument(self, instrument_id: str) -> Instrument | None: ...

    async def sum_expense_debits(self, since: datetime, category: str | None) -> int: ...

    async def get_cash_balance(self) -> int: ...

    async def sum_pending_obligations(self) -> int: ...
