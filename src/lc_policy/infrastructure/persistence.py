"""PolicyRepository — decisions, policies, instruments and security events.

Uniqueness is enforced by PostgreSQL and surfaces here as "no row returned":
  authorization_decisions  UNIQUE (ledger_id, idempotency_key)
  authorization_policies   UNIQUE (ledger_id, policy_type, priority) WHERE is_active
  authorizing_instruments  UNIQUE (ledger_id, fingerprint), UNIQUE (ledger_id, external_ref)

Transaction ownership: the CALLER commits or rolls back.
"""

import json
import logging
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.lc_policy.domain.models import (
    AuthorizationDecision,
    Instrument,
    NewDecision,
    NewInstrument,
    Policy,
    ProposedTransaction,
    Violation,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# SQL: decisions
# ---------------------------------------------------------------------------

_DECISION_COLUMNS = """
    id, ledger_id, idempotency_key, proposed_transaction, decision,
    violated_policies, expires_at, created_at
"""

_GET_DECISION_SQL = text(f"""
    SELECT {_DECISION_COLUMNS}
    FROM authorization_decisions
    WHERE ledger_id = :ledger_id AND idempotency_key = :idempotency_key
""")

_GET_DECISION_BY_ID_SQL = text(f"""
    SELECT {_DECISION_COLUMNS}
    FROM authorization_decisions
    WHERE ledger_id = :ledger_id AND id = CAST(:id AS UUID)
""")

_DELETE_DECISION_SQL = text("""
    DELETE FROM authorization_decisions WHERE id = CAST(:id AS UUID)
""")

_INSERT_DECISION_SQL = text(f"""
    INSERT INTO authorization_decisions
        (ledger_id, idempotency_key, proposed_transaction, decision,
         violated_policies, expires_at)
    VALUES
        (:ledger_id, :idempotency_key, CAST(:proposed AS JSONB), :decision,
         CAST(:violations AS JSONB), :expires_at)
    ON CONFLICT (ledger_id, idempotency_key) DO NOTHING
    RETURNING {_DECISION_COLUMNS}
""")

# ---------------------------------------------------------------------------
# SQL: policies
# ---------------------------------------------------------------------------

_POLICY_COLUMNS = "id, ledger_id, policy_type, config, severity, priority, is_active, created_at"

_LIST_ACTIVE_POLICIES_SQL = text(f"""
    SELECT {_POLICY_COLUMNS}
    FROM authorization_policies
    WHERE ledger_id = :ledger_id AND is_active
    ORDER BY priority ASC, created_at ASC
""")

_LIST_ALL_POLICIES_SQL = text(f"""
    SELECT {_POLICY_COLUMNS}
    FROM authorization_policies
    WHERE ledger_id = :ledger_id
    ORDER BY is_active DESC, priority ASC, created_at ASC
""")

_INSERT_POLICY_SQL = text(f"""
    INSERT INTO authorization_policies
        (ledger_id, policy_type, config, severity, priority)
    VALUES
        (:ledger_id, :policy_type, CAST(:config AS JSONB), :severity, :priority)
    ON CONFLICT (ledger_id, policy_type, priority) WHERE is_active DO NOTHING
    RETURNING {_POLICY_COLUMNS}
""")

_DEACTIVATE_POLICY_SQL = text(f"""
    UPDATE authorization_policies
    SET is_active = FALSE, updated_at = NOW()
    WHERE ledger_id = :ledger_id AND id = CAST(:id AS UUID)
    RETURNING {_POLICY_COLUMNS}
""")

# ---------------------------------------------------------------------------
# SQL: instruments
# ---------------------------------------------------------------------------

_INSTRUMENT_COLUMNS = """
    id, ledger_id, external_ref, amount, currency, cadence, counterparty_name,
    fingerprint, status, created_at, invalidated_at
"""

_GET_INSTRUMENT_SQL = text(f"""
    SELECT {_INSTRUMENT_COLUMNS}
    FROM authorizing_instruments
    WHERE ledger_id = :ledger_id AND id = CAST(:id AS UUID)
""")

_FIND_INSTRUMENT_CONFLICT_SQL = text(f"""
    SELECT {_INSTRUMENT_COLUMNS}
    FROM authorizing_instruments
    WHERE ledger_id = :ledger_id
      AND (fingerprint = :fingerprint OR external_ref = :external_ref)
    ORDER BY (fingerprint = :fingerprint) DESC
    LIMIT 1
""")

_INSERT_INSTRUMENT_SQL = text(f"""
    INSERT INTO authorizing_instruments
        (ledger_id, external_ref, amount, currency, cadence,
         counterparty_name, fingerprint)
    VALUES
        (:ledger_id, :external_ref, :amount, :currency, :cadence,
         :counterparty_name, :fingerprint)
    ON CONFLICT DO NOTHING
    RETURNING {_INSTRUMENT_COLUMNS}
""")

# Only active -> invalidated; the row is otherwise immutable
_INVALIDATE_INSTRUMENT_SQL = text(f"""
    UPDATE authorizing_instruments
    SET status = 'invalidated', invalidated_at = NOW()
    WHERE ledger_id = :ledger_id AND id = CAST(:id AS UUID) AND status = 'active'
    RETURNING {_INSTRUMENT_COLUMNS}
""")

_CANCEL_PROJECTIONS_SQL = text("""
    UPDATE projected_transactions
    SET status = 'cancelled'
    WHERE ledger_id = :ledger_id
      AND authorizing_instrument_id = CAST(:instrument_id AS UUID)
      AND status = 'pending'
""")

# ---------------------------------------------------------------------------
# SQL: security events
# ---------------------------------------------------------------------------

_INSERT_SECURITY_EVENT_SQL = text("""
    INSERT INTO security_events (ledger_id, event_type, severity, details)
    VALUES (:ledger_id, :event_type, :severity, CAST(:details AS JSONB))
""")


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _load_json(raw: Any) -> Any:
    """JSONB arrives as str through text() queries on asyncpg."""
    if isinstance(raw, (str, bytes)):
        return json.loads(raw)
    return raw


def _row_to_decision(row: Any) -> AuthorizationDecision:
    return AuthorizationDecision(
        id=str(row.id),
        ledger_id=str(row.ledger_id),
        idempotency_key=row.idempotency_key,
        proposed=ProposedTransaction.from_dict(_load_json(row.proposed_transaction)),
        decision=row.decision,
        violated_policies=[Violation(**v) for v in _load_json(row.violated_policies) or []],
        expires_at=row.expires_at,
        created_at=row.created_at,
    )


def _row_to_policy(row: Any) -> Policy:
    return Policy(
        id=str(row.id),
        ledger_id=str(row.ledger_id),
        policy_type=row.policy_type,
        config=_load_json(row.config) or {},
        severity=row.severity,
        priority=row.priority,
        is_active=row.is_active,
        created_at=row.created_at,
    )


def _row_to_instrument(row: Any) -> Instrument:
    return Instrument(
        id=str(row.id),
        ledger_id=str(row.ledger_id),
        external_ref=row.external_ref,
        amount=row.amount,
        currency=row.currency,
        cadence=row.cadence,
        counterparty_name=row.counterparty_name,
        fingerprint=row.fingerprint,
        status=row.status,
        created_at=row.created_at,
        invalidated_at=row.invalidated_at,
    )


class PolicyRepository:
    """Concrete repository — raw SQL, no commits."""

    # --- decisions ---

    async def get_decision(
        self, db: AsyncSession, ledger_id: str, idempotency_key: str
    ) -> AuthorizationDecision | None:
        result = await db.execute(
            _GET_DECISION_SQL, {"ledger_id": ledger_id, "idempotency_key": idempotency_key}
        )
        row = result.fetchone()
        return _row_to_decision(row) if row else None

    async def get_decision_by_id(
        self, db: AsyncSession, ledger_id: str, decision_id: str
    ) -> AuthorizationDecision | None:
        result = await db.execute(_GET_DECISION_BY_ID_SQL, {"ledger_id": ledger_id, "id": decision_id})
        row = result.fetchone()
        return _row_to_decision(row) if row else None

    async def delete_decision(self, db: AsyncSession, decision_id: str) -> None:
        await db.execute(_DELETE_DECISION_SQL, {"id": decision_id})

    async def insert_decision(
        self, db: AsyncSession, decision: NewDecision
    ) -> AuthorizationDecision | None:
        result = await db.execute(
            _INSERT_DECISION_SQL,
            {
                "ledger_id": decision.ledger_id,
                "idempotency_key": decision.idempotency_key,
                "proposed": json.dumps(decision.proposed.to_dict()),
                "decision": decision.decision,
                "violations": json.dumps([v.to_dict() for v in decision.violations]),
                "expires_at": decision.expires_at,
            },
        )
        row = result.fetchone()
        return _row_to_decision(row) if row else None

    # --- policies ---

    async def list_policies(
        self, db: AsyncSession, ledger_id: str, active_only: bool = True
    ) -> list[Policy]:
        sql = _LIST_ACTIVE_POLICIES_SQL if active_only else _LIST_ALL_POLICIES_SQL
        result = await db.execute(sql, {"ledger_id": ledger_id})
        return [_row_to_policy(row) for row in result.fetchall()]

    async def insert_policy(
        self,
        db: AsyncSession,
        ledger_id: str,
        policy_type: str,
        config: dict[str, Any],
        severity: str,
        priority: int,
    ) -> Policy | None:
        result = await db.execute(
            _INSERT_POLICY_SQL,
            {
                "ledger_id": ledger_id,
                "policy_type": policy_type,
                "config": json.dumps(config),
                "severity": severity,
                "priority": priority,
            },
        )
        row = result.fetchone()
        return _row_to_policy(row) if row else None

    async def deactivate_policy(
        self, db: AsyncSession, ledger_id: str, policy_id: str
    ) -> Policy | None:
        result = await db.execute(_DEACTIVATE_POLICY_SQL, {"ledger_id": ledger_id, "id": policy_id})
        row = result.fetchone()
        return _row_to_policy(row) if row else None

    # --- instruments ---

    async def get_instrument(
        self, db: AsyncSession, ledger_id: str, instrument_id: str
    ) -> Instrument | None:
        result = await db.execute(_GET_INSTRUMENT_SQL, {"ledger_id": ledger_id, "id": instrument_id})
        row = result.fetchone()
        return _row_to_instrument(row) if row else None

    async def find_instrument_conflict(
        self, db: AsyncSession, ledger_id: str, fingerprint: str, external_ref: str
    ) -> Instrument | None:
        result = await db.execute(
            _FIND_INSTRUMENT_CONFLICT_SQL,
            {"ledger_id": ledger_id, "fingerprint": fingerprint, "external_ref": external_ref},
        )
        row = result.fetchone()
        return _row_to_instrument(row) if row else None

    async def insert_instrument(
        self, db: AsyncSession, instrument: NewInstrument
    ) -> Instrument | None:
        result = await db.execute(
            _INSERT_INSTRUMENT_SQL,
            {
                "ledger_id": instrument.ledger_id,
                "external_ref": instrument.external_ref,
                "amount": instrument.amount,
                "currency": instrument.currency,
                "cadence": instrument.cadence,
                "counterparty_name": instrument.counterparty_name,
                "fingerprint": instrument.fingerprint,
            },
        )
        row = result.fetchone()
        return _row_to_instrument(row) if row else None

    async def invalidate_instrument(
        self, db: AsyncSession, ledger_id: str, instrument_id: str
    ) -> Instrument | None:
        result = await db.execute(
            _INVALIDATE_INSTRUMENT_SQL, {"ledger_id": ledger_id, "id": instrument_id}
        )
        row = result.fetchone()
        return _row_to_instrument(row) if row else None

    async def cancel_pending_projections(
        self, db: AsyncSession, ledger_id: str, instrument_id: str
    ) -> int:
        result = await db.execute(
            _CANCEL_PROJECTIONS_SQL, {"ledger_id": ledger_id, "instrument_id": instrument_id}
        )
        return result.rowcount or 0

    # --- security events ---

    async def record_security_event(
        self,
        db: AsyncSession,
        ledger_id: str,
        event_type: str,
        severity: str,
        details: dict[str, Any],
    ) -> None:
        try:
            async with db.begin_nested():
                await db.execute(
                    _INSERT_SECURITY_EVENT_SQL,
                    {
                        "ledger_id": ledger_id,
                        "event_type": event_type,
                        "severity": severity,
                        "details": json.dumps(details, default=str),
                    },
                )
        except SQLAlchemyError as exc:
            logger.warning(
                "Security event %s for ledger %s not recorded: %s", event_type, ledger_id, exc
            )
