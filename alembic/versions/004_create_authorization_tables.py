"""004: create authorization policy, decision, instrument and security event tables

Revision ID: 004
Revises: 003
Create Date: 2026-10-01
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE authorization_policies (
            id           UUID        PRIMARY KEY DEFAULT gen_random_uuid(),
            ledger_id    UUID        NOT NULL REFERENCES ledgers(id),
            policy_type  VARCHAR(64) NOT NULL,
            config       JSONB       NOT NULL DEFAULT '{}',
            severity     VARCHAR(4)  NOT NULL DEFAULT 'hard',
            priority     INTEGER     NOT NULL DEFAULT 100,
            is_active    BOOLEAN     NOT NULL DEFAULT TRUE,
            created_at   TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at   TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_policies_severity CHECK (severity IN ('hard', 'soft')),
            CONSTRAINT ck_policies_priority_ge_0 CHECK (priority >= 0)
        );
    """)
    op.execute("""
        CREATE UNIQUE INDEX uq_policies_active_priority
        ON authorization_policies (ledger_id, policy_type, priority)
        WHERE is_active;
    """)
    op.execute("""
        CREATE TRIGGER trg_policies_updated_at
            BEFORE UPDATE ON authorization_policies
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)

    op.execute("""
        CREATE TABLE authorization_decisions (
            id                    UUID         PRIMARY KEY DEFAULT gen_random_uuid(),
            ledger_id             UUID         NOT NULL REFERENCES ledgers(id),
            idempotency_key       VARCHAR(255) NOT NULL,
            proposed_transaction  JSONB        NOT NULL,
            decision              VARCHAR(10)  NOT NULL,
            violated_policies     JSONB        NOT NULL DEFAULT '[]',
            expires_at            TIMESTAMPTZ  NOT NULL,
            created_at            TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_decisions_idempotency UNIQUE (ledger_id, idempotency_key),
            CONSTRAINT ck_decisions_decision CHECK (decision IN ('allowed', 'warn', 'blocked'))
        );
    """)
    op.execute("CREATE INDEX idx_decisions_expires ON authorization_decisions (expires_at);")

    op.execute("""
        CREATE TABLE authorizing_instruments (
            id                 UUID         PRIMARY KEY DEFAULT gen_random_uuid(),
            ledger_id          UUID         NOT NULL REFERENCES ledgers(id),
            external_ref       VARCHAR(255) NOT NULL,
            amount             BIGINT       NOT NULL,
            currency           CHAR(3)      NOT NULL DEFAULT 'USD',
            cadence            VARCHAR(20)  NOT NULL DEFAULT 'one_time',
            counterparty_name  VARCHAR(200) NOT NULL,
            fingerprint        CHAR(64)     NOT NULL,
            status             VARCHAR(20)  NOT NULL DEFAULT 'active',
            created_at         TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            invalidated_at     TIMESTAMPTZ,
            CONSTRAINT uq_instruments_fingerprint  UNIQUE (ledger_id, fingerprint),
            CONSTRAINT uq_instruments_external_ref UNIQUE (ledger_id, external_ref),
            CONSTRAINT ck_instruments_amount_gt_0  CHECK (amount > 0),
            CONSTRAINT ck_instruments_status CHECK (status IN ('active', 'invalidated')),
            CONSTRAINT ck_instruments_cadence CHECK (
                cadence IN ('one_time', 'weekly', 'bi_weekly', 'monthly', 'quarterly', 'annual')
            )
        );
    """)

    op.execute("""
        CREATE TABLE security_events (
            id          BIGSERIAL   PRIMARY KEY,
            ledger_id   UUID        NOT NULL REFERENCES ledgers(id),
            event_type  VARCHAR(64) NOT NULL,
            severity    VARCHAR(20) NOT NULL,
            details     JSONB       NOT NULL DEFAULT '{}',
            created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW()
        );
    """)
    op.execute("CREATE INDEX idx_security_events_ledger_time ON security_events (ledger_id, created_at DESC);")
    op.execute("""
        CREATE TRIGGER trg_security_events_immutable
            BEFORE UPDATE OR DELETE ON security_events
            FOR EACH ROW EXECUTE FUNCTION fn_reject_mutation();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS security_events CASCADE;")
    op.execute("DROP TABLE IF EXISTS authorizing_instruments CASCADE;")
    op.execute("DROP TABLE IF EXISTS authorization_decisions CASCADE;")
    op.execute("DROP TABLE IF EXISTS authorization_policies CASCADE;")
