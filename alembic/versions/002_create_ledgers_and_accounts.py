"""002: create ledgers and accounts tables

Revision ID: 002
Revises: 001
Create Date: 2026-10-01
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE ledgers (
            id          UUID         PRIMARY KEY DEFAULT gen_random_uuid(),
            name        VARCHAR(200) NOT NULL,
            status      VARCHAR(20)  NOT NULL DEFAULT 'active',
            created_at  TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            updated_at  TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_ledgers_status CHECK (status IN ('active', 'archived'))
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_ledgers_updated_at
            BEFORE UPDATE ON ledgers
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)

    op.execute("""
        CREATE TABLE accounts (
            id            UUID         PRIMARY KEY DEFAULT gen_random_uuid(),
            ledger_id     UUID         NOT NULL REFERENCES ledgers(id),
            account_type  VARCHAR(64)  NOT NULL,
            entity_id     VARCHAR(255) NOT NULL DEFAULT '',
            name          VARCHAR(300) NOT NULL,
            normal_side   VARCHAR(6)   NOT NULL,
            balance       BIGINT       NOT NULL DEFAULT 0,
            is_active     BOOLEAN      NOT NULL DEFAULT TRUE,
            created_at    TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            updated_at    TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_accounts_identity    UNIQUE (ledger_id, account_type, entity_id),
            CONSTRAINT ck_accounts_normal_side CHECK (normal_side IN ('debit', 'credit')),
            CONSTRAINT ck_accounts_type CHECK (
                account_type IN (
                    'cash', 'bank', 'accounts_receivable', 'reserve', 'tax_reserve',
                    'refund_reserve', 'prepaid_expense', 'expense', 'processing_fees',
                    'creator_balance', 'creator_pool', 'accounts_payable', 'tax_payable',
                    'platform_revenue', 'revenue', 'income', 'owner_equity',
                    'opening_balance_equity'
                )
            )
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_accounts_updated_at
            BEFORE UPDATE ON accounts
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("CREATE INDEX idx_accounts_ledger_type ON accounts (ledger_id, account_type);")
    op.execute(
        "COMMENT ON TABLE accounts IS 'Ledger accounts; balance is a cache of entry sums "
        "in the normal direction, in cents. Never deleted, only deactivated.';"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS accounts CASCADE;")
    op.execute("DROP TABLE IF EXISTS ledgers CASCADE;")
