"""003: create transactions and entries tables

Revision ID: 003
Revises: 002
Create Date: 2026-10-01
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE transactions (
            id                UUID         PRIMARY KEY DEFAULT gen_random_uuid(),
            ledger_id         UUID         NOT NULL REFERENCES ledgers(id),
            transaction_type  VARCHAR(30)  NOT NULL,
            reference_id      VARCHAR(255) NOT NULL,
            description       VARCHAR(500),
            amount            BIGINT       NOT NULL,
            currency          CHAR(3)      NOT NULL DEFAULT 'USD',
            status            VARCHAR(20)  NOT NULL DEFAULT 'completed',
            reverses          UUID         REFERENCES transactions(id),
            reversed_by       UUID         REFERENCES transactions(id),
            metadata          JSONB        NOT NULL DEFAULT '{}',
            created_at        TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            updated_at        TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_transactions_reference UNIQUE (ledger_id, reference_id),
            CONSTRAINT ck_transactions_amount_gt_0 CHECK (amount > 0),
            CONSTRAINT ck_transactions_status CHECK (
                status IN ('completed', 'voided', 'reversed', 'draft')
            ),
            CONSTRAINT ck_transactions_type CHECK (
                transaction_type IN (
                    'sale', 'expense', 'refund', 'payout', 'bill', 'adjustment',
                    'income', 'transfer', 'opening_balance', 'reversal'
                )
            )
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_transactions_updated_at
            BEFORE UPDATE ON transactions
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("""
        CREATE INDEX idx_transactions_reverses
        ON transactions (reverses)
        WHERE reverses IS NOT NULL;
    """)
    op.execute("CREATE INDEX idx_transactions_ledger_time ON transactions (ledger_id, created_at);")

    op.execute("""
        CREATE TABLE entries (
            id              BIGSERIAL   PRIMARY KEY,
            transaction_id  UUID        NOT NULL REFERENCES transactions(id),
            account_id      UUID        NOT NULL REFERENCES accounts(id),
            entry_type      VARCHAR(6)  NOT NULL,
            amount          BIGINT      NOT NULL,
            created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_entries_type      CHECK (entry_type IN ('debit', 'credit')),
            CONSTRAINT ck_entries_amount_ge_0 CHECK (amount >= 0)
        );
    """)
    op.execute("CREATE INDEX idx_entries_transaction ON entries (transaction_id);")
    op.execute("CREATE INDEX idx_entries_account ON entries (account_id);")
    op.execute("""
        CREATE TRIGGER trg_entries_immutable
            BEFORE UPDATE OR DELETE ON entries
            FOR EACH ROW EXECUTE FUNCTION fn_reject_mutation();
    """)

    # Double-entry check runs at COMMIT, after every leg of the transaction is in
    op.execute("""
        CREATE OR REPLACE FUNCTION fn_check_transaction_balanced()
        RETURNS TRIGGER AS $$
        DECLARE
            v_debits  BIGINT;
            v_credits BIGINT;
        BEGIN
            SELECT COALESCE(SUM(amount) FILTER (WHERE entry_type = 'debit'), 0),
                   COALESCE(SUM(amount) FILTER (WHERE entry_type = 'credit'), 0)
              INTO v_debits, v_credits
              FROM entries
             WHERE transaction_id = NEW.transaction_id;

            IF v_debits <> v_credits THEN
                RAISE EXCEPTION 'transaction % is unbalanced: debits % <> credits %',
                    NEW.transaction_id, v_debits, v_credits
                    USING ERRCODE = 'check_violation';
            END IF;
            RETURN NULL;
        END;
        $$ LANGUAGE plpgsql;
    """)
    op.execute("""
        CREATE CONSTRAINT TRIGGER trg_entries_balanced
            AFTER INSERT ON entries
            DEFERRABLE INITIALLY DEFERRED
            FOR EACH ROW EXECUTE FUNCTION fn_check_transaction_balanced();
    """)
    op.execute(
        "COMMENT ON TABLE entries IS 'Transaction legs — append-only, amounts in cents; "
        "debits equal credits per transaction (checked at commit).';"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS entries CASCADE;")
    op.execute("DROP FUNCTION IF EXISTS fn_check_transaction_balanced();")
    op.execute("DROP TABLE IF EXISTS transactions CASCADE;")
