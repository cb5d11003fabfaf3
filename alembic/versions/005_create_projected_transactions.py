"""005: create projected_transactions table (shadow ledger)

Revision ID: 005
Revises: 004
Create Date: 2026-10-01
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE projected_transactions (
            id                         UUID         PRIMARY KEY DEFAULT gen_random_uuid(),
            ledger_id                  UUID         NOT NULL REFERENCES ledgers(id),
            authorizing_instrument_id  UUID         REFERENCES authorizing_instruments(id),
            expected_date              DATE         NOT NULL,
            amount                     BIGINT       NOT NULL,
            currency                   CHAR(3)      NOT NULL DEFAULT 'USD',
            counterparty_name          VARCHAR(200),
            status                     VARCHAR(20)  NOT NULL DEFAULT 'pending',
            matched_transaction_id     UUID         REFERENCES transactions(id),
            metadata                   JSONB        NOT NULL DEFAULT '{}',
            created_at                 TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_projections_amount_gt_0 CHECK (amount > 0),
            CONSTRAINT ck_projections_status CHECK (
                status IN ('pending', 'fulfilled', 'cancelled')
            ),
            CONSTRAINT uq_projections_instrument_date
                UNIQUE (ledger_id, authorizing_instrument_id, expected_date, amount, currency)
        );
    """)
    op.execute("""
        CREATE INDEX idx_projections_pending
        ON projected_transactions (ledger_id, expected_date)
        WHERE status = 'pending';
    """)
    op.execute(
        "COMMENT ON TABLE projected_transactions IS 'Shadow ledger ghost entries — "
        "never part of real balances.';"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS projected_transactions CASCADE;")
