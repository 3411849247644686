"""004: create wallets and transactions tables

Revision ID: 004
Revises: 003
Create Date: 2026-10-17
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE wallets (
            id              UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id         UUID            NOT NULL REFERENCES users (id),
            balance         BIGINT          NOT NULL DEFAULT 0,
            archived_at     TIMESTAMPTZ,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW()
        );
    """)
    # At most one non-archived wallet per user
    op.execute("""
        CREATE UNIQUE INDEX uq_wallets_active_user
        ON wallets (user_id)
        WHERE archived_at IS NULL;
    """)
    op.execute("""
        CREATE TRIGGER trg_wallets_updated_at
            BEFORE UPDATE ON wallets
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("""
        CREATE TABLE transactions (
            id              VARCHAR(32)     PRIMARY KEY,
            wallet_id       UUID            NOT NULL REFERENCES wallets (id),
            type            VARCHAR(16)     NOT NULL,
            amount          BIGINT          NOT NULL,
            status          VARCHAR(16)     NOT NULL DEFAULT 'PENDING',
            description     VARCHAR(500),
            reference_type  VARCHAR(30),
            reference_id    VARCHAR(128),
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_transactions_type CHECK (
                type IN ('DEPOSIT', 'WITHDRAWAL', 'PROFIT_SHARE')
            ),
            CONSTRAINT ck_transactions_status CHECK (
                status IN ('PENDING', 'SUCCESS', 'REJECTED')
            ),
            CONSTRAINT ck_transactions_amount_gte_0 CHECK (amount >= 0)
        );
    """)
    op.execute("CREATE INDEX idx_transactions_wallet ON transactions (wallet_id, id DESC);")
    # Dedup key: a reference may be posted once
    op.execute("""
        CREATE UNIQUE INDEX uq_transactions_reference
        ON transactions (reference_type, reference_id)
        WHERE reference_id IS NOT NULL;
    """)
    op.execute("""
        CREATE TRIGGER trg_transactions_updated_at
            BEFORE UPDATE ON transactions
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("COMMENT ON TABLE wallets IS 'Wallets — balance in cents = signed sum of SUCCESS transactions';")
    op.execute("COMMENT ON TABLE transactions IS 'Ledger — only status changes after insert';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS transactions CASCADE;")
    op.execute("DROP TABLE IF EXISTS wallets CASCADE;")
