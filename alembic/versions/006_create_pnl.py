"""006: create pnl and user_pnl tables

Revision ID: 006
Revises: 005
Create Date: 2026-10-17
"""
from typing import Sequence, Union
from alembic import op

revision: str = "006"
down_revision: Union[str, None] = "005"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE pnl (
            id                  UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
            date                DATE            NOT NULL,
            symbol              VARCHAR(32)     NOT NULL,
            total_pnl           BIGINT          NOT NULL,
            divine_algo_share   BIGINT          NOT NULL DEFAULT 0,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW()
        );
    """)
    op.execute("CREATE INDEX idx_pnl_symbol_date ON pnl (symbol, date DESC);")
    op.execute("CREATE INDEX idx_pnl_date ON pnl (date DESC);")
    op.execute("""
        CREATE TRIGGER trg_pnl_updated_at
            BEFORE UPDATE ON pnl
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("""
        CREATE TABLE user_pnl (
            pnl_id                UUID          NOT NULL REFERENCES pnl (id) ON DELETE CASCADE,
            user_id               UUID          NOT NULL REFERENCES users (id),
            customer_share        BIGINT        NOT NULL DEFAULT 0,
            platform_share        BIGINT        NOT NULL DEFAULT 0,
            agent_earnings        BIGINT        NOT NULL DEFAULT 0,
            divine_algo_retained  BIGINT        NOT NULL DEFAULT 0,
            status                VARCHAR(16)   NOT NULL DEFAULT 'PENDING',
            reason                VARCHAR(200),
            updated_at            TIMESTAMPTZ   NOT NULL DEFAULT NOW(),
            PRIMARY KEY (pnl_id, user_id),
            CONSTRAINT ck_user_pnl_status CHECK (
                status IN ('PENDING', 'SETTLED', 'SKIPPED', 'FAILED')
            ),
            CONSTRAINT ck_user_pnl_agent_split CHECK (
                agent_earnings >= 0 AND agent_earnings + divine_algo_retained = platform_share
            )
        );
    """)
    op.execute("CREATE INDEX idx_user_pnl_user ON user_pnl (user_id);")
    op.execute("""
        CREATE INDEX idx_user_pnl_unsettled ON user_pnl (pnl_id)
        WHERE status IN ('PENDING', 'FAILED');
    """)
    op.execute("COMMENT ON TABLE pnl IS 'PnL entries — divine_algo_share = sum of SETTLED retained shares';")
    op.execute("COMMENT ON TABLE user_pnl IS 'Per-user split and settle state of a PnL entry';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS user_pnl CASCADE;")
    op.execute("DROP TABLE IF EXISTS pnl CASCADE;")
