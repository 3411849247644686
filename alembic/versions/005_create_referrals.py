"""005: create referrals table

Revision ID: 005
Revises: 004
Create Date: 2026-10-17
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE referrals (
            id                    UUID          PRIMARY KEY DEFAULT gen_random_uuid(),
            agent_id              UUID          NOT NULL REFERENCES users (id),
            customer_id           UUID          NOT NULL REFERENCES users (id),
            is_active             BOOLEAN       NOT NULL DEFAULT TRUE,
            is_manual_assignment  BOOLEAN       NOT NULL DEFAULT FALSE,
            agent_total_earnings  BIGINT        NOT NULL DEFAULT 0,
            created_at            TIMESTAMPTZ   NOT NULL DEFAULT NOW(),
            updated_at            TIMESTAMPTZ   NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_referrals_customer UNIQUE (customer_id),
            CONSTRAINT ck_referrals_not_self CHECK (agent_id <> customer_id),
            CONSTRAINT ck_referrals_earnings_gte_0 CHECK (agent_total_earnings >= 0)
        );
    """)
    op.execute("CREATE INDEX idx_referrals_agent ON referrals (agent_id);")
    op.execute("""
        CREATE TRIGGER trg_referrals_updated_at
            BEFORE UPDATE ON referrals
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("COMMENT ON TABLE referrals IS 'Agent/customer referral links — one agent per customer';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS referrals CASCADE;")
