"""003: create plans and user_plans tables

Revision ID: 003
Revises: 002
Create Date: 2026-10-17
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE plans (
            id                       UUID          PRIMARY KEY DEFAULT gen_random_uuid(),
            name                     VARCHAR(128)  NOT NULL,
            min_deposit              BIGINT        NOT NULL DEFAULT 0,
            max_deposit              BIGINT        NOT NULL DEFAULT 0,
            max_accounts             INTEGER       NOT NULL DEFAULT 1,
            profit_sharing_customer  NUMERIC(5,2)  NOT NULL,
            profit_sharing_platform  NUMERIC(5,2)  NOT NULL,
            upfront_fee              BIGINT        NOT NULL DEFAULT 0,
            visibility               VARCHAR(16)   NOT NULL DEFAULT 'PUBLIC',
            confirmation_text        TEXT,
            created_at               TIMESTAMPTZ   NOT NULL DEFAULT NOW(),
            updated_at               TIMESTAMPTZ   NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_plans_customer_pct CHECK (profit_sharing_customer BETWEEN 0 AND 100),
            CONSTRAINT ck_plans_platform_pct CHECK (profit_sharing_platform BETWEEN 0 AND 100),
            CONSTRAINT ck_plans_deposits_gte_0 CHECK (min_deposit >= 0 AND max_deposit >= 0),
            CONSTRAINT ck_plans_max_accounts_gte_1 CHECK (max_accounts >= 1),
            CONSTRAINT ck_plans_visibility CHECK (visibility IN ('PUBLIC', 'PRIVATE'))
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_plans_updated_at
            BEFORE UPDATE ON plans
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("""
        CREATE TABLE user_plans (
            user_id         UUID            PRIMARY KEY REFERENCES users (id),
            plan_id         UUID            NOT NULL REFERENCES plans (id),
            subscribed_at   TIMESTAMPTZ     NOT NULL DEFAULT NOW()
        );
    """)
    op.execute("CREATE INDEX idx_user_plans_plan ON user_plans (plan_id);")
    op.execute("COMMENT ON TABLE plans IS 'Subscription plans — money in cents, shares in percent of 100';")
    op.execute("COMMENT ON TABLE user_plans IS 'One active plan per user';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS user_plans CASCADE;")
    op.execute("DROP TABLE IF EXISTS plans CASCADE;")
