"""002: create users table

Revision ID: 002
Revises: 001
Create Date: 2026-10-17
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE users (
            id              UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
            unique_code     VARCHAR(32)     NOT NULL,
            username        VARCHAR(64)     NOT NULL,
            email           VARCHAR(255)    NOT NULL,
            role            VARCHAR(16)     NOT NULL DEFAULT 'CUSTOMER',
            status          VARCHAR(16)     NOT NULL DEFAULT 'PENDING',
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_users_unique_code UNIQUE (unique_code),
            CONSTRAINT uq_users_email       UNIQUE (email),
            CONSTRAINT ck_users_role   CHECK (role IN ('ADMIN', 'AGENT', 'CUSTOMER')),
            CONSTRAINT ck_users_status CHECK (status IN ('ACTIVE', 'INACTIVE', 'PENDING'))
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_users_updated_at
            BEFORE UPDATE ON users
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("COMMENT ON TABLE users IS 'Users — owned by registration, read-only to the back-office core';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS users CASCADE;")
