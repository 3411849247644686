"""SQLAlchemy ORM models for da_plan.

These map to existing tables created by Alembic migrations.
DO NOT add/remove columns here without a corresponding migration.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import BigInteger, DateTime, ForeignKey, Integer, Numeric, String, func
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.da_common.database import Base


class PlanORM(Base):
    __tablename__ = "plans"

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    min_deposit: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    max_deposit: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    max_accounts: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    profit_sharing_customer: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    profit_sharing_platform: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    upfront_fee: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    visibility: Mapped[str] = mapped_column(String(16), nullable=False, default="PUBLIC")
    confirmation_text: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class UserPlanORM(Base):
    __tablename__ = "user_plans"

    user_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("users.id"), primary_key=True
    )
    plan_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("plans.id"), nullable=False
    )
    subscribed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
