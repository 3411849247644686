"""SQLAlchemy ORM models for da_pnl.

These map to existing tables created by Alembic migrations.
DO NOT add/remove columns here without a corresponding migration.
"""

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import BigInteger, Date, DateTime, ForeignKey, String, func
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.da_common.database import Base


class PnLORM(Base):
    __tablename__ = "pnl"

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True)
    pnl_date: Mapped[date] = mapped_column("date", Date, nullable=False)
    symbol: Mapped[str] = mapped_column(String(32), nullable=False)
    total_pnl: Mapped[int] = mapped_column(BigInteger, nullable=False)
    # Written only by the distribution engine
    divine_algo_share: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class UserPnLORM(Base):
    __tablename__ = "user_pnl"

    pnl_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("pnl.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("users.id"), primary_key=True
    )
    customer_share: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    platform_share: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    agent_earnings: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    divine_algo_retained: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="PENDING")
    reason: Mapped[str | None] = mapped_column(String(200), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
