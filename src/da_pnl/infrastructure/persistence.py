"""PnLRepository — concrete implementation of PnLRepositoryProtocol.

Transaction ownership: the CALLER commits (request session or unit_of_work).
"""

from datetime import date
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.da_common.enums import UserPnLStatus
from src.da_common.errors import InternalError
from src.da_pnl.domain.models import CustomerPnLSummary, PnL, UserPnL, UserShare

_PNL_COLUMNS = """
    p.id, p.date, p.symbol, p.total_pnl, p.divine_algo_share, p.created_at, p.updated_at,
    ARRAY(
        SELECT up.user_id::text FROM user_pnl up
        WHERE up.pnl_id = p.id ORDER BY up.user_id
    ) AS user_ids
"""

_LINK_COLUMNS = (
    "pnl_id, user_id, customer_share, platform_share, agent_earnings, "
    "divine_algo_retained, status, reason, updated_at"
)

# Columns a caller may write through update
_WRITABLE = ("date", "symbol", "total_pnl")

_CREATE_PNL_SQL = text("""
    INSERT INTO pnl (date, symbol, total_pnl, divine_algo_share)
    VALUES (:date, :symbol, :total_pnl, 0)
    RETURNING id
""")

_INSERT_LINK_SQL = text("""
    INSERT INTO user_pnl
        (pnl_id, user_id, customer_share, platform_share, agent_earnings, divine_algo_retained)
    VALUES
        (CAST(:pnl_id AS UUID), CAST(:user_id AS UUID), :customer_share, :platform_share,
         :agent_earnings, :divine_algo_retained)
""")

_UPSERT_LINK_SQL = text("""
    INSERT INTO user_pnl
        (pnl_id, user_id, customer_share, platform_share, agent_earnings, divine_algo_retained)
    VALUES
        (CAST(:pnl_id AS UUID), CAST(:user_id AS UUID), :customer_share, :platform_share,
         :agent_earnings, :divine_algo_retained)
    ON CONFLICT (pnl_id, user_id) DO UPDATE
        SET customer_share = EXCLUDED.customer_share,
            platform_share = EXCLUDED.platform_share,
            agent_earnings = EXCLUDED.agent_earnings,
            divine_algo_retained = EXCLUDED.divine_algo_retained,
            updated_at = NOW()
        WHERE user_pnl.status <> 'SETTLED'
""")

_DELETE_OTHER_LINKS_SQL = text("""
    DELETE FROM user_pnl
    WHERE pnl_id::text = :pnl_id
      AND status <> 'SETTLED'
      AND NOT (user_id::text = ANY(:user_ids))
""")

# Row lock held until the unit of work ends; a waiting caller re-checks status
_CLAIM_LINK_SQL = text("""
    SELECT pnl_id FROM user_pnl
    WHERE pnl_id::text = :pnl_id AND user_id::text = :user_id
      AND status IN ('PENDING', 'FAILED')
    FOR UPDATE
""")

_GET_PNL_SQL = text(f"SELECT {_PNL_COLUMNS} FROM pnl p WHERE p.id::text = :pnl_id")

_GET_LINKS_SQL = text(f"""
    SELECT {_LINK_COLUMNS} FROM user_pnl
    WHERE pnl_id::text = :pnl_id
    ORDER BY user_id
""")

_MARK_OUTCOME_SQL = text("""
    UPDATE user_pnl
    SET status = :status,
        reason = :reason,
        customer_share = :customer_share,
        platform_share = :platform_share,
        agent_earnings = :agent_earnings,
        divine_algo_retained = :divine_algo_retained,
        updated_at = NOW()
    WHERE pnl_id::text = :pnl_id AND user_id::text = :user_id
      AND status IN ('PENDING', 'FAILED')
""")

_SETTLED_SUM_SQL = text("""
    SELECT COALESCE(SUM(divine_algo_retained), 0)
    FROM user_pnl
    WHERE pnl_id::text = :pnl_id AND status = 'SETTLED'
""")

_SET_SHARE_SQL = text("""
    UPDATE pnl
    SET divine_algo_share = :amount,
        updated_at = NOW()
    WHERE id::text = :pnl_id
    RETURNING id
""")

_LIST_PNL_SQL = text(f"""
    SELECT {_PNL_COLUMNS}
    FROM pnl p
    WHERE (CAST(:symbol AS VARCHAR) IS NULL OR p.symbol = :symbol)
      AND (CAST(:date AS DATE) IS NULL OR p.date = :date)
      AND (
          CAST(:user_id AS VARCHAR) IS NULL
          OR EXISTS (
              SELECT 1 FROM user_pnl up
              WHERE up.pnl_id = p.id AND up.user_id::text = :user_id
          )
      )
    ORDER BY p.date DESC, p.created_at DESC
""")

_DELETE_PNL_SQL = text("DELETE FROM pnl WHERE id::text = :pnl_id RETURNING id")

_PLATFORM_TOTAL_SQL = text("""
    SELECT COALESCE(SUM(divine_algo_share), 0) FROM pnl WHERE total_pnl > 0
""")

_CUSTOMER_SUMMARY_SQL = text("""
    SELECT COUNT(*) AS entries,
           COALESCE(SUM(p.total_pnl), 0) AS total_pnl,
           COALESCE(SUM(up.customer_share), 0) AS customer_share
    FROM user_pnl up
    JOIN pnl p ON p.id = up.pnl_id
    WHERE up.user_id::text = :user_id
""")


def _row_to_pnl(row: object) -> PnL:
    return PnL(
        id=str(row.id),  # type: ignore[attr-defined]
        date=row.date,  # type: ignore[attr-defined]
        symbol=row.symbol,  # type: ignore[attr-defined]
        total_pnl=row.total_pnl,  # type: ignore[attr-defined]
        divine_algo_share=row.divine_algo_share,  # type: ignore[attr-defined]
        user_ids=list(row.user_ids or []),  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


def _row_to_link(row: object) -> UserPnL:
    return UserPnL(
        pnl_id=str(row.pnl_id),  # type: ignore[attr-defined]
        user_id=str(row.user_id),  # type: ignore[attr-defined]
        customer_share=row.customer_share,  # type: ignore[attr-defined]
        platform_share=row.platform_share,  # type: ignore[attr-defined]
        agent_earnings=row.agent_earnings,  # type: ignore[attr-defined]
        divine_algo_retained=row.divine_algo_retained,  # type: ignore[attr-defined]
        status=row.status,  # type: ignore[attr-defined]
        reason=row.reason,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


def _link_params(pnl_id: str, user_id: str, share: UserShare) -> dict[str, Any]:
    return {
        "pnl_id": pnl_id,
        "user_id": user_id,
        "customer_share": share.customer_share,
        "platform_share": share.platform_share,
        "agent_earnings": share.agent_earnings,
        "divine_algo_retained": share.divine_algo_retained,
    }


class PnLRepository:
    async def create_with_links(
        self,
        db: AsyncSession,
        pnl_date: date,
        symbol: str,
        total_pnl: int,
        shares: dict[str, UserShare],
    ) -> PnL:
        result = await db.execute(
            _CREATE_PNL_SQL, {"date": pnl_date, "symbol": symbol, "total_pnl": total_pnl}
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("PnL insert returned no rows — this should never happen")
        pnl_id = str(row.id)
        if shares:
            await db.execute(
                _INSERT_LINK_SQL,
                [_link_params(pnl_id, uid, share) for uid, share in shares.items()],
            )
        pnl = await self.get_by_id(db, pnl_id)
        if pnl is None:
            raise InternalError(f"PnL {pnl_id} vanished inside its own transaction")
        return pnl

    async def get_by_id(self, db: AsyncSession, pnl_id: str) -> PnL | None:
        result = await db.execute(_GET_PNL_SQL, {"pnl_id": pnl_id})
        row = result.fetchone()
        return _row_to_pnl(row) if row else None

    async def get_user_links(self, db: AsyncSession, pnl_id: str) -> list[UserPnL]:
        result = await db.execute(_GET_LINKS_SQL, {"pnl_id": pnl_id})
        return [_row_to_link(row) for row in result.fetchall()]

    async def claim_link(self, db: AsyncSession, pnl_id: str, user_id: str) -> bool:
        result = await db.execute(_CLAIM_LINK_SQL, {"pnl_id": pnl_id, "user_id": user_id})
        return result.fetchone() is not None

    async def mark_user_outcome(
        self,
        db: AsyncSession,
        pnl_id: str,
        user_id: str,
        status: UserPnLStatus,
        share: UserShare,
        reason: str | None,
    ) -> None:
        params = _link_params(pnl_id, user_id, share)
        params.update(status=status.value, reason=reason)
        await db.execute(_MARK_OUTCOME_SQL, params)

    async def settled_retained_sum(self, db: AsyncSession, pnl_id: str) -> int:
        result = await db.execute(_SETTLED_SUM_SQL, {"pnl_id": pnl_id})
        return int(result.scalar_one())

    async def set_divine_algo_share(
        self, db: AsyncSession, pnl_id: str, amount: int
    ) -> PnL | None:
        result = await db.execute(_SET_SHARE_SQL, {"pnl_id": pnl_id, "amount": amount})
        if result.fetchone() is None:
            return None
        return await self.get_by_id(db, pnl_id)

    async def list_pnl(
        self,
        db: AsyncSession,
        user_id: str | None = None,
        symbol: str | None = None,
        pnl_date: date | None = None,
    ) -> list[PnL]:
        result = await db.execute(
            _LIST_PNL_SQL, {"user_id": user_id, "symbol": symbol, "date": pnl_date}
        )
        return [_row_to_pnl(row) for row in result.fetchall()]

    async def update(
        self, db: AsyncSession, pnl_id: str, fields: dict[str, Any]
    ) -> PnL | None:
        writable = {k: v for k, v in fields.items() if k in _WRITABLE}
        if writable:
            assignments = ", ".join(f"{col} = :{col}" for col in writable)
            sql = text(f"""
                UPDATE pnl SET {assignments}, updated_at = NOW()
                WHERE id::text = :pnl_id
                RETURNING id
            """)
            result = await db.execute(sql, {**writable, "pnl_id": pnl_id})
            if result.fetchone() is None:
                return None
        return await self.get_by_id(db, pnl_id)

    async def replace_links(
        self, db: AsyncSession, pnl_id: str, shares: dict[str, UserShare]
    ) -> None:
        await db.execute(
            _DELETE_OTHER_LINKS_SQL, {"pnl_id": pnl_id, "user_ids": list(shares)}
        )
        if shares:
            await db.execute(
                _UPSERT_LINK_SQL,
                [_link_params(pnl_id, uid, share) for uid, share in shares.items()],
            )

    async def delete(self, db: AsyncSession, pnl_id: str) -> bool:
        result = await db.execute(_DELETE_PNL_SQL, {"pnl_id": pnl_id})
        return result.fetchone() is not None

    async def platform_total(self, db: AsyncSession) -> int:
        result = await db.execute(_PLATFORM_TOTAL_SQL)
        return int(result.scalar_one())

    async def customer_summary(self, db: AsyncSession, user_id: str) -> CustomerPnLSummary:
        result = await db.execute(_CUSTOMER_SUMMARY_SQL, {"user_id": user_id})
        row = result.fetchone()
        return CustomerPnLSummary(
            user_id=user_id,
            entries=int(row.entries),  # type: ignore[union-attr]
            total_pnl=int(row.total_pnl),  # type: ignore[union-attr]
            customer_share=int(row.customer_share),  # type: ignore[union-attr]
        )
