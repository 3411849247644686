"""ReferralRepository — concrete implementation of ReferralRepositoryProtocol.

agent_total_earnings only moves through a single atomic
`UPDATE ... SET agent_total_earnings = agent_total_earnings + :amount`.

Transaction ownership: the CALLER commits.
"""

from sqlalchemy import bindparam, text
from sqlalchemy.ext.asyncio import AsyncSession

from src.da_common.errors import ReferralNotFoundError, ValidationError
from src.da_referral.domain.models import Referral

_COLUMNS = (
    "id, agent_id, customer_id, is_active, is_manual_assignment, "
    "agent_total_earnings, created_at, updated_at"
)

_FIND_FOR_CUSTOMER_SQL = text(f"""
    SELECT {_COLUMNS} FROM referrals WHERE customer_id::text = :customer_id
""")

_FIND_FOR_CUSTOMERS_SQL = text(f"""
    SELECT {_COLUMNS} FROM referrals WHERE customer_id::text IN :customer_ids
""").bindparams(bindparam("customer_ids", expanding=True))

_GET_SQL = text(f"SELECT {_COLUMNS} FROM referrals WHERE id::text = :referral_id")

_INCREMENT_EARNINGS_SQL = text(f"""
    UPDATE referrals
    SET agent_total_earnings = agent_total_earnings + :amount,
        updated_at = NOW()
    WHERE id::text = :referral_id
    RETURNING {_COLUMNS}
""")

_CREATE_SQL = text(f"""
    INSERT INTO referrals (agent_id, customer_id, is_manual_assignment)
    VALUES (CAST(:agent_id AS UUID), CAST(:customer_id AS UUID), :is_manual_assignment)
    ON CONFLICT (customer_id) DO NOTHING
    RETURNING {_COLUMNS}
""")

_SET_ACTIVE_SQL = text(f"""
    UPDATE referrals
    SET is_active = :is_active,
        updated_at = NOW()
    WHERE id::text = :referral_id
    RETURNING {_COLUMNS}
""")

_LIST_SQL = text(f"SELECT {_COLUMNS} FROM referrals ORDER BY created_at DESC")

_LIST_BY_AGENT_SQL = text(f"""
    SELECT {_COLUMNS} FROM referrals
    WHERE agent_id::text = :agent_id
    ORDER BY created_at DESC
""")

_AGENT_EARNINGS_SQL = text("""
    SELECT COALESCE(SUM(agent_total_earnings), 0)
    FROM referrals
    WHERE agent_id::text = :agent_id
""")


def _row_to_referral(row: object) -> Referral:
    return Referral(
        id=str(row.id),  # type: ignore[attr-defined]
        agent_id=str(row.agent_id),  # type: ignore[attr-defined]
        customer_id=str(row.customer_id),  # type: ignore[attr-defined]
        is_active=row.is_active,  # type: ignore[attr-defined]
        is_manual_assignment=row.is_manual_assignment,  # type: ignore[attr-defined]
        agent_total_earnings=row.agent_total_earnings,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


class ReferralRepository:
    async def find_for_customer(
        self, db: AsyncSession, customer_id: str
    ) -> Referral | None:
        result = await db.execute(_FIND_FOR_CUSTOMER_SQL, {"customer_id": customer_id})
        row = result.fetchone()
        return _row_to_referral(row) if row else None

    async def find_for_customers(
        self, db: AsyncSession, customer_ids: list[str]
    ) -> dict[str, Referral]:
        if not customer_ids:
            return {}
        result = await db.execute(
            _FIND_FOR_CUSTOMERS_SQL, {"customer_ids": list(customer_ids)}
        )
        referrals = (_row_to_referral(row) for row in result.fetchall())
        return {r.customer_id: r for r in referrals}

    async def get_by_id(self, db: AsyncSession, referral_id: str) -> Referral | None:
        result = await db.execute(_GET_SQL, {"referral_id": referral_id})
        row = result.fetchone()
        return _row_to_referral(row) if row else None

    async def increment_agent_earnings(
        self, db: AsyncSession, referral_id: str, amount: int
    ) -> Referral:
        if amount < 0:
            raise ValidationError(f"agent earnings increment must be >= 0, got {amount}")
        result = await db.execute(
            _INCREMENT_EARNINGS_SQL, {"referral_id": referral_id, "amount": amount}
        )
        row = result.fetchone()
        if row is None:
            raise ReferralNotFoundError(referral_id)
        return _row_to_referral(row)

    async def create(
        self,
        db: AsyncSession,
        agent_id: str,
        customer_id: str,
        is_manual_assignment: bool,
    ) -> Referral | None:
        result = await db.execute(
            _CREATE_SQL,
            {
                "agent_id": agent_id,
                "customer_id": customer_id,
                "is_manual_assignment": is_manual_assignment,
            },
        )
        row = result.fetchone()
        return _row_to_referral(row) if row else None

    async def set_active(
        self, db: AsyncSession, referral_id: str, is_active: bool
    ) -> Referral | None:
        result = await db.execute(
            _SET_ACTIVE_SQL, {"referral_id": referral_id, "is_active": is_active}
        )
        row = result.fetchone()
        return _row_to_referral(row) if row else None

    async def list_referrals(self, db: AsyncSession) -> list[Referral]:
        result = await db.execute(_LIST_SQL)
        return [_row_to_referral(row) for row in result.fetchall()]

    async def list_by_agent(self, db: AsyncSession, agent_id: str) -> list[Referral]:
        result = await db.execute(_LIST_BY_AGENT_SQL, {"agent_id": agent_id})
        return [_row_to_referral(row) for row in result.fetchall()]

    async def agent_total_earnings(self, db: AsyncSession, agent_id: str) -> int:
        result = await db.execute(_AGENT_EARNINGS_SQL, {"agent_id": agent_id})
        return int(result.scalar_one())
