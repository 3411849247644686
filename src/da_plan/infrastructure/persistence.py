"""PlanRepository — concrete implementation of PlanRepositoryProtocol.

Transaction ownership: the CALLER commits. Read paths run without an explicit
transaction.
"""

from typing import Any

from sqlalchemy import bindparam, text
from sqlalchemy.ext.asyncio import AsyncSession

from src.da_common.errors import InternalError
from src.da_plan.domain.models import Plan

_PLAN_COLUMNS = """
    p.id, p.name, p.min_deposit, p.max_deposit, p.max_accounts,
    p.profit_sharing_customer, p.profit_sharing_platform, p.upfront_fee,
    p.visibility, p.confirmation_text, p.created_at, p.updated_at
"""

# Columns a caller may write through create/update
_WRITABLE = (
    "name",
    "min_deposit",
    "max_deposit",
    "max_accounts",
    "profit_sharing_customer",
    "profit_sharing_platform",
    "upfront_fee",
    "visibility",
    "confirmation_text",
)

_ACTIVE_PLAN_SQL = text(f"""
    SELECT {_PLAN_COLUMNS}
    FROM user_plans up
    JOIN plans p ON p.id = up.plan_id
    WHERE up.user_id::text = :user_id
""")

_ACTIVE_PLANS_SQL = text(f"""
    SELECT up.user_id AS subscriber_id, {_PLAN_COLUMNS}
    FROM user_plans up
    JOIN plans p ON p.id = up.plan_id
    WHERE up.user_id::text IN :user_ids
""").bindparams(bindparam("user_ids", expanding=True))

_GET_PLAN_SQL = text(f"SELECT {_PLAN_COLUMNS} FROM plans p WHERE p.id::text = :plan_id")

_LIST_PLANS_SQL = text(f"SELECT {_PLAN_COLUMNS} FROM plans p ORDER BY p.created_at DESC")

_DELETE_PLAN_SQL = text("DELETE FROM plans WHERE id::text = :plan_id RETURNING id")

_HAS_SUBSCRIBERS_SQL = text(
    "SELECT 1 FROM user_plans WHERE plan_id::text = :plan_id LIMIT 1"
)

_SUBSCRIBE_SQL = text("""
    INSERT INTO user_plans (user_id, plan_id)
    VALUES (CAST(:user_id AS UUID), CAST(:plan_id AS UUID))
    ON CONFLICT (user_id) DO UPDATE
        SET plan_id = EXCLUDED.plan_id,
            subscribed_at = NOW()
""")


def _row_to_plan(row: object) -> Plan:
    return Plan(
        id=str(row.id),  # type: ignore[attr-defined]
        name=row.name,  # type: ignore[attr-defined]
        min_deposit=row.min_deposit,  # type: ignore[attr-defined]
        max_deposit=row.max_deposit,  # type: ignore[attr-defined]
        max_accounts=row.max_accounts,  # type: ignore[attr-defined]
        profit_sharing_customer=row.profit_sharing_customer,  # type: ignore[attr-defined]
        profit_sharing_platform=row.profit_sharing_platform,  # type: ignore[attr-defined]
        upfront_fee=row.upfront_fee,  # type: ignore[attr-defined]
        visibility=row.visibility,  # type: ignore[attr-defined]
        confirmation_text=row.confirmation_text,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


def _writable(fields: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in fields.items() if k in _WRITABLE}


class PlanRepository:
    async def get_active_plan_for_user(
        self, db: AsyncSession, user_id: str
    ) -> Plan | None:
        result = await db.execute(_ACTIVE_PLAN_SQL, {"user_id": user_id})
        row = result.fetchone()
        return _row_to_plan(row) if row else None

    async def get_active_plans_for_users(
        self, db: AsyncSession, user_ids: list[str]
    ) -> dict[str, Plan]:
        if not user_ids:
            return {}
        result = await db.execute(_ACTIVE_PLANS_SQL, {"user_ids": list(user_ids)})
        return {str(row.subscriber_id): _row_to_plan(row) for row in result.fetchall()}

    async def get_by_id(self, db: AsyncSession, plan_id: str) -> Plan | None:
        result = await db.execute(_GET_PLAN_SQL, {"plan_id": plan_id})
        row = result.fetchone()
        return _row_to_plan(row) if row else None

    async def list_plans(self, db: AsyncSession) -> list[Plan]:
        result = await db.execute(_LIST_PLANS_SQL)
        return [_row_to_plan(row) for row in result.fetchall()]

    async def create(self, db: AsyncSession, fields: dict[str, Any]) -> Plan:
        values = _writable(fields)
        columns = ", ".join(values)
        params = ", ".join(f":{k}" for k in values)
        result = await db.execute(
            text(f"""
                INSERT INTO plans AS p ({columns})
                VALUES ({params})
                RETURNING {_PLAN_COLUMNS}
            """),
            values,
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Plan insert returned no rows")
        return _row_to_plan(row)

    async def update(
        self, db: AsyncSession, plan_id: str, fields: dict[str, Any]
    ) -> Plan | None:
        values = _writable(fields)
        if not values:
            return await self.get_by_id(db, plan_id)
        assignments = ", ".join(f"{k} = :{k}" for k in values)
        result = await db.execute(
            text(f"""
                UPDATE plans AS p
                SET {assignments}, updated_at = NOW()
                WHERE p.id::text = :plan_id
                RETURNING {_PLAN_COLUMNS}
            """),
            {**values, "plan_id": plan_id},
        )
        row = result.fetchone()
        return _row_to_plan(row) if row else None

    async def delete(self, db: AsyncSession, plan_id: str) -> bool:
        result = await db.execute(_DELETE_PLAN_SQL, {"plan_id": plan_id})
        return result.fetchone() is not None

    async def has_subscribers(self, db: AsyncSession, plan_id: str) -> bool:
        result = await db.execute(_HAS_SUBSCRIBERS_SQL, {"plan_id": plan_id})
        return result.fetchone() is not None

    async def subscribe_user(
        self, db: AsyncSession, user_id: str, plan_id: str
    ) -> None:
        await db.execute(_SUBSCRIBE_SQL, {"user_id": user_id, "plan_id": plan_id})
