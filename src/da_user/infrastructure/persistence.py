"""UserRepository — read-only lookups against the users table."""

from sqlalchemy import bindparam, text
from sqlalchemy.ext.asyncio import AsyncSession

from src.da_user.domain.models import User

_GET_USER_SQL = text("""
    SELECT id, unique_code, username, email, role, status, created_at
    FROM users
    WHERE id::text = :user_id
""")

_GET_USERS_SQL = text("""
    SELECT id, unique_code, username, email, role, status, created_at
    FROM users
    WHERE id::text IN :user_ids
""").bindparams(bindparam("user_ids", expanding=True))


def _row_to_user(row: object) -> User:
    return User(
        id=str(row.id),  # type: ignore[attr-defined]
        unique_code=row.unique_code,  # type: ignore[attr-defined]
        username=row.username,  # type: ignore[attr-defined]
        email=row.email,  # type: ignore[attr-defined]
        role=row.role,  # type: ignore[attr-defined]
        status=row.status,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


class UserRepository:
    async def get_by_id(self, db: AsyncSession, user_id: str) -> User | None:
        result = await db.execute(_GET_USER_SQL, {"user_id": user_id})
        row = result.fetchone()
        return _row_to_user(row) if row else None

    async def get_many(self, db: AsyncSession, user_ids: list[str]) -> dict[str, User]:
        """Return found users keyed by id; missing ids are simply absent."""
        if not user_ids:
            return {}
        result = await db.execute(_GET_USERS_SQL, {"user_ids": list(user_ids)})
        users = (_row_to_user(row) for row in result.fetchall())
        return {u.id: u for u in users}
