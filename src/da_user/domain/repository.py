"""User lookup Protocol — users are created by registration elsewhere; read-only here."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.da_user.domain.models import User


class UserRepositoryProtocol(Protocol):
    async def get_by_id(self, db: AsyncSession, user_id: str) -> User | None: ...

    async def get_many(self, db: AsyncSession, user_ids: list[str]) -> dict[str, User]: ...
