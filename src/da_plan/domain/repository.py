"""Repository Protocol — dependency inversion for testability.

Unit tests inject a mock that conforms to this Protocol.
Infrastructure layer provides the real implementation.
"""

from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.da_plan.domain.models import Plan


class PlanRepositoryProtocol(Protocol):
    async def get_active_plan_for_user(
        self, db: AsyncSession, user_id: str
    ) -> Plan | None: ...

    async def get_active_plans_for_users(
        self, db: AsyncSession, user_ids: list[str]
    ) -> dict[str, Plan]: ...

    async def get_by_id(self, db: AsyncSession, plan_id: str) -> Plan | None: ...

    async def list_plans(self, db: AsyncSession) -> list[Plan]: ...

    async def create(self, db: AsyncSession, fields: dict[str, Any]) -> Plan: ...

    async def update(
        self, db: AsyncSession, plan_id: str, fields: dict[str, Any]
    ) -> Plan | None: ...

    async def delete(self, db: AsyncSession, plan_id: str) -> bool: ...

    async def has_subscribers(self, db: AsyncSession, plan_id: str) -> bool: ...

    async def subscribe_user(
        self, db: AsyncSession, user_id: str, plan_id: str
    ) -> None: ...
