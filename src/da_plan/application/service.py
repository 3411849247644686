"""PlanApplicationService — plan CRUD and subscriptions.

Writes commit/rollback explicitly; reads run without an explicit transaction.
"""

import logging
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from src.da_common.errors import PlanInUseError, PlanNotFoundError, UserNotFoundError
from src.da_plan.application.schemas import PlanCreateRequest, PlanResponse, PlanUpdateRequest
from src.da_plan.domain.models import validate_share
from src.da_plan.domain.repository import PlanRepositoryProtocol
from src.da_plan.infrastructure.persistence import PlanRepository
from src.da_user.domain.repository import UserRepositoryProtocol
from src.da_user.infrastructure.persistence import UserRepository

logger = logging.getLogger(__name__)


class PlanApplicationService:
    def __init__(
        self,
        repo: PlanRepositoryProtocol | None = None,
        user_repo: UserRepositoryProtocol | None = None,
    ) -> None:
        self._repo: PlanRepositoryProtocol = repo or PlanRepository()
        self._users: UserRepositoryProtocol = user_repo or UserRepository()

    async def list_plans(self, db: AsyncSession) -> list[PlanResponse]:
        return [PlanResponse.from_domain(p) for p in await self._repo.list_plans(db)]

    async def get_plan(self, db: AsyncSession, plan_id: str) -> PlanResponse:
        plan = await self._repo.get_by_id(db, plan_id)
        if plan is None:
            raise PlanNotFoundError(plan_id)
        return PlanResponse.from_domain(plan)

    async def create_plan(self, db: AsyncSession, body: PlanCreateRequest) -> PlanResponse:
        validate_share("profit_sharing_customer", body.profit_sharing_customer)
        validate_share("profit_sharing_platform", body.profit_sharing_platform)
        _warn_if_not_complementary(body.profit_sharing_customer, body.profit_sharing_platform)
        try:
            plan = await self._repo.create(db, body.to_fields())
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Plan created: id=%s name=%s", plan.id, plan.name)
        return PlanResponse.from_domain(plan)

    async def update_plan(
        self, db: AsyncSession, plan_id: str, body: PlanUpdateRequest
    ) -> PlanResponse:
        fields = body.to_fields()
        for key in ("profit_sharing_customer", "profit_sharing_platform"):
            if fields.get(key) is not None:
                validate_share(key, fields[key])  # type: ignore[arg-type]
        try:
            plan = await self._repo.update(db, plan_id, fields)
            if plan is None:
                raise PlanNotFoundError(plan_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        _warn_if_not_complementary(plan.profit_sharing_customer, plan.profit_sharing_platform)
        return PlanResponse.from_domain(plan)

    async def delete_plan(self, db: AsyncSession, plan_id: str) -> None:
        try:
            if await self._repo.has_subscribers(db, plan_id):
                raise PlanInUseError(plan_id)
            if not await self._repo.delete(db, plan_id):
                raise PlanNotFoundError(plan_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Plan deleted: id=%s", plan_id)

    async def subscribe_user(
        self, db: AsyncSession, plan_id: str, user_id: str
    ) -> PlanResponse:
        """Make plan_id the user's single active plan, replacing any previous one."""
        plan = await self._repo.get_by_id(db, plan_id)
        if plan is None:
            raise PlanNotFoundError(plan_id)
        if await self._users.get_by_id(db, user_id) is None:
            raise UserNotFoundError(user_id)
        try:
            await self._repo.subscribe_user(db, user_id, plan_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("User %s subscribed to plan %s", user_id, plan_id)
        return PlanResponse.from_domain(plan)


def _warn_if_not_complementary(customer: Decimal, platform: Decimal) -> None:
    # Not enforced: distributions still use both percentages as given
    if customer + platform != 100:
        logger.warning(
            "Plan shares do not sum to 100: customer=%s platform=%s", customer, platform
        )
