"""ReferralApplicationService — agent/customer referral management."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.da_common.cents import cents_to_display
from src.da_common.errors import (
    CustomerAlreadyReferredError,
    ReferralNotFoundError,
    UserNotFoundError,
    ValidationError,
)
from src.da_referral.application.schemas import (
    AgentEarningsResponse,
    ReferralCreateRequest,
    ReferralResponse,
)
from src.da_referral.domain.repository import ReferralRepositoryProtocol
from src.da_referral.infrastructure.persistence import ReferralRepository
from src.da_user.domain.repository import UserRepositoryProtocol
from src.da_user.infrastructure.persistence import UserRepository

logger = logging.getLogger(__name__)


class ReferralApplicationService:
    def __init__(
        self,
        repo: ReferralRepositoryProtocol | None = None,
        user_repo: UserRepositoryProtocol | None = None,
    ) -> None:
        self._repo: ReferralRepositoryProtocol = repo or ReferralRepository()
        self._users: UserRepositoryProtocol = user_repo or UserRepository()

    async def list_referrals(self, db: AsyncSession) -> list[ReferralResponse]:
        return [ReferralResponse.from_domain(r) for r in await self._repo.list_referrals(db)]

    async def list_by_agent(self, db: AsyncSession, agent_id: str) -> list[ReferralResponse]:
        return [
            ReferralResponse.from_domain(r) for r in await self._repo.list_by_agent(db, agent_id)
        ]

    async def agent_earnings(self, db: AsyncSession, agent_id: str) -> AgentEarningsResponse:
        if await self._users.get_by_id(db, agent_id) is None:
            raise UserNotFoundError(agent_id)
        total = await self._repo.agent_total_earnings(db, agent_id)
        referrals = await self._repo.list_by_agent(db, agent_id)
        return AgentEarningsResponse(
            agent_id=agent_id,
            total_earnings_cents=total,
            total_earnings_display=cents_to_display(total),
            referral_count=len(referrals),
        )

    async def create_referral(
        self, db: AsyncSession, body: ReferralCreateRequest
    ) -> ReferralResponse:
        if body.agent_id == body.customer_id:
            raise ValidationError("an agent cannot refer themselves")
        users = await self._users.get_many(db, [body.agent_id, body.customer_id])
        for user_id in (body.agent_id, body.customer_id):
            if user_id not in users:
                raise UserNotFoundError(user_id)
        try:
            referral = await self._repo.create(
                db, body.agent_id, body.customer_id, body.is_manual_assignment
            )
            if referral is None:
                raise CustomerAlreadyReferredError(body.customer_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Referral created: id=%s agent=%s customer=%s manual=%s",
            referral.id,
            referral.agent_id,
            referral.customer_id,
            referral.is_manual_assignment,
        )
        return ReferralResponse.from_domain(referral)

    async def set_active(
        self, db: AsyncSession, referral_id: str, is_active: bool
    ) -> ReferralResponse:
        try:
            referral = await self._repo.set_active(db, referral_id, is_active)
            if referral is None:
                raise ReferralNotFoundError(referral_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Referral %s active=%s", referral_id, is_active)
        return ReferralResponse.from_domain(referral)
