"""PnLApplicationService — PnL ingestion, record queries and dashboard totals.

Distribution, redistribution and restatement run through DistributionEngine,
which opens its own units of work. Plain reads and deletes use the request
session.
"""

import logging
from datetime import date

from sqlalchemy.ext.asyncio import AsyncSession

from src.da_common.cents import cents_to_display
from src.da_common.errors import PnLNotFoundError
from src.da_common.realtime import RedisEventPublisher
from src.da_ledger.domain.repository import LedgerRepositoryProtocol
from src.da_ledger.domain.service import LedgerStore
from src.da_ledger.infrastructure.persistence import LedgerRepository
from src.da_plan.infrastructure.persistence import PlanRepository
from src.da_pnl.application.schemas import (
    CustomerSummaryResponse,
    DistributionResponse,
    PlatformTotalsResponse,
    PnLCreateRequest,
    PnLDetailResponse,
    PnLResponse,
    PnLUpdateRequest,
    UserPnLResponse,
)
from src.da_pnl.domain.engine import DistributionEngine
from src.da_pnl.domain.repository import PnLRepositoryProtocol
from src.da_pnl.infrastructure.persistence import PnLRepository
from src.da_referral.infrastructure.persistence import ReferralRepository
from src.da_user.infrastructure.persistence import UserRepository

logger = logging.getLogger(__name__)


class PnLApplicationService:
    def __init__(
        self,
        repo: PnLRepositoryProtocol | None = None,
        ledger_repo: LedgerRepositoryProtocol | None = None,
        engine: DistributionEngine | None = None,
    ) -> None:
        self._repo: PnLRepositoryProtocol = repo or PnLRepository()
        self._ledger_repo: LedgerRepositoryProtocol = ledger_repo or LedgerRepository()
        self._engine = engine or DistributionEngine(
            users=UserRepository(),
            plans=PlanRepository(),
            referrals=ReferralRepository(),
            ledger=LedgerStore(self._ledger_repo),
            pnl_repo=self._repo,
            publisher=RedisEventPublisher(),
        )

    async def distribute(self, body: PnLCreateRequest) -> DistributionResponse:
        result = await self._engine.distribute(
            body.date, body.symbol, body.total_pnl_cents, body.user_ids
        )
        return DistributionResponse.from_domain(result)

    async def redistribute(self, pnl_id: str) -> DistributionResponse:
        result = await self._engine.redistribute(pnl_id)
        return DistributionResponse.from_domain(result)

    async def update_pnl(self, pnl_id: str, body: PnLUpdateRequest) -> PnLResponse:
        pnl = await self._engine.restate(pnl_id, body.to_fields())
        return PnLResponse.from_domain(pnl)

    async def list_pnl(
        self,
        db: AsyncSession,
        user_id: str | None = None,
        symbol: str | None = None,
        pnl_date: date | None = None,
    ) -> list[PnLResponse]:
        rows = await self._repo.list_pnl(db, user_id=user_id, symbol=symbol, pnl_date=pnl_date)
        return [PnLResponse.from_domain(p) for p in rows]

    async def get_pnl(self, db: AsyncSession, pnl_id: str) -> PnLDetailResponse:
        pnl = await self._repo.get_by_id(db, pnl_id)
        if pnl is None:
            raise PnLNotFoundError(pnl_id)
        links = await self._repo.get_user_links(db, pnl_id)
        return PnLDetailResponse(
            **PnLResponse.from_domain(pnl).model_dump(),
            users=[UserPnLResponse.from_domain(link) for link in links],
        )

    async def delete_pnl(self, db: AsyncSession, pnl_id: str) -> None:
        """Remove the record and its links. Posted transactions stay in the ledger."""
        try:
            if not await self._repo.delete(db, pnl_id):
                raise PnLNotFoundError(pnl_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("PnL deleted: id=%s", pnl_id)

    async def platform_totals(self, db: AsyncSession) -> PlatformTotalsResponse:
        share = await self._repo.platform_total(db)
        balance = await self._ledger_repo.total_active_balance(db)
        return PlatformTotalsResponse(
            divine_algo_share_cents=share,
            divine_algo_share_display=cents_to_display(share),
            wallet_balance_cents=balance,
            wallet_balance_display=cents_to_display(balance),
        )

    async def customer_summary(self, db: AsyncSession, user_id: str) -> CustomerSummaryResponse:
        summary = await self._repo.customer_summary(db, user_id)
        wallet = await self._ledger_repo.get_active_wallet_for_user(db, user_id)
        return CustomerSummaryResponse(
            user_id=user_id,
            entries=summary.entries,
            total_pnl_cents=summary.total_pnl,
            customer_share_cents=summary.customer_share,
            customer_share_display=cents_to_display(summary.customer_share),
            wallet_balance_cents=wallet.balance if wallet else None,
        )
