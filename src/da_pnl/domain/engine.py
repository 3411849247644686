"""DistributionEngine — fans a PnL figure out across its users and settles it.

Distribute runs in three stages:

1. Snapshot + create (one unit of work): resolve every user, read each
   user's active plan and referral, compute every split, then insert the
   PnL row with one PENDING link per user. Any unknown user or invalid plan
   share aborts here, before anything is written.
2. Fan-out: one task per user, each in its own unit of work. A task posts
   the platform share against the user's wallet, credits the agent's
   override, and marks the link SETTLED, all or nothing. Tasks never raise;
   each returns a UserOutcome.
3. Barrier, then aggregate: divine_algo_share = Σ retained over SETTLED
   links, written to the PnL row, followed by a DistributionCompleted event.

Each per-user unit first claims its link, a row lock that only succeeds
while the link is PENDING or FAILED, so overlapping redistribute() calls
settle a link once. Money postings also carry dedup keys (PNL_PLATFORM /
PNL_AGENT + pnl:user), and a link only becomes SETTLED in the same unit
that moved its money. SETTLED links are never re-split: restate() only
rewrites links that have not moved money yet.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from src.da_common.enums import (
    TransactionReferenceType,
    TransactionStatus,
    TransactionType,
    UserPnLStatus,
)
from src.da_common.errors import (
    AppError,
    ConsistencyError,
    NotFoundError,
    PnLNotFoundError,
    StoreUnavailableError,
    UserNotFoundError,
    ValidationError,
)
from src.da_common.events import DistributionCompleted, EventPublisherProtocol
from src.da_common.unit_of_work import UnitOfWorkFactory, unit_of_work
from src.da_ledger.domain.service import LedgerStore
from src.da_plan.domain.models import Plan
from src.da_plan.domain.repository import PlanRepositoryProtocol
from src.da_pnl.domain.models import (
    ZERO_SHARE,
    DistributionResult,
    PnL,
    UserOutcome,
    UserShare,
)
from src.da_pnl.domain.repository import PnLRepositoryProtocol
from src.da_pnl.domain.shares import compute_user_share
from src.da_referral.domain.models import Referral
from src.da_referral.domain.repository import ReferralRepositoryProtocol
from src.da_user.domain.repository import UserRepositoryProtocol

logger = logging.getLogger(__name__)

REASON_NO_PLAN = "NO_PLAN"
REASON_WALLET_NOT_FOUND = "WALLET_NOT_FOUND"
REASON_ALREADY_HANDLED = "ALREADY_HANDLED"
REASON_LINK_REMOVED = "LINK_REMOVED"
WARNING_AGENT_WALLET_NOT_FOUND = "AGENT_WALLET_NOT_FOUND"


@dataclass
class _UserContext:
    user_id: str
    plan: Plan | None
    referral: Referral | None
    share: UserShare


def dedup_reference(pnl_id: str, user_id: str) -> str:
    return f"{pnl_id}:{user_id}"


class DistributionEngine:
    def __init__(
        self,
        users: UserRepositoryProtocol,
        plans: PlanRepositoryProtocol,
        referrals: ReferralRepositoryProtocol,
        ledger: LedgerStore,
        pnl_repo: PnLRepositoryProtocol,
        publisher: EventPublisherProtocol,
        uow_factory: UnitOfWorkFactory = unit_of_work,
    ) -> None:
        self._users = users
        self._plans = plans
        self._referrals = referrals
        self._ledger = ledger
        self._pnl = pnl_repo
        self._publisher = publisher
        self._uow = uow_factory

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def distribute(
        self, pnl_date: date, symbol: str, total_pnl: int, user_ids: list[str]
    ) -> DistributionResult:
        symbol = symbol.strip()
        if not symbol:
            raise ValidationError("symbol must not be empty")
        ids = _unique(user_ids)
        if not ids:
            raise ValidationError("user_ids must not be empty")

        async with self._uow() as db:
            await self._require_users(db, ids)
            contexts = await self._snapshot(db, total_pnl, ids)
            pnl = await self._pnl.create_with_links(
                db, pnl_date, symbol, total_pnl, {c.user_id: c.share for c in contexts}
            )
        logger.info(
            "PnL %s created: symbol=%s date=%s total=%d users=%d",
            pnl.id,
            symbol,
            pnl_date,
            total_pnl,
            len(ids),
        )
        return await self._settle(pnl, contexts)

    async def redistribute(self, pnl_id: str) -> DistributionResult:
        """Retry every PENDING or FAILED link of pnl_id against current plans."""
        async with self._uow() as db:
            pnl = await self._pnl.get_by_id(db, pnl_id)
            if pnl is None:
                raise PnLNotFoundError(pnl_id)
            links = await self._pnl.get_user_links(db, pnl_id)
            retry_ids = [link.user_id for link in links if link.needs_settlement]
            contexts = await self._snapshot(db, pnl.total_pnl, retry_ids)
        logger.info("Redistributing PnL %s: %d of %d users", pnl_id, len(retry_ids), len(links))
        return await self._settle(pnl, contexts)

    async def restate(self, pnl_id: str, fields: dict[str, Any]) -> PnL:
        """Edit a PnL record without moving money.

        A change to total_pnl or user_ids re-splits every unsettled link;
        added users start PENDING and are settled by a later redistribute().
        SETTLED links keep the split whose money they posted, even when
        their user is no longer listed, so divine_algo_share stays the sum
        of what was actually withdrawn.
        """
        async with self._uow() as db:
            pnl = await self._pnl.update(db, pnl_id, fields)
            if pnl is None:
                raise PnLNotFoundError(pnl_id)
            if "total_pnl" not in fields and fields.get("user_ids") is None:
                return pnl

            ids = _unique(fields.get("user_ids") or pnl.user_ids)
            if not ids:
                raise ValidationError("user_ids must not be empty")
            await self._require_users(db, ids)
            links = await self._pnl.get_user_links(db, pnl_id)
            settled = {link.user_id for link in links if link.status == UserPnLStatus.SETTLED}
            contexts = await self._snapshot(
                db, pnl.total_pnl, [uid for uid in ids if uid not in settled]
            )
            await self._pnl.replace_links(db, pnl_id, {c.user_id: c.share for c in contexts})
            total = await self._pnl.settled_retained_sum(db, pnl_id)
            restated = await self._pnl.set_divine_algo_share(db, pnl_id, total)
            if restated is None:
                raise PnLNotFoundError(pnl_id)
        if settled:
            logger.warning(
                "PnL %s restated with %d settled links kept at their posted split",
                pnl_id,
                len(settled),
            )
        logger.info(
            "PnL %s restated: total=%d divine_algo_share=%d", pnl_id, restated.total_pnl, total
        )
        return restated

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    async def _require_users(self, db: AsyncSession, ids: list[str]) -> None:
        found = await self._users.get_many(db, ids)
        for user_id in ids:
            if user_id not in found:
                raise UserNotFoundError(user_id)

    async def _snapshot(
        self, db: AsyncSession, total_pnl: int, ids: list[str]
    ) -> list[_UserContext]:
        if not ids:
            return []
        plans = await self._plans.get_active_plans_for_users(db, ids)
        referrals = await self._referrals.find_for_customers(db, ids)
        contexts = []
        for user_id in ids:
            plan = plans.get(user_id)
            referral = referrals.get(user_id)
            # Raises InvalidShareError before anything is written
            share = compute_user_share(total_pnl, plan, referral)
            contexts.append(_UserContext(user_id, plan, referral, share))
        return contexts

    # ------------------------------------------------------------------
    # Fan-out / fan-in
    # ------------------------------------------------------------------

    async def _settle(self, pnl: PnL, contexts: list[_UserContext]) -> DistributionResult:
        results = await asyncio.gather(
            *(self._settle_user(pnl, ctx) for ctx in contexts), return_exceptions=True
        )
        outcomes: list[UserOutcome] = []
        for ctx, raw in zip(contexts, results):
            if isinstance(raw, BaseException):
                if not isinstance(raw, Exception):
                    raise raw
                logger.error(
                    "Unexpected failure settling user %s on PnL %s",
                    ctx.user_id,
                    pnl.id,
                    exc_info=raw,
                )
                raw = UserOutcome(
                    ctx.user_id, UserPnLStatus.FAILED, ctx.share, reason="INTERNAL_ERROR"
                )
            outcomes.append(raw)

        async with self._uow() as db:
            total = await self._pnl.settled_retained_sum(db, pnl.id)
            updated = await self._pnl.set_divine_algo_share(db, pnl.id, total)
            if updated is None:
                raise PnLNotFoundError(pnl.id)

        result = DistributionResult(pnl=updated, outcomes=outcomes)
        settled = result.user_ids_with(UserPnLStatus.SETTLED)
        skipped = result.user_ids_with(UserPnLStatus.SKIPPED)
        failed = result.user_ids_with(UserPnLStatus.FAILED)
        logger.info(
            "PnL %s settled: divine_algo_share=%d settled=%d skipped=%d failed=%d",
            updated.id,
            total,
            len(settled),
            len(skipped),
            len(failed),
        )
        await self._publisher.publish(
            DistributionCompleted(
                pnl_id=updated.id,
                symbol=updated.symbol,
                date=updated.date.isoformat(),
                total_pnl=updated.total_pnl,
                divine_algo_share=total,
                settled_user_ids=settled,
                skipped_user_ids=skipped,
                failed_user_ids=failed,
            )
        )
        return result

    async def _settle_user(self, pnl: PnL, ctx: _UserContext) -> UserOutcome:
        try:
            async with self._uow() as db:
                return await self._apply_user(db, pnl, ctx)
        except StoreUnavailableError as exc:
            logger.warning("Store unavailable settling user %s on PnL %s", ctx.user_id, pnl.id)
            await self._record_failure(pnl.id, ctx, exc.message)
            return UserOutcome(
                ctx.user_id, UserPnLStatus.FAILED, ctx.share, reason=exc.message, retryable=True
            )
        except (NotFoundError, ConsistencyError) as exc:
            logger.warning("User %s failed on PnL %s: %s", ctx.user_id, pnl.id, exc.message)
            await self._record_failure(pnl.id, ctx, exc.message)
            return UserOutcome(ctx.user_id, UserPnLStatus.FAILED, ctx.share, reason=exc.message)

    async def _apply_user(self, db: AsyncSession, pnl: PnL, ctx: _UserContext) -> UserOutcome:
        if not await self._pnl.claim_link(db, pnl.id, ctx.user_id):
            return await self._already_handled(db, pnl, ctx)
        if ctx.plan is None:
            return await self._skip(db, pnl, ctx, REASON_NO_PLAN)
        wallet = await self._ledger.get_active_wallet(db, ctx.user_id)
        if wallet is None:
            return await self._skip(db, pnl, ctx, REASON_WALLET_NOT_FOUND)

        reference_id = dedup_reference(pnl.id, ctx.user_id)
        platform_share = ctx.share.platform_share
        if platform_share:
            # A loss refunds the magnitude so the balance still moves by -platform_share
            await self._ledger.post_transaction(
                db,
                wallet.id,
                TransactionType.WITHDRAWAL if platform_share > 0 else TransactionType.DEPOSIT,
                abs(platform_share),
                TransactionStatus.SUCCESS,
                description=f"Platform share of {pnl.symbol} PnL {pnl.date.isoformat()}",
                reference_type=TransactionReferenceType.PNL_PLATFORM.value,
                reference_id=reference_id,
            )

        warnings: list[str] = []
        if ctx.share.agent_earnings > 0 and ctx.referral is not None:
            await self._referrals.increment_agent_earnings(
                db, ctx.referral.id, ctx.share.agent_earnings
            )
            agent_wallet = await self._ledger.get_active_wallet(db, ctx.referral.agent_id)
            if agent_wallet is None:
                logger.warning(
                    "Agent %s has no active wallet; override for user %s on PnL %s not deposited",
                    ctx.referral.agent_id,
                    ctx.user_id,
                    pnl.id,
                )
                warnings.append(WARNING_AGENT_WALLET_NOT_FOUND)
            else:
                await self._ledger.post_transaction(
                    db,
                    agent_wallet.id,
                    TransactionType.DEPOSIT,
                    ctx.share.agent_earnings,
                    TransactionStatus.SUCCESS,
                    description=f"Agent override on {pnl.symbol} PnL {pnl.date.isoformat()}",
                    reference_type=TransactionReferenceType.PNL_AGENT.value,
                    reference_id=reference_id,
                )

        await self._pnl.mark_user_outcome(
            db, pnl.id, ctx.user_id, UserPnLStatus.SETTLED, ctx.share, None
        )
        return UserOutcome(ctx.user_id, UserPnLStatus.SETTLED, ctx.share, warnings=warnings)

    async def _already_handled(
        self, db: AsyncSession, pnl: PnL, ctx: _UserContext
    ) -> UserOutcome:
        """Report a link another unit settled (or a restate removed) first."""
        links = await self._pnl.get_user_links(db, pnl.id)
        link = next((link for link in links if link.user_id == ctx.user_id), None)
        if link is None:
            logger.info("User %s no longer linked to PnL %s", ctx.user_id, pnl.id)
            return UserOutcome(
                ctx.user_id, UserPnLStatus.SKIPPED, ZERO_SHARE, reason=REASON_LINK_REMOVED
            )
        logger.info(
            "User %s on PnL %s already %s; nothing applied", ctx.user_id, pnl.id, link.status
        )
        share = UserShare(
            link.customer_share,
            link.platform_share,
            link.agent_earnings,
            link.divine_algo_retained,
        )
        return UserOutcome(
            ctx.user_id, UserPnLStatus(link.status), share, reason=REASON_ALREADY_HANDLED
        )

    async def _skip(
        self, db: AsyncSession, pnl: PnL, ctx: _UserContext, reason: str
    ) -> UserOutcome:
        logger.info("User %s skipped on PnL %s: %s", ctx.user_id, pnl.id, reason)
        await self._pnl.mark_user_outcome(
            db, pnl.id, ctx.user_id, UserPnLStatus.SKIPPED, ctx.share, reason
        )
        return UserOutcome(ctx.user_id, UserPnLStatus.SKIPPED, ctx.share, reason=reason)

    async def _record_failure(self, pnl_id: str, ctx: _UserContext, reason: str) -> None:
        # The failed unit rolled back; the FAILED mark goes in a fresh one
        try:
            async with self._uow() as db:
                await self._pnl.mark_user_outcome(
                    db, pnl_id, ctx.user_id, UserPnLStatus.FAILED, ctx.share, reason[:200]
                )
        except AppError:
            logger.warning(
                "Could not mark user %s FAILED on PnL %s; link stays PENDING",
                ctx.user_id,
                pnl_id,
                exc_info=True,
            )


def _unique(user_ids: list[str]) -> list[str]:
    return list(dict.fromkeys(uid for uid in user_ids if uid))
