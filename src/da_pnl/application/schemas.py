"""Pydantic schemas for da_pnl API."""

import datetime

from pydantic import BaseModel, Field

from src.da_common.cents import cents_to_display
from src.da_common.datetime_utils import iso_or_none
from src.da_pnl.domain.models import DistributionResult, PnL, UserOutcome, UserPnL


class PnLCreateRequest(BaseModel):
    date: datetime.date
    symbol: str = Field(..., min_length=1, max_length=32)
    total_pnl_cents: int = Field(..., description="Signed PnL in cents; negative is a loss")
    user_ids: list[str] = Field(..., min_length=1)


class PnLUpdateRequest(BaseModel):
    """Partial update — only fields present in the body are written."""

    date: datetime.date | None = None
    symbol: str | None = Field(None, min_length=1, max_length=32)
    total_pnl_cents: int | None = None
    user_ids: list[str] | None = Field(None, min_length=1)

    def to_fields(self) -> dict[str, object]:
        renames = {"total_pnl_cents": "total_pnl"}
        return {
            renames.get(key, key): value
            for key, value in self.model_dump(exclude_unset=True).items()
            if value is not None
        }


class PnLResponse(BaseModel):
    id: str
    date: str
    symbol: str
    total_pnl_cents: int
    total_pnl_display: str
    divine_algo_share_cents: int
    divine_algo_share_display: str
    user_ids: list[str]
    created_at: str | None
    updated_at: str | None

    @classmethod
    def from_domain(cls, pnl: PnL) -> "PnLResponse":
        return cls(
            id=pnl.id,
            date=pnl.date.isoformat(),
            symbol=pnl.symbol,
            total_pnl_cents=pnl.total_pnl,
            total_pnl_display=cents_to_display(pnl.total_pnl),
            divine_algo_share_cents=pnl.divine_algo_share,
            divine_algo_share_display=cents_to_display(pnl.divine_algo_share),
            user_ids=list(pnl.user_ids),
            created_at=iso_or_none(pnl.created_at),
            updated_at=iso_or_none(pnl.updated_at),
        )


class UserPnLResponse(BaseModel):
    user_id: str
    customer_share_cents: int
    platform_share_cents: int
    agent_earnings_cents: int
    divine_algo_retained_cents: int
    status: str
    reason: str | None

    @classmethod
    def from_domain(cls, link: UserPnL) -> "UserPnLResponse":
        return cls(
            user_id=link.user_id,
            customer_share_cents=link.customer_share,
            platform_share_cents=link.platform_share,
            agent_earnings_cents=link.agent_earnings,
            divine_algo_retained_cents=link.divine_algo_retained,
            status=link.status,
            reason=link.reason,
        )


class PnLDetailResponse(PnLResponse):
    users: list[UserPnLResponse]


class UserOutcomeResponse(BaseModel):
    user_id: str
    status: str
    customer_share_cents: int
    platform_share_cents: int
    agent_earnings_cents: int
    divine_algo_retained_cents: int
    reason: str | None
    retryable: bool
    warnings: list[str]

    @classmethod
    def from_domain(cls, outcome: UserOutcome) -> "UserOutcomeResponse":
        return cls(
            user_id=outcome.user_id,
            status=outcome.status.value,
            customer_share_cents=outcome.share.customer_share,
            platform_share_cents=outcome.share.platform_share,
            agent_earnings_cents=outcome.share.agent_earnings,
            divine_algo_retained_cents=outcome.share.divine_algo_retained,
            reason=outcome.reason,
            retryable=outcome.retryable,
            warnings=list(outcome.warnings),
        )


class DistributionResponse(BaseModel):
    pnl: PnLResponse
    divine_algo_share_cents: int
    diagnostics: list[UserOutcomeResponse]

    @classmethod
    def from_domain(cls, result: DistributionResult) -> "DistributionResponse":
        return cls(
            pnl=PnLResponse.from_domain(result.pnl),
            divine_algo_share_cents=result.divine_algo_share,
            diagnostics=[UserOutcomeResponse.from_domain(o) for o in result.outcomes],
        )


class PlatformTotalsResponse(BaseModel):
    divine_algo_share_cents: int
    divine_algo_share_display: str
    wallet_balance_cents: int
    wallet_balance_display: str


class CustomerSummaryResponse(BaseModel):
    user_id: str
    entries: int
    total_pnl_cents: int
    customer_share_cents: int
    customer_share_display: str
    wallet_balance_cents: int | None
