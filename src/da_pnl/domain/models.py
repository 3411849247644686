"""Domain models for da_pnl — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, field
from datetime import date, datetime

from src.da_common.enums import UserPnLStatus


@dataclass
class PnL:
    id: str
    date: date
    symbol: str
    total_pnl: int                        # cents, signed
    divine_algo_share: int = 0            # cents, Σ retained over SETTLED users
    user_ids: list[str] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class UserShare:
    """One user's split of a PnL figure, all in cents."""
    customer_share: int
    platform_share: int
    agent_earnings: int
    divine_algo_retained: int


ZERO_SHARE = UserShare(0, 0, 0, 0)


@dataclass
class UserPnL:
    pnl_id: str
    user_id: str
    customer_share: int = 0
    platform_share: int = 0
    agent_earnings: int = 0
    divine_algo_retained: int = 0
    status: str = UserPnLStatus.PENDING.value
    reason: str | None = None
    updated_at: datetime | None = None

    @property
    def needs_settlement(self) -> bool:
        return self.status in (UserPnLStatus.PENDING, UserPnLStatus.FAILED)


@dataclass
class UserOutcome:
    user_id: str
    status: UserPnLStatus
    share: UserShare = ZERO_SHARE
    reason: str | None = None
    retryable: bool = False
    warnings: list[str] = field(default_factory=list)


@dataclass
class DistributionResult:
    pnl: PnL
    outcomes: list[UserOutcome]

    @property
    def divine_algo_share(self) -> int:
        return self.pnl.divine_algo_share

    def user_ids_with(self, status: UserPnLStatus) -> list[str]:
        return [o.user_id for o in self.outcomes if o.status is status]


@dataclass
class CustomerPnLSummary:
    user_id: str
    entries: int
    total_pnl: int
    customer_share: int
