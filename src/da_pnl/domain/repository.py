"""Repository Protocol — dependency inversion for testability.

Unit tests inject an in-memory fake that conforms to this Protocol.
Infrastructure layer provides the real implementation.
"""

from datetime import date
from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.da_common.enums import UserPnLStatus
from src.da_pnl.domain.models import CustomerPnLSummary, PnL, UserPnL, UserShare


class PnLRepositoryProtocol(Protocol):
    async def create_with_links(
        self,
        db: AsyncSession,
        pnl_date: date,
        symbol: str,
        total_pnl: int,
        shares: dict[str, UserShare],
    ) -> PnL:
        """Insert the PnL row and one PENDING user link per entry in shares."""
        ...

    async def get_by_id(self, db: AsyncSession, pnl_id: str) -> PnL | None: ...

    async def get_user_links(self, db: AsyncSession, pnl_id: str) -> list[UserPnL]: ...

    async def claim_link(self, db: AsyncSession, pnl_id: str, user_id: str) -> bool:
        """Lock the link for this unit of work if it still needs settlement.

        Blocks while another unit holds the link; False once that unit has
        settled or skipped it, or when the link no longer exists.
        """
        ...

    async def mark_user_outcome(
        self,
        db: AsyncSession,
        pnl_id: str,
        user_id: str,
        status: UserPnLStatus,
        share: UserShare,
        reason: str | None,
    ) -> None: ...

    async def settled_retained_sum(self, db: AsyncSession, pnl_id: str) -> int: ...

    async def set_divine_algo_share(
        self, db: AsyncSession, pnl_id: str, amount: int
    ) -> PnL | None: ...

    async def list_pnl(
        self,
        db: AsyncSession,
        user_id: str | None = None,
        symbol: str | None = None,
        pnl_date: date | None = None,
    ) -> list[PnL]: ...

    async def update(
        self, db: AsyncSession, pnl_id: str, fields: dict[str, Any]
    ) -> PnL | None: ...

    async def replace_links(
        self, db: AsyncSession, pnl_id: str, shares: dict[str, UserShare]
    ) -> None:
        """Re-split the unsettled links of pnl_id to shares.

        Kept unsettled links get the new shares but keep their status; added
        links start PENDING; unsettled links for users no longer listed are
        removed. SETTLED links are left exactly as they are.
        """
        ...

    async def delete(self, db: AsyncSession, pnl_id: str) -> bool: ...

    async def platform_total(self, db: AsyncSession) -> int: ...

    async def customer_summary(self, db: AsyncSession, user_id: str) -> CustomerPnLSummary: ...
