"""Repository Protocol — dependency inversion for testability.

Unit tests inject a mock that conforms to this Protocol.
Infrastructure layer provides the real implementation.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.da_referral.domain.models import Referral


class ReferralRepositoryProtocol(Protocol):
    async def find_for_customer(
        self, db: AsyncSession, customer_id: str
    ) -> Referral | None: ...

    async def find_for_customers(
        self, db: AsyncSession, customer_ids: list[str]
    ) -> dict[str, Referral]: ...

    async def get_by_id(self, db: AsyncSession, referral_id: str) -> Referral | None: ...

    async def increment_agent_earnings(
        self, db: AsyncSession, referral_id: str, amount: int
    ) -> Referral:
        """Atomically add amount (>= 0) to agent_total_earnings."""
        ...

    async def create(
        self,
        db: AsyncSession,
        agent_id: str,
        customer_id: str,
        is_manual_assignment: bool,
    ) -> Referral | None:
        """Insert a referral; None when the customer is already referred."""
        ...

    async def set_active(
        self, db: AsyncSession, referral_id: str, is_active: bool
    ) -> Referral | None: ...

    async def list_referrals(self, db: AsyncSession) -> list[Referral]: ...

    async def list_by_agent(self, db: AsyncSession, agent_id: str) -> list[Referral]: ...

    async def agent_total_earnings(self, db: AsyncSession, agent_id: str) -> int: ...
