"""Repository Protocol — dependency inversion for testability.

Unit tests inject a mock or an in-memory fake that conforms to this Protocol.
Infrastructure layer provides the real implementation.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.da_ledger.domain.models import Transaction, Wallet


class LedgerRepositoryProtocol(Protocol):
    async def get_wallet(self, db: AsyncSession, wallet_id: str) -> Wallet | None: ...

    async def get_active_wallet_for_user(
        self, db: AsyncSession, user_id: str
    ) -> Wallet | None: ...

    async def list_wallets(self, db: AsyncSession) -> list[Wallet]: ...

    async def create_wallet(self, db: AsyncSession, user_id: str) -> Wallet: ...

    async def set_archived(
        self, db: AsyncSession, wallet_id: str, archived: bool
    ) -> Wallet | None: ...

    async def apply_delta(self, db: AsyncSession, wallet_id: str, delta: int) -> Wallet: ...

    async def insert_transaction(
        self, db: AsyncSession, tx: Transaction
    ) -> tuple[Transaction, bool]:
        """Insert tx; on a dedup-key conflict return (existing, False) instead."""
        ...

    async def get_transaction(
        self, db: AsyncSession, transaction_id: str
    ) -> Transaction | None: ...

    async def transition_status(
        self, db: AsyncSession, transaction_id: str, new_status: str
    ) -> Transaction | None:
        """Compare-and-swap PENDING -> new_status; None when the row was not PENDING."""
        ...

    async def list_transactions(
        self,
        db: AsyncSession,
        wallet_id: str,
        cursor_id: str | None,
        limit: int,
    ) -> list[Transaction]: ...

    async def total_active_balance(self, db: AsyncSession) -> int: ...
