"""LedgerApplicationService — wallet lifecycle and manual transactions.

Mutations commit/rollback on the request session. Realtime events are
published only after a successful commit.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.da_common.enums import TransactionReferenceType, TransactionStatus, TransactionType
from src.da_common.errors import (
    ActiveWalletExistsError,
    UserNotFoundError,
    ValidationError,
    WalletNotFoundError,
)
from src.da_common.events import EventPublisherProtocol, TransactionStatusChanged
from src.da_common.realtime import RedisEventPublisher
from src.da_ledger.application.schemas import (
    TransactionCreateRequest,
    TransactionPage,
    TransactionResponse,
    WalletResponse,
    cursor_decode,
    cursor_encode,
)
from src.da_ledger.domain.repository import LedgerRepositoryProtocol
from src.da_ledger.domain.service import LedgerStore
from src.da_ledger.infrastructure.persistence import LedgerRepository
from src.da_user.domain.repository import UserRepositoryProtocol
from src.da_user.infrastructure.persistence import UserRepository

logger = logging.getLogger(__name__)


class LedgerApplicationService:
    def __init__(
        self,
        repo: LedgerRepositoryProtocol | None = None,
        user_repo: UserRepositoryProtocol | None = None,
        publisher: EventPublisherProtocol | None = None,
    ) -> None:
        self._repo: LedgerRepositoryProtocol = repo or LedgerRepository()
        self._users: UserRepositoryProtocol = user_repo or UserRepository()
        self._publisher: EventPublisherProtocol = publisher or RedisEventPublisher()
        self._ledger = LedgerStore(self._repo)

    # --- wallets ---

    async def list_wallets(self, db: AsyncSession) -> list[WalletResponse]:
        return [WalletResponse.from_domain(w) for w in await self._repo.list_wallets(db)]

    async def get_active_wallet(self, db: AsyncSession, user_id: str) -> WalletResponse:
        wallet = await self._repo.get_active_wallet_for_user(db, user_id)
        if wallet is None:
            raise WalletNotFoundError(f"user {user_id}")
        return WalletResponse.from_domain(wallet)

    async def create_wallet(
        self, db: AsyncSession, user_id: str, initial_balance: int = 0
    ) -> WalletResponse:
        """Open the user's single active wallet.

        A non-zero opening balance is booked as a SUCCESS deposit so the
        balance always equals the sum of its SUCCESS transactions.
        """
        user = await self._users.get_by_id(db, user_id)
        if user is None or not user.is_active:
            raise UserNotFoundError(user_id)
        try:
            if await self._repo.get_active_wallet_for_user(db, user_id) is not None:
                raise ActiveWalletExistsError(user_id)
            wallet = await self._repo.create_wallet(db, user_id)
            if initial_balance:
                await self._ledger.post_transaction(
                    db,
                    wallet.id,
                    TransactionType.DEPOSIT,
                    initial_balance,
                    TransactionStatus.SUCCESS,
                    description="Opening balance",
                    reference_type=TransactionReferenceType.WALLET_OPENING.value,
                    reference_id=wallet.id,
                )
                wallet.balance += initial_balance
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Wallet opened: wallet=%s user=%s", wallet.id, user_id)
        return WalletResponse.from_domain(wallet)

    async def archive_wallet(self, db: AsyncSession, wallet_id: str) -> WalletResponse:
        try:
            wallet = await self._repo.set_archived(db, wallet_id, archived=True)
            if wallet is None:
                raise WalletNotFoundError(wallet_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return WalletResponse.from_domain(wallet)

    async def unarchive_wallet(self, db: AsyncSession, wallet_id: str) -> WalletResponse:
        try:
            current = await self._repo.get_wallet(db, wallet_id)
            if current is None or current.is_active:
                raise WalletNotFoundError(f"archived wallet {wallet_id}")
            if await self._repo.get_active_wallet_for_user(db, current.user_id) is not None:
                raise ActiveWalletExistsError(current.user_id)
            wallet = await self._repo.set_archived(db, wallet_id, archived=False)
            if wallet is None:
                raise WalletNotFoundError(wallet_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return WalletResponse.from_domain(wallet)

    # --- transactions ---

    async def post_transaction(
        self, db: AsyncSession, body: TransactionCreateRequest
    ) -> TransactionResponse:
        try:
            tx = await self._ledger.post_transaction(
                db,
                body.wallet_id,
                body.type,
                body.amount_cents,
                body.status,
                description=body.description,
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        if tx.status == TransactionStatus.SUCCESS:
            await self._publisher.publish(
                TransactionStatusChanged(
                    transaction_id=tx.id,
                    wallet_id=tx.wallet_id,
                    status=tx.status,
                    balance_delta=tx.balance_delta,
                )
            )
        return TransactionResponse.from_domain(tx)

    async def update_transaction_status(
        self, db: AsyncSession, transaction_id: str, new_status: TransactionStatus
    ) -> TransactionResponse:
        try:
            tx, changed = await self._ledger.update_transaction_status(
                db, transaction_id, new_status
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        if changed:
            await self._publisher.publish(
                TransactionStatusChanged(
                    transaction_id=tx.id,
                    wallet_id=tx.wallet_id,
                    status=tx.status,
                    balance_delta=tx.balance_delta if tx.status == TransactionStatus.SUCCESS else 0,
                )
            )
        return TransactionResponse.from_domain(tx)

    async def list_transactions(
        self,
        db: AsyncSession,
        wallet_id: str,
        cursor: str | None,
        limit: int,
    ) -> TransactionPage:
        if limit < 1:
            raise ValidationError("limit must be >= 1")
        cursor_id = cursor_decode(cursor)
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        rows = await self._repo.list_transactions(db, wallet_id, cursor_id, limit + 1)
        has_more = len(rows) > limit
        page = rows[:limit]
        return TransactionPage(
            items=[TransactionResponse.from_domain(t) for t in page],
            next_cursor=cursor_encode(page[-1].id) if has_more and page else None,
            has_more=has_more,
        )
