"""LedgerStore — the only code path that moves wallet balances.

Both operations run inside the caller's transaction (a request session or a
unit of work) so the transaction row and its balance delta commit or roll
back together.

Transaction state machine:
    PENDING -> SUCCESS   applies the balance delta exactly once
    PENDING -> REJECTED  terminal, no delta
    SUCCESS, REJECTED    terminal; re-applying the same status is a no-op
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.da_common.enums import TransactionStatus, TransactionType
from src.da_common.errors import (
    InvalidTransactionTransitionError,
    TransactionNotFoundError,
    ValidationError,
    WalletNotFoundError,
)
from src.da_common.id_generator import generate_transaction_id
from src.da_ledger.domain.models import Transaction, Wallet
from src.da_ledger.domain.repository import LedgerRepositoryProtocol

logger = logging.getLogger(__name__)


class LedgerStore:
    def __init__(self, repo: LedgerRepositoryProtocol) -> None:
        self._repo = repo

    async def get_active_wallet(self, db: AsyncSession, user_id: str) -> Wallet | None:
        return await self._repo.get_active_wallet_for_user(db, user_id)

    async def post_transaction(
        self,
        db: AsyncSession,
        wallet_id: str,
        tx_type: TransactionType,
        amount: int,
        status: TransactionStatus,
        description: str | None = None,
        reference_type: str | None = None,
        reference_id: str | None = None,
    ) -> Transaction:
        """Record a transaction; a SUCCESS one moves the balance in the same unit.

        With a reference key, a repeated post returns the first row untouched.
        """
        if amount < 0:
            raise ValidationError(f"amount must be non-negative, got {amount}")
        wallet = await self._repo.get_wallet(db, wallet_id)
        if wallet is None or not wallet.is_active:
            raise WalletNotFoundError(wallet_id)

        tx, created = await self._repo.insert_transaction(
            db,
            Transaction(
                id=generate_transaction_id(),
                wallet_id=wallet_id,
                type=tx_type.value,
                amount=amount,
                status=status.value,
                description=description,
                reference_type=reference_type,
                reference_id=reference_id,
            ),
        )
        if not created:
            logger.info(
                "Transaction idempotency hit: ref=%s:%s tx=%s",
                reference_type,
                reference_id,
                tx.id,
            )
            return tx

        if status is TransactionStatus.SUCCESS and amount:
            await self._repo.apply_delta(db, wallet_id, tx.balance_delta)
        logger.debug(
            "Posted %s %s %d on wallet %s (%s)",
            status.value,
            tx_type.value,
            amount,
            wallet_id,
            tx.id,
        )
        return tx

    async def update_transaction_status(
        self, db: AsyncSession, transaction_id: str, new_status: TransactionStatus
    ) -> tuple[Transaction, bool]:
        """Move a PENDING transaction to new_status. Returns (transaction, changed).

        changed is False when the call was an idempotent repeat.
        """
        if new_status is TransactionStatus.PENDING:
            current = await self._require(db, transaction_id)
            if current.status != TransactionStatus.PENDING:
                raise InvalidTransactionTransitionError(
                    transaction_id, current.status, new_status.value
                )
            return current, False

        updated = await self._repo.transition_status(db, transaction_id, new_status.value)
        if updated is None:
            current = await self._require(db, transaction_id)
            if current.status == new_status:
                logger.info(
                    "Status update no-op: tx=%s already %s", transaction_id, new_status.value
                )
                return current, False
            raise InvalidTransactionTransitionError(
                transaction_id, current.status, new_status.value
            )

        if new_status is TransactionStatus.SUCCESS and updated.amount:
            await self._repo.apply_delta(db, updated.wallet_id, updated.balance_delta)
        logger.info("Transaction %s: PENDING -> %s", transaction_id, new_status.value)
        return updated, True

    async def _require(self, db: AsyncSession, transaction_id: str) -> Transaction:
        tx = await self._repo.get_transaction(db, transaction_id)
        if tx is None:
            raise TransactionNotFoundError(transaction_id)
        return tx
