"""LedgerRepository — concrete implementation of LedgerRepositoryProtocol.

Balance changes are single-statement atomic PostgreSQL UPDATE ... RETURNING
(`balance = balance + :delta`), never read-then-write, so concurrent
transactions against one wallet cannot lose updates. Status transitions are
compare-and-swap on `status = 'PENDING'`.

Transaction ownership: The CALLER is responsible for starting and committing
the transaction (request session or unit_of_work).
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.da_common.errors import ConsistencyError, InternalError
from src.da_ledger.domain.models import Transaction, Wallet

_WALLET_COLUMNS = "id, user_id, balance, archived_at, created_at, updated_at"
_TX_COLUMNS = (
    "id, wallet_id, type, amount, status, description, "
    "reference_type, reference_id, created_at, updated_at"
)

# ---------------------------------------------------------------------------
# SQL: wallets
# ---------------------------------------------------------------------------

_GET_WALLET_SQL = text(f"""
    SELECT {_WALLET_COLUMNS} FROM wallets WHERE id::text = :wallet_id
""")

_GET_ACTIVE_WALLET_SQL = text(f"""
    SELECT {_WALLET_COLUMNS}
    FROM wallets
    WHERE user_id::text = :user_id AND archived_at IS NULL
""")

_LIST_WALLETS_SQL = text(f"""
    SELECT {_WALLET_COLUMNS} FROM wallets ORDER BY created_at DESC
""")

_CREATE_WALLET_SQL = text(f"""
    INSERT INTO wallets (user_id, balance)
    VALUES (CAST(:user_id AS UUID), 0)
    RETURNING {_WALLET_COLUMNS}
""")

_ARCHIVE_SQL = text(f"""
    UPDATE wallets
    SET archived_at = NOW(), updated_at = NOW()
    WHERE id::text = :wallet_id AND archived_at IS NULL
    RETURNING {_WALLET_COLUMNS}
""")

_UNARCHIVE_SQL = text(f"""
    UPDATE wallets
    SET archived_at = NULL, updated_at = NOW()
    WHERE id::text = :wallet_id AND archived_at IS NOT NULL
    RETURNING {_WALLET_COLUMNS}
""")

_APPLY_DELTA_SQL = text(f"""
    UPDATE wallets
    SET balance = balance + :delta,
        updated_at = NOW()
    WHERE id::text = :wallet_id
    RETURNING {_WALLET_COLUMNS}
""")

_TOTAL_ACTIVE_BALANCE_SQL = text("""
    SELECT COALESCE(SUM(balance), 0) FROM wallets WHERE archived_at IS NULL
""")

# ---------------------------------------------------------------------------
# SQL: transactions
# ---------------------------------------------------------------------------

_INSERT_TX_SQL = text(f"""
    INSERT INTO transactions
        (id, wallet_id, type, amount, status, description, reference_type, reference_id)
    VALUES
        (:id, CAST(:wallet_id AS UUID), :type, :amount, :status, :description,
         :reference_type, :reference_id)
    ON CONFLICT (reference_type, reference_id) WHERE reference_id IS NOT NULL
    DO NOTHING
    RETURNING {_TX_COLUMNS}
""")

_GET_TX_BY_REFERENCE_SQL = text(f"""
    SELECT {_TX_COLUMNS}
    FROM transactions
    WHERE reference_type = :reference_type AND reference_id = :reference_id
""")

_GET_TX_SQL = text(f"SELECT {_TX_COLUMNS} FROM transactions WHERE id = :id")

_CAS_STATUS_SQL = text(f"""
    UPDATE transactions
    SET status = :new_status,
        updated_at = NOW()
    WHERE id = :id AND status = 'PENDING'
    RETURNING {_TX_COLUMNS}
""")

_LIST_TX_SQL = text(f"""
    SELECT {_TX_COLUMNS}
    FROM transactions
    WHERE wallet_id::text = :wallet_id
      AND (CAST(:cursor_id AS VARCHAR) IS NULL OR id < :cursor_id)
    ORDER BY id DESC
    LIMIT :limit
""")


def _row_to_wallet(row: object) -> Wallet:
    return Wallet(
        id=str(row.id),  # type: ignore[attr-defined]
        user_id=str(row.user_id),  # type: ignore[attr-defined]
        balance=row.balance,  # type: ignore[attr-defined]
        archived_at=row.archived_at,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


def _row_to_tx(row: object) -> Transaction:
    return Transaction(
        id=row.id,  # type: ignore[attr-defined]
        wallet_id=str(row.wallet_id),  # type: ignore[attr-defined]
        type=row.type,  # type: ignore[attr-defined]
        amount=row.amount,  # type: ignore[attr-defined]
        status=row.status,  # type: ignore[attr-defined]
        description=row.description,  # type: ignore[attr-defined]
        reference_type=row.reference_type,  # type: ignore[attr-defined]
        reference_id=row.reference_id,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


class LedgerRepository:
    """Concrete repository — all mutations atomic at the SQL level."""

    async def get_wallet(self, db: AsyncSession, wallet_id: str) -> Wallet | None:
        result = await db.execute(_GET_WALLET_SQL, {"wallet_id": wallet_id})
        row = result.fetchone()
        return _row_to_wallet(row) if row else None

    async def get_active_wallet_for_user(
        self, db: AsyncSession, user_id: str
    ) -> Wallet | None:
        result = await db.execute(_GET_ACTIVE_WALLET_SQL, {"user_id": user_id})
        row = result.fetchone()
        return _row_to_wallet(row) if row else None

    async def list_wallets(self, db: AsyncSession) -> list[Wallet]:
        result = await db.execute(_LIST_WALLETS_SQL)
        return [_row_to_wallet(row) for row in result.fetchall()]

    async def create_wallet(self, db: AsyncSession, user_id: str) -> Wallet:
        result = await db.execute(_CREATE_WALLET_SQL, {"user_id": user_id})
        row = result.fetchone()
        if row is None:
            raise InternalError("Wallet insert returned no rows — this should never happen")
        return _row_to_wallet(row)

    async def set_archived(
        self, db: AsyncSession, wallet_id: str, archived: bool
    ) -> Wallet | None:
        sql = _ARCHIVE_SQL if archived else _UNARCHIVE_SQL
        result = await db.execute(sql, {"wallet_id": wallet_id})
        row = result.fetchone()
        return _row_to_wallet(row) if row else None

    async def apply_delta(self, db: AsyncSession, wallet_id: str, delta: int) -> Wallet:
        result = await db.execute(
            _APPLY_DELTA_SQL, {"wallet_id": wallet_id, "delta": delta}
        )
        row = result.fetchone()
        if row is None:
            raise ConsistencyError(f"balance update matched no wallet {wallet_id}")
        return _row_to_wallet(row)

    async def insert_transaction(
        self, db: AsyncSession, tx: Transaction
    ) -> tuple[Transaction, bool]:
        params = {
            "id": tx.id,
            "wallet_id": tx.wallet_id,
            "type": tx.type,
            "amount": tx.amount,
            "status": tx.status,
            "description": tx.description,
            "reference_type": tx.reference_type,
            "reference_id": tx.reference_id,
        }
        result = await db.execute(_INSERT_TX_SQL, params)
        row = result.fetchone()
        if row is not None:
            return _row_to_tx(row), True

        if tx.reference_id is None:
            raise InternalError("Transaction insert returned no rows — this should never happen")
        existing = await db.execute(
            _GET_TX_BY_REFERENCE_SQL,
            {"reference_type": tx.reference_type, "reference_id": tx.reference_id},
        )
        existing_row = existing.fetchone()
        if existing_row is None:
            raise ConsistencyError(
                f"dedup conflict on {tx.reference_type}:{tx.reference_id} but no row found"
            )
        return _row_to_tx(existing_row), False

    async def get_transaction(
        self, db: AsyncSession, transaction_id: str
    ) -> Transaction | None:
        result = await db.execute(_GET_TX_SQL, {"id": transaction_id})
        row = result.fetchone()
        return _row_to_tx(row) if row else None

    async def transition_status(
        self, db: AsyncSession, transaction_id: str, new_status: str
    ) -> Transaction | None:
        result = await db.execute(
            _CAS_STATUS_SQL, {"id": transaction_id, "new_status": new_status}
        )
        row = result.fetchone()
        return _row_to_tx(row) if row else None

    async def list_transactions(
        self,
        db: AsyncSession,
        wallet_id: str,
        cursor_id: str | None,
        limit: int,
    ) -> list[Transaction]:
        result = await db.execute(
            _LIST_TX_SQL,
            {"wallet_id": wallet_id, "cursor_id": cursor_id, "limit": limit},
        )
        return [_row_to_tx(row) for row in result.fetchall()]

    async def total_active_balance(self, db: AsyncSession) -> int:
        result = await db.execute(_TOTAL_ACTIVE_BALANCE_SQL)
        return int(result.scalar_one())
