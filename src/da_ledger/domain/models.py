"""Domain models for da_ledger — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime

from src.da_common.enums import TransactionStatus, TransactionType


@dataclass
class Wallet:
    id: str
    user_id: str
    balance: int                      # cents, signed
    archived_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.archived_at is None


@dataclass
class Transaction:
    id: str                           # "T" + snowflake
    wallet_id: str
    type: str                         # TransactionType value
    amount: int                       # cents, non-negative magnitude
    status: str                       # TransactionStatus value
    description: str | None = None
    reference_type: str | None = None
    reference_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def balance_delta(self) -> int:
        """Signed effect on the wallet balance once this transaction is SUCCESS."""
        return TransactionType(self.type).sign * self.amount

    @property
    def is_terminal(self) -> bool:
        return TransactionStatus(self.status).is_terminal
