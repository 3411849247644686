"""Pydantic schemas and cursor utilities for da_ledger API."""

import base64
import json

from pydantic import BaseModel, Field

from src.da_common.cents import cents_to_display
from src.da_common.datetime_utils import iso_or_none
from src.da_common.enums import TransactionStatus, TransactionType
from src.da_ledger.domain.models import Transaction, Wallet

# ---------------------------------------------------------------------------
# Cursor-based pagination utilities
# ---------------------------------------------------------------------------


def cursor_encode(last_id: str) -> str:
    """Encode a transaction id into an opaque Base64 cursor string."""
    payload = json.dumps({"id": last_id})
    return base64.b64encode(payload.encode()).decode()


def cursor_decode(cursor: str | None) -> str | None:
    """Decode a cursor string back to the last seen id. Returns None on error."""
    if cursor is None:
        return None
    try:
        payload = json.loads(base64.b64decode(cursor.encode()).decode())
        return str(payload["id"])
    except (ValueError, KeyError, TypeError):
        return None


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class WalletCreateRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    initial_balance_cents: int = Field(0, ge=0, description="Booked as a SUCCESS deposit")


class TransactionCreateRequest(BaseModel):
    wallet_id: str = Field(..., min_length=1)
    type: TransactionType
    amount_cents: int = Field(..., ge=0, description="Non-negative magnitude in cents")
    status: TransactionStatus = TransactionStatus.PENDING
    description: str | None = Field(None, max_length=500)


class TransactionStatusRequest(BaseModel):
    status: TransactionStatus


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class WalletResponse(BaseModel):
    id: str
    user_id: str
    balance_cents: int
    balance_display: str
    archived_at: str | None
    created_at: str | None
    updated_at: str | None

    @classmethod
    def from_domain(cls, wallet: Wallet) -> "WalletResponse":
        return cls(
            id=wallet.id,
            user_id=wallet.user_id,
            balance_cents=wallet.balance,
            balance_display=cents_to_display(wallet.balance),
            archived_at=iso_or_none(wallet.archived_at),
            created_at=iso_or_none(wallet.created_at),
            updated_at=iso_or_none(wallet.updated_at),
        )


class TransactionResponse(BaseModel):
    id: str
    wallet_id: str
    type: str
    amount_cents: int
    amount_display: str
    status: str
    description: str | None
    reference_type: str | None
    reference_id: str | None
    created_at: str | None

    @classmethod
    def from_domain(cls, tx: Transaction) -> "TransactionResponse":
        return cls(
            id=tx.id,
            wallet_id=tx.wallet_id,
            type=tx.type,
            amount_cents=tx.amount,
            amount_display=cents_to_display(tx.amount),
            status=tx.status,
            description=tx.description,
            reference_type=tx.reference_type,
            reference_id=tx.reference_id,
            created_at=iso_or_none(tx.created_at),
        )


class TransactionPage(BaseModel):
    items: list[TransactionResponse]
    next_cursor: str | None
    has_more: bool
