"""da_ledger REST API — wallets and manual transactions, staff-permission guarded."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.da_common.database import get_db_session
from src.da_common.enums import PermissionAction
from src.da_common.response import ApiResponse, success_response
from src.da_gateway.auth.dependencies import require_permission
from src.da_gateway.auth.permissions import StaffPrincipal
from src.da_ledger.application.schemas import (
    TransactionCreateRequest,
    TransactionStatusRequest,
    WalletCreateRequest,
)
from src.da_ledger.application.service import LedgerApplicationService

router = APIRouter(prefix="/wallets", tags=["wallets"])

_service = LedgerApplicationService()

CanView = Annotated[StaffPrincipal, Depends(require_permission("wallets", PermissionAction.VIEW))]
CanEdit = Annotated[StaffPrincipal, Depends(require_permission("wallets", PermissionAction.EDIT))]
Db = Annotated[AsyncSession, Depends(get_db_session)]


@router.get("")
async def list_wallets(_: CanView, db: Db, request: Request) -> ApiResponse:
    wallets = await _service.list_wallets(db)
    return success_response([w.model_dump() for w in wallets], request)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_wallet(
    body: WalletCreateRequest, _: CanEdit, db: Db, request: Request
) -> ApiResponse:
    data = await _service.create_wallet(db, body.user_id, body.initial_balance_cents)
    return success_response(data.model_dump(), request)


# Declared before /{user_id} so "transactions" is never read as a user id
@router.post("/transactions", status_code=status.HTTP_201_CREATED)
async def post_transaction(
    body: TransactionCreateRequest, _: CanEdit, db: Db, request: Request
) -> ApiResponse:
    data = await _service.post_transaction(db, body)
    return success_response(data.model_dump(), request)


@router.patch("/transactions/{transaction_id}/status")
async def update_transaction_status(
    transaction_id: str,
    body: TransactionStatusRequest,
    _: CanEdit,
    db: Db,
    request: Request,
) -> ApiResponse:
    data = await _service.update_transaction_status(db, transaction_id, body.status)
    return success_response(data.model_dump(), request)


@router.get("/{user_id}")
async def get_wallet(user_id: str, _: CanView, db: Db, request: Request) -> ApiResponse:
    data = await _service.get_active_wallet(db, user_id)
    return success_response(data.model_dump(), request)


@router.get("/{wallet_id}/transactions")
async def list_transactions(
    wallet_id: str,
    _: CanView,
    db: Db,
    request: Request,
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
) -> ApiResponse:
    data = await _service.list_transactions(db, wallet_id, cursor, limit)
    return success_response(data.model_dump(), request)


@router.patch("/{wallet_id}/archive")
async def archive_wallet(wallet_id: str, _: CanEdit, db: Db, request: Request) -> ApiResponse:
    data = await _service.archive_wallet(db, wallet_id)
    return success_response(data.model_dump(), request)


@router.patch("/{wallet_id}/unarchive")
async def unarchive_wallet(wallet_id: str, _: CanEdit, db: Db, request: Request) -> ApiResponse:
    data = await _service.unarchive_wallet(db, wallet_id)
    return success_response(data.model_dump(), request)
