"""da_pnl REST API — PnL ingestion and records, staff-permission guarded."""

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.da_common.database import get_db_session
from src.da_common.enums import PermissionAction
from src.da_common.response import ApiResponse, success_response
from src.da_gateway.auth.dependencies import require_permission
from src.da_gateway.auth.permissions import StaffPrincipal
from src.da_pnl.application.schemas import PnLCreateRequest, PnLUpdateRequest
from src.da_pnl.application.service import PnLApplicationService

router = APIRouter(prefix="/pnl", tags=["pnl"])

_service = PnLApplicationService()

CanView = Annotated[StaffPrincipal, Depends(require_permission("pnl", PermissionAction.VIEW))]
CanEdit = Annotated[StaffPrincipal, Depends(require_permission("pnl", PermissionAction.EDIT))]
CanDelete = Annotated[StaffPrincipal, Depends(require_permission("pnl", PermissionAction.DELETE))]
Db = Annotated[AsyncSession, Depends(get_db_session)]


@router.post("", status_code=status.HTTP_201_CREATED)
async def distribute_pnl(body: PnLCreateRequest, _: CanEdit, request: Request) -> ApiResponse:
    data = await _service.distribute(body)
    return success_response(data.model_dump(), request)


@router.get("")
async def list_pnl(
    _: CanView,
    db: Db,
    request: Request,
    user_id: str | None = Query(None),
    symbol: str | None = Query(None),
    pnl_date: date | None = Query(None, alias="date"),
) -> ApiResponse:
    rows = await _service.list_pnl(db, user_id=user_id, symbol=symbol, pnl_date=pnl_date)
    return success_response([r.model_dump() for r in rows], request)


# Declared before /{pnl_id} so these paths are never read as an id
@router.get("/totals")
async def platform_totals(_: CanView, db: Db, request: Request) -> ApiResponse:
    data = await _service.platform_totals(db)
    return success_response(data.model_dump(), request)


@router.get("/customers/{user_id}/summary")
async def customer_summary(
    user_id: str, _: CanView, db: Db, request: Request
) -> ApiResponse:
    data = await _service.customer_summary(db, user_id)
    return success_response(data.model_dump(), request)


@router.get("/{pnl_id}")
async def get_pnl(pnl_id: str, _: CanView, db: Db, request: Request) -> ApiResponse:
    data = await _service.get_pnl(db, pnl_id)
    return success_response(data.model_dump(), request)


@router.patch("/{pnl_id}")
async def update_pnl(
    pnl_id: str, body: PnLUpdateRequest, _: CanEdit, request: Request
) -> ApiResponse:
    data = await _service.update_pnl(pnl_id, body)
    return success_response(data.model_dump(), request)


@router.delete("/{pnl_id}")
async def delete_pnl(pnl_id: str, _: CanDelete, db: Db, request: Request) -> ApiResponse:
    await _service.delete_pnl(db, pnl_id)
    resp = success_response({"id": pnl_id}, request)
    resp.message = "PnL entry deleted successfully"
    return resp


@router.post("/{pnl_id}/redistribute")
async def redistribute_pnl(pnl_id: str, _: CanEdit, request: Request) -> ApiResponse:
    data = await _service.redistribute(pnl_id)
    return success_response(data.model_dump(), request)
