"""da_referral REST API — referrals and agent earnings, staff-permission guarded."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.da_common.database import get_db_session
from src.da_common.enums import PermissionAction
from src.da_common.response import ApiResponse, success_response
from src.da_gateway.auth.dependencies import require_permission
from src.da_gateway.auth.permissions import StaffPrincipal
from src.da_referral.application.schemas import ReferralCreateRequest
from src.da_referral.application.service import ReferralApplicationService

router = APIRouter(prefix="/referrals", tags=["referrals"])

_service = ReferralApplicationService()

CanView = Annotated[StaffPrincipal, Depends(require_permission("referrals", PermissionAction.VIEW))]
CanEdit = Annotated[StaffPrincipal, Depends(require_permission("referrals", PermissionAction.EDIT))]
Db = Annotated[AsyncSession, Depends(get_db_session)]


@router.get("")
async def list_referrals(_: CanView, db: Db, request: Request) -> ApiResponse:
    referrals = await _service.list_referrals(db)
    return success_response([r.model_dump() for r in referrals], request)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_referral(
    body: ReferralCreateRequest, _: CanEdit, db: Db, request: Request
) -> ApiResponse:
    data = await _service.create_referral(db, body)
    return success_response(data.model_dump(), request)


@router.get("/agent/{agent_id}")
async def list_agent_referrals(
    agent_id: str, _: CanView, db: Db, request: Request
) -> ApiResponse:
    referrals = await _service.list_by_agent(db, agent_id)
    return success_response([r.model_dump() for r in referrals], request)


@router.get("/agent/{agent_id}/earnings")
async def agent_earnings(agent_id: str, _: CanView, db: Db, request: Request) -> ApiResponse:
    data = await _service.agent_earnings(db, agent_id)
    return success_response(data.model_dump(), request)


@router.patch("/{referral_id}/activate")
async def activate_referral(
    referral_id: str, _: CanEdit, db: Db, request: Request
) -> ApiResponse:
    data = await _service.set_active(db, referral_id, True)
    return success_response(data.model_dump(), request)


@router.patch("/{referral_id}/deactivate")
async def deactivate_referral(
    referral_id: str, _: CanEdit, db: Db, request: Request
) -> ApiResponse:
    data = await _service.set_active(db, referral_id, False)
    return success_response(data.model_dump(), request)
