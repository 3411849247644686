"""da_plan REST API — plan CRUD and user subscription, staff-permission guarded."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.da_common.database import get_db_session
from src.da_common.enums import PermissionAction
from src.da_common.response import ApiResponse, success_response
from src.da_gateway.auth.dependencies import require_permission
from src.da_gateway.auth.permissions import StaffPrincipal
from src.da_plan.application.schemas import PlanCreateRequest, PlanUpdateRequest
from src.da_plan.application.service import PlanApplicationService

router = APIRouter(prefix="/plans", tags=["plans"])

_service = PlanApplicationService()

CanView = Annotated[StaffPrincipal, Depends(require_permission("plans", PermissionAction.VIEW))]
CanEdit = Annotated[StaffPrincipal, Depends(require_permission("plans", PermissionAction.EDIT))]
CanDelete = Annotated[StaffPrincipal, Depends(require_permission("plans", PermissionAction.DELETE))]
Db = Annotated[AsyncSession, Depends(get_db_session)]


@router.get("")
async def list_plans(_: CanView, db: Db, request: Request) -> ApiResponse:
    plans = await _service.list_plans(db)
    return success_response([p.model_dump(mode="json") for p in plans], request)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_plan(
    body: PlanCreateRequest, _: CanEdit, db: Db, request: Request
) -> ApiResponse:
    data = await _service.create_plan(db, body)
    return success_response(data.model_dump(mode="json"), request)


@router.get("/{plan_id}")
async def get_plan(plan_id: str, _: CanView, db: Db, request: Request) -> ApiResponse:
    data = await _service.get_plan(db, plan_id)
    return success_response(data.model_dump(mode="json"), request)


@router.put("/{plan_id}")
async def update_plan(
    plan_id: str, body: PlanUpdateRequest, _: CanEdit, db: Db, request: Request
) -> ApiResponse:
    data = await _service.update_plan(db, plan_id, body)
    return success_response(data.model_dump(mode="json"), request)


@router.delete("/{plan_id}")
async def delete_plan(plan_id: str, _: CanDelete, db: Db, request: Request) -> ApiResponse:
    await _service.delete_plan(db, plan_id)
    resp = success_response({"id": plan_id}, request)
    resp.message = "Plan deleted successfully"
    return resp


@router.put("/{plan_id}/subscribers/{user_id}")
async def subscribe_user(
    plan_id: str, user_id: str, _: CanEdit, db: Db, request: Request
) -> ApiResponse:
    data = await _service.subscribe_user(db, plan_id, user_id)
    return success_response(
        {"user_id": user_id, "plan": data.model_dump(mode="json")}, request
    )
