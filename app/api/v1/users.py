from typing import Optional
from uuid import UUID

from fastapi import APIRouter, status

from app.models.user import UserRole
from app.schemas.response import SuccessResponse
from app.schemas.user import ActiveUpdate, AreaAssignment, RoleUpdate, UserCreate, UserUpdate
from app.services import user_service

router = APIRouter()


@router.get("", response_model=SuccessResponse)
async def list_users_endpoint(
    role: Optional[UserRole] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
):
    users = await user_service.list_users(role=role, is_active=is_active, search=search)
    return SuccessResponse(data=[u.model_dump(mode="json") for u in users])


@router.post("", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def create_user_endpoint(payload: UserCreate):
    user = await user_service.create_user(payload)
    return SuccessResponse(data=user.model_dump(mode="json"))


@router.get("/{user_id}", response_model=SuccessResponse)
async def get_user_endpoint(user_id: UUID):
    user = await user_service.get_user(user_id)
    return SuccessResponse(data=user.model_dump(mode="json"))


@router.patch("/{user_id}", response_model=SuccessResponse)
async def update_user_endpoint(user_id: UUID, payload: UserUpdate):
    user = await user_service.update_user(user_id, payload)
    return SuccessResponse(data=user.model_dump(mode="json"))


@router.delete("/{user_id}", response_model=SuccessResponse)
async def deactivate_user_endpoint(user_id: UUID):
    """Soft delete: the profile is kept and marked inactive."""
    user = await user_service.deactivate_user(user_id)
    return SuccessResponse(data=user.model_dump(mode="json"))


@router.put("/{user_id}/role", response_model=SuccessResponse)
async def update_user_role_endpoint(user_id: UUID, payload: RoleUpdate):
    user = await user_service.update_user_role(user_id, payload.role)
    return SuccessResponse(data=user.model_dump(mode="json"))


@router.put("/{user_id}/active", response_model=SuccessResponse)
async def set_user_active_endpoint(user_id: UUID, payload: ActiveUpdate):
    user = await user_service.set_user_active(user_id, payload.is_active)
    return SuccessResponse(data=user.model_dump(mode="json"))


@router.put("/{user_id}/areas", response_model=SuccessResponse)
async def assign_areas_endpoint(user_id: UUID, payload: AreaAssignment):
    user = await user_service.assign_areas(user_id, payload.area_ids)
    return SuccessResponse(data=user.model_dump(mode="json"))
