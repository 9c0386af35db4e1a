from uuid import UUID

from fastapi import APIRouter, status

from app.schemas.inventory import AreaRequest, AreaUpdate
from app.schemas.response import SuccessResponse
from app.services import inventory_service

router = APIRouter()


@router.get("", response_model=SuccessResponse)
async def list_areas_endpoint(include_stats: bool = False):
    areas = await inventory_service.list_areas(include_stats=include_stats)
    return SuccessResponse(data=[a.model_dump(mode="json") for a in areas])


@router.post("", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def create_area_endpoint(payload: AreaRequest):
    area = await inventory_service.create_area(payload)
    return SuccessResponse(data=area.model_dump(mode="json"))


@router.get("/{area_id}", response_model=SuccessResponse)
async def get_area_endpoint(area_id: UUID):
    area = await inventory_service.get_area(area_id)
    return SuccessResponse(data=area.model_dump(mode="json"))


@router.patch("/{area_id}", response_model=SuccessResponse)
async def update_area_endpoint(area_id: UUID, payload: AreaUpdate):
    area = await inventory_service.update_area(area_id, payload)
    return SuccessResponse(data=area.model_dump(mode="json"))


@router.delete("/{area_id}", response_model=SuccessResponse)
async def deactivate_area_endpoint(area_id: UUID):
    area = await inventory_service.deactivate_area(area_id)
    return SuccessResponse(data=area.model_dump(mode="json"))
