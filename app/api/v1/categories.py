from uuid import UUID

from fastapi import APIRouter, status

from app.schemas.inventory import CategoryRequest, CategoryUpdate
from app.schemas.response import SuccessResponse
from app.services import inventory_service

router = APIRouter()


@router.get("", response_model=SuccessResponse)
async def list_categories_endpoint(include_stats: bool = False):
    """Active categories by name, optionally with item count and stock value."""
    categories = await inventory_service.list_categories(include_stats=include_stats)
    return SuccessResponse(data=[c.model_dump(mode="json") for c in categories])


@router.post("", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def create_category_endpoint(payload: CategoryRequest):
    category = await inventory_service.create_category(payload)
    return SuccessResponse(data=category.model_dump(mode="json"))


@router.get("/{category_id}", response_model=SuccessResponse)
async def get_category_endpoint(category_id: UUID):
    category = await inventory_service.get_category(category_id)
    return SuccessResponse(data=category.model_dump(mode="json"))


@router.patch("/{category_id}", response_model=SuccessResponse)
async def update_category_endpoint(category_id: UUID, payload: CategoryUpdate):
    category = await inventory_service.update_category(category_id, payload)
    return SuccessResponse(data=category.model_dump(mode="json"))


@router.delete("/{category_id}", response_model=SuccessResponse)
async def deactivate_category_endpoint(category_id: UUID):
    """Deactivates the category; items keep their reference."""
    category = await inventory_service.deactivate_category(category_id)
    return SuccessResponse(data=category.model_dump(mode="json"))
