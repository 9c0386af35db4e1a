import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from app.api.dependencies import get_engine
from app.core.config import MAX_PAGE_SIZE
from app.models.inventory import ItemCondition, ItemStatus
from app.schemas.inventory import AdjustQuantityRequest, ItemCreate, ItemFilter, ItemUpdate
from app.schemas.response import SuccessResponse
from app.services import inventory_service
from app.services.stock_engine import StockReconciliationEngine

log = logging.getLogger("api.items")

router = APIRouter()


@router.get("", response_model=SuccessResponse)
async def list_items_endpoint(
    search: Optional[str] = None,
    category_id: Optional[UUID] = None,
    area_id: Optional[UUID] = None,
    item_status: Optional[ItemStatus] = Query(None, alias="status"),
    condition: Optional[ItemCondition] = None,
    low_stock_only: bool = False,
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1, le=MAX_PAGE_SIZE),
):
    """Lists items with search, filters and pagination."""
    filters = ItemFilter(
        search=search,
        category_id=category_id,
        area_id=area_id,
        status=item_status,
        condition=condition,
        low_stock_only=low_stock_only,
        page=page,
        **({"page_size": page_size} if page_size else {}),
    )
    result = await inventory_service.list_items(filters)
    return SuccessResponse(data=result.model_dump(mode="json"))


@router.post("", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def create_item_endpoint(
    item_data: ItemCreate,
    created_by: Optional[UUID] = None,
    engine: StockReconciliationEngine = Depends(get_engine),
):
    """Adds an item; its initial quantity is booked as an 'add' ledger entry."""
    item = await inventory_service.create_item(item_data, engine, created_by=created_by)
    return SuccessResponse(data=item.model_dump(mode="json"))


@router.get("/{item_id}", response_model=SuccessResponse)
async def get_item_endpoint(item_id: UUID):
    item = await inventory_service.get_item(item_id)
    return SuccessResponse(data=item.model_dump(mode="json"))


@router.patch("/{item_id}", response_model=SuccessResponse)
async def update_item_endpoint(item_id: UUID, item_data: ItemUpdate):
    """Edits item details. Quantity changes go through /adjust."""
    item = await inventory_service.update_item(item_id, item_data)
    return SuccessResponse(data=item.model_dump(mode="json"))


@router.delete("/{item_id}", response_model=SuccessResponse)
async def delete_item_endpoint(item_id: UUID, hard: bool = False):
    """Retires the item; `hard=true` removes it outright when it has no ledger history."""
    if hard:
        await inventory_service.hard_delete_item(item_id)
        return SuccessResponse(data={"id": str(item_id), "deleted": True})
    item = await inventory_service.retire_item(item_id)
    return SuccessResponse(data=item.model_dump(mode="json"))


@router.post("/{item_id}/adjust", response_model=SuccessResponse)
async def adjust_quantity_endpoint(
    item_id: UUID,
    payload: AdjustQuantityRequest,
    engine: StockReconciliationEngine = Depends(get_engine),
):
    """Manual stock correction."""
    item = await engine.adjust_quantity(item_id, payload.delta, notes=payload.notes, actor=payload.actor_id)
    log.info(f"Item {item_id} adjusted by {payload.delta}.")
    return SuccessResponse(data=item.model_dump(mode="json"))
