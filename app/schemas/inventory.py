import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from app.core.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from app.models.inventory import ItemCondition, ItemStatus

T = TypeVar("T")


class ItemFields(BaseModel):
    """Descriptive fields shared by create and update. Quantity is not among them."""
    description: Optional[str] = None
    category_id: Optional[uuid.UUID] = None
    area_id: Optional[uuid.UUID] = None
    serial_number: Optional[str] = Field(None, max_length=128)
    barcode: Optional[str] = Field(None, max_length=128)
    purchase_date: Optional[date] = None
    unit_price: Optional[Decimal] = Field(None, ge=0, description="Price per unit.")
    min_stock_level: Optional[int] = Field(None, ge=0, description="Low-stock threshold.")
    max_stock_level: Optional[int] = Field(None, ge=0)
    image_url: Optional[str] = None
    location: Optional[str] = None
    condition: Optional[ItemCondition] = None
    manufacturer: Optional[str] = None
    model: Optional[str] = None
    warranty_expiry: Optional[date] = None
    notes: Optional[str] = None


class ItemCreate(ItemFields):
    name: str = Field(..., min_length=1, max_length=255, description="Name of the item (e.g., Microscope).")
    min_stock_level: int = Field(0, ge=0, description="Low-stock threshold.")
    quantity: int = Field(0, ge=0, description="Initial stock, recorded as an 'add' ledger entry.")
    status: ItemStatus = Field(ItemStatus.AVAILABLE, description="'available' or 'maintenance'.")


class ItemUpdate(ItemFields):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    status: Optional[ItemStatus] = None


class ItemFilter(BaseModel):
    search: Optional[str] = None
    category_id: Optional[uuid.UUID] = None
    area_id: Optional[uuid.UUID] = None
    status: Optional[ItemStatus] = None
    condition: Optional[ItemCondition] = None
    low_stock_only: bool = False
    page: int = Field(1, ge=1)
    page_size: int = Field(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)


class AdjustQuantityRequest(BaseModel):
    delta: int = Field(..., description="Units to add (positive) or remove (negative).")
    notes: Optional[str] = None
    actor_id: Optional[uuid.UUID] = None


class Page(BaseModel, Generic[T]):
    items: List[T]
    total: int
    page: int
    page_size: int


class CategoryRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    color: Optional[str] = Field(None, max_length=32)
    icon: Optional[str] = Field(None, max_length=64)
    parent_id: Optional[uuid.UUID] = None


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    color: Optional[str] = Field(None, max_length=32)
    icon: Optional[str] = Field(None, max_length=64)
    parent_id: Optional[uuid.UUID] = None
    is_active: Optional[bool] = None


class CategoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    parent_id: Optional[uuid.UUID] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    item_count: Optional[int] = None
    total_value: Optional[Decimal] = None


class AreaRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    location: Optional[str] = Field(None, max_length=255)
    manager_id: Optional[uuid.UUID] = None


class AreaUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    location: Optional[str] = Field(None, max_length=255)
    manager_id: Optional[uuid.UUID] = None
    is_active: Optional[bool] = None


class AreaResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: Optional[str] = None
    location: Optional[str] = None
    manager_id: Optional[uuid.UUID] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    item_count: Optional[int] = None
    total_value: Optional[Decimal] = None
