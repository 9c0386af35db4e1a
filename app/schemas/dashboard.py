import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel

from app.models.transaction import TransactionType


class CategoryDistribution(BaseModel):
    name: str
    color: str
    count: int
    value: Decimal


class AreaDistribution(BaseModel):
    id: uuid.UUID
    name: str
    count: int
    value: Decimal


class LowStockItem(BaseModel):
    id: uuid.UUID
    name: str
    current: int
    minimum: int
    category_name: Optional[str] = None
    area_name: Optional[str] = None


class RecentActivity(BaseModel):
    id: uuid.UUID
    action: TransactionType
    item_name: str
    user_name: str
    quantity: int
    created_at: Optional[datetime] = None


class DashboardStats(BaseModel):
    total_items: int = 0
    total_value: Decimal = Decimal("0")
    unique_item_count: int = 0
    low_stock_count: int = 0
    available_count: int = 0
    checked_out_count: int = 0
    maintenance_count: int = 0
    retired_count: int = 0
    overdue_count: int = 0
    needs_reconciliation_count: int = 0
    category_distribution: List[CategoryDistribution] = []
    area_distribution: List[AreaDistribution] = []
    low_stock_items: List[LowStockItem] = []
    recent_activity: List[RecentActivity] = []
