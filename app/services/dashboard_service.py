from collections import OrderedDict
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

from app.models.inventory import InventoryItem, ItemStatus
from app.models.transaction import InventoryTransaction, TransactionStatus
from app.models.user import Profile
from app.schemas.dashboard import AreaDistribution, CategoryDistribution, DashboardStats, LowStockItem, RecentActivity
from app.schemas.records import utcnow

DEFAULT_CATEGORY_COLOR = "#0D68B1"
AREA_DISTRIBUTION_LIMIT = 6
UNKNOWN_ITEM = "Unknown Item"
UNKNOWN_USER = "Unknown User"
ITEM_COLUMNS = (
    "id", "name", "quantity", "min_stock_level", "unit_price", "status",
    "category__name", "category__color", "area_id", "area__name", "area__is_active",
)
ACTIVITY_COLUMNS = ("id", "transaction_type", "quantity", "created_at", "item__name", "user_id", "issued_by")


def summarize_items(rows: Iterable[Dict[str, Any]], low_stock_limit: int = 10) -> DashboardStats:
    """Rolls item rows (as returned by ``.values(*ITEM_COLUMNS)``) up into dashboard figures."""
    stats = DashboardStats()
    by_category: "OrderedDict[str, CategoryDistribution]" = OrderedDict()
    by_area: "OrderedDict[UUID, AreaDistribution]" = OrderedDict()
    low_stock = []

    for row in rows:
        status = ItemStatus(row["status"])
        if status == ItemStatus.RETIRED:
            stats.retired_count += 1
            continue

        value = row["quantity"] * Decimal(row["unit_price"] or 0)
        stats.unique_item_count += 1
        stats.total_items += row["quantity"]
        stats.total_value += value
        if status == ItemStatus.AVAILABLE:
            stats.available_count += 1
        elif status == ItemStatus.CHECKED_OUT:
            stats.checked_out_count += 1
        elif status == ItemStatus.MAINTENANCE:
            stats.maintenance_count += 1

        if row["quantity"] <= row["min_stock_level"]:
            stats.low_stock_count += 1
            low_stock.append(LowStockItem(
                id=row["id"],
                name=row["name"],
                current=row["quantity"],
                minimum=row["min_stock_level"],
                category_name=row.get("category__name"),
                area_name=row.get("area__name"),
            ))

        category_name = row.get("category__name")
        if category_name:
            entry = by_category.get(category_name)
            if entry is None:
                entry = by_category[category_name] = CategoryDistribution(
                    name=category_name,
                    color=row.get("category__color") or DEFAULT_CATEGORY_COLOR,
                    count=0,
                    value=Decimal("0"),
                )
            entry.count += 1
            entry.value += value

        area_id = row.get("area_id")
        if area_id and row.get("area__is_active"):
            area = by_area.get(area_id)
            if area is None:
                area = by_area[area_id] = AreaDistribution(
                    id=area_id, name=row["area__name"], count=0, value=Decimal("0")
                )
            area.count += 1
            area.value += value

    # Emptiest first: those need restocking soonest
    low_stock.sort(key=lambda item: (item.current - item.minimum, item.name))
    stats.low_stock_items = low_stock[:low_stock_limit]
    stats.category_distribution = sorted(by_category.values(), key=lambda c: c.count, reverse=True)
    stats.area_distribution = sorted(by_area.values(), key=lambda a: a.count, reverse=True)[:AREA_DISTRIBUTION_LIMIT]
    return stats


def build_activity(rows: Iterable[Dict[str, Any]], user_names: Dict[UUID, str]) -> List[RecentActivity]:
    """Ledger rows (``.values(*ACTIVITY_COLUMNS)``), newest first, as feed entries."""
    activity = []
    for row in rows:
        user_id = row.get("user_id") or row.get("issued_by")
        activity.append(RecentActivity(
            id=row["id"],
            action=row["transaction_type"],
            item_name=row.get("item__name") or UNKNOWN_ITEM,
            user_name=user_names.get(user_id) or UNKNOWN_USER,
            quantity=row["quantity"],
            created_at=row.get("created_at"),
        ))
    return activity


async def recent_activity(limit: int = 10) -> List[RecentActivity]:
    rows = await InventoryTransaction.all().order_by("-created_at").limit(limit).values(*ACTIVITY_COLUMNS)
    user_ids = {row.get("user_id") or row.get("issued_by") for row in rows} - {None}
    names = {}
    if user_ids:
        names = dict(await Profile.filter(id__in=list(user_ids)).values_list("id", "name"))
    return build_activity(rows, names)


async def get_dashboard_stats(
    low_stock_limit: int = 10,
    activity_limit: int = 10,
    now: Optional[datetime] = None,
) -> DashboardStats:
    rows = await InventoryItem.all().values(*ITEM_COLUMNS)
    stats = summarize_items(rows, low_stock_limit=low_stock_limit)
    stats.overdue_count = await InventoryTransaction.filter(
        status=TransactionStatus.PENDING,
        expected_return_date__lt=now or utcnow(),
    ).count()
    stats.needs_reconciliation_count = await InventoryTransaction.filter(needs_reconciliation=True).count()
    stats.recent_activity = await recent_activity(activity_limit)
    return stats
