import logging
from collections import defaultdict
from decimal import Decimal
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from tortoise.expressions import F, Q
from tortoise.transactions import in_transaction

from app.core.exceptions import AreaNotFound, CategoryNotFound, ItemNotFound, ItemRetired, ValidationError
from app.models.inventory import Area, Category, InventoryItem, ItemStatus
from app.models.transaction import InventoryTransaction
from app.schemas.inventory import (
    AreaRequest,
    AreaResponse,
    AreaUpdate,
    CategoryRequest,
    CategoryResponse,
    CategoryUpdate,
    ItemCreate,
    ItemFilter,
    ItemUpdate,
    Page,
)
from app.schemas.records import ItemRecord
from app.services.stock_engine import StockReconciliationEngine

log = logging.getLogger("inventory_service")


def item_record(item: InventoryItem) -> ItemRecord:
    """Builds the row DTO from an item fetched with select_related('category', 'area')."""
    record = ItemRecord.model_validate(item)
    return record.model_copy(update={
        "category_name": item.category.name if item.category else None,
        "category_color": item.category.color if item.category else None,
        "area_name": item.area.name if item.area else None,
    })


# ----------- Items -----------

async def list_items(filters: ItemFilter) -> Page[ItemRecord]:
    """Filters, then pages newest first. Joined category/area names ride along."""
    qs = InventoryItem.all()
    if filters.search:
        term = filters.search.strip()
        qs = qs.filter(
            Q(name__icontains=term)
            | Q(description__icontains=term)
            | Q(serial_number__icontains=term)
            | Q(barcode__icontains=term)
        )
    if filters.category_id:
        qs = qs.filter(category_id=filters.category_id)
    if filters.area_id:
        qs = qs.filter(area_id=filters.area_id)
    if filters.status:
        qs = qs.filter(status=filters.status)
    if filters.condition:
        qs = qs.filter(condition=filters.condition)
    if filters.low_stock_only:
        qs = qs.filter(quantity__lte=F("min_stock_level"))

    total = await qs.count()
    rows = await (
        qs.select_related("category", "area")
        .order_by("-created_at", "-id")
        .offset((filters.page - 1) * filters.page_size)
        .limit(filters.page_size)
    )
    return Page[ItemRecord](
        items=[item_record(item) for item in rows],
        total=total,
        page=filters.page,
        page_size=filters.page_size,
    )


async def get_item(item_id: UUID) -> ItemRecord:
    item = await InventoryItem.get_or_none(id=item_id).select_related("category", "area")
    if not item:
        raise ItemNotFound(item_id)
    return item_record(item)


async def _check_references(category_id: Optional[UUID], area_id: Optional[UUID]) -> None:
    if category_id and not await Category.filter(id=category_id).exists():
        raise CategoryNotFound(category_id)
    if area_id and not await Area.filter(id=area_id).exists():
        raise AreaNotFound(area_id)


async def create_item(
    data: ItemCreate,
    engine: StockReconciliationEngine,
    created_by: Optional[UUID] = None,
) -> ItemRecord:
    """
    Creates the item empty, then books the initial stock through the engine
    so the ledger accounts for every unit on hand.
    """
    if data.status not in (ItemStatus.AVAILABLE, ItemStatus.MAINTENANCE):
        raise ValidationError(f"New items start 'available' or 'maintenance', not '{data.status.value}'.")
    await _check_references(data.category_id, data.area_id)

    fields = data.model_dump(exclude={"quantity", "status"})
    status = ItemStatus.MAINTENANCE if data.status == ItemStatus.MAINTENANCE else ItemStatus.CHECKED_OUT
    item = await InventoryItem.create(**fields, quantity=0, status=status, created_by=created_by)
    log.info(f"Item '{item.name}' created ({item.id}).")

    if data.quantity:
        await engine.adjust_quantity(item.id, data.quantity, notes="Initial stock", actor=created_by)
    return await get_item(item.id)


async def update_item(item_id: UUID, data: ItemUpdate) -> ItemRecord:
    """
    Edits descriptive fields. Status may go to maintenance or retired; asking
    for 'available' re-derives it from the quantity on hand.
    """
    item = await InventoryItem.get_or_none(id=item_id)
    if not item:
        raise ItemNotFound(item_id)

    changes = data.model_dump(exclude_unset=True)
    new_status = changes.pop("status", None)
    if "name" in changes and changes["name"] is None:
        raise ValidationError("Item name cannot be empty.")
    if "min_stock_level" in changes and changes["min_stock_level"] is None:
        changes["min_stock_level"] = 0
    await _check_references(changes.get("category_id"), changes.get("area_id"))

    if new_status is not None and new_status != item.status:
        if item.status == ItemStatus.RETIRED:
            raise ItemRetired(item_id)
        if new_status == ItemStatus.CHECKED_OUT:
            raise ValidationError("'checked_out' follows from the quantity on hand; issue or adjust stock instead.")

    async with in_transaction() as conn:
        if changes:
            await InventoryItem.filter(id=item_id).using_db(conn).update(**changes)
        if new_status in (ItemStatus.MAINTENANCE, ItemStatus.RETIRED):
            await InventoryItem.filter(id=item_id).using_db(conn).update(status=new_status)
        elif new_status == ItemStatus.AVAILABLE and item.status != ItemStatus.RETIRED:
            # Conditional on the live quantity so a concurrent stock write cannot leave it stale
            await InventoryItem.filter(id=item_id, quantity__gt=0).using_db(conn).update(status=ItemStatus.AVAILABLE)
            await InventoryItem.filter(id=item_id, quantity=0).using_db(conn).update(status=ItemStatus.CHECKED_OUT)

    log.info(f"Item {item_id} updated: {sorted(changes)}{' status=' + new_status.value if new_status else ''}")
    return await get_item(item_id)


async def retire_item(item_id: UUID) -> ItemRecord:
    """Soft delete. The item and its ledger stay for the audit trail."""
    updated = await InventoryItem.filter(id=item_id).update(status=ItemStatus.RETIRED)
    if not updated:
        raise ItemNotFound(item_id)
    log.info(f"Item {item_id} retired.")
    return await get_item(item_id)


async def hard_delete_item(item_id: UUID) -> None:
    """Physical delete, bypassing reconciliation. Refused once the ledger references the item."""
    if not await InventoryItem.filter(id=item_id).exists():
        raise ItemNotFound(item_id)
    if await InventoryTransaction.filter(item_id=item_id).exists():
        raise ValidationError(
            f"Item {item_id} has ledger entries and cannot be deleted; retire it instead.",
            details={"item_id": str(item_id)},
        )
    await InventoryItem.filter(id=item_id).delete()
    log.info(f"Item {item_id} permanently deleted.")


# ----------- Categories & Areas -----------

async def _stock_totals(group_field: str) -> Dict[UUID, Tuple[int, Decimal]]:
    """Item count and stock value per category/area, retired items excluded."""
    rows = await (
        InventoryItem.exclude(status=ItemStatus.RETIRED)
        .filter(**{f"{group_field}__isnull": False})
        .values(group_field, "quantity", "unit_price")
    )
    totals: Dict[UUID, List] = defaultdict(lambda: [0, Decimal("0")])
    for row in rows:
        bucket = totals[row[group_field]]
        bucket[0] += 1
        bucket[1] += row["quantity"] * (row["unit_price"] or Decimal("0"))
    return {key: (count, value) for key, (count, value) in totals.items()}


async def list_categories(include_stats: bool = False) -> List[CategoryResponse]:
    categories = await Category.filter(is_active=True).order_by("name")
    totals = await _stock_totals("category_id") if include_stats else {}
    result = []
    for category in categories:
        response = CategoryResponse.model_validate(category)
        if include_stats:
            count, value = totals.get(category.id, (0, Decimal("0")))
            response = response.model_copy(update={"item_count": count, "total_value": value})
        result.append(response)
    return result


async def get_category(category_id: UUID) -> CategoryResponse:
    category = await Category.get_or_none(id=category_id)
    if not category:
        raise CategoryNotFound(category_id)
    return CategoryResponse.model_validate(category)


async def create_category(data: CategoryRequest) -> CategoryResponse:
    if data.parent_id and not await Category.filter(id=data.parent_id).exists():
        raise CategoryNotFound(data.parent_id)
    category = await Category.create(**data.model_dump())
    log.info(f"Category '{category.name}' created ({category.id}).")
    return CategoryResponse.model_validate(category)


async def update_category(category_id: UUID, data: CategoryUpdate) -> CategoryResponse:
    changes = data.model_dump(exclude_unset=True)
    if changes.get("parent_id") == category_id:
        raise ValidationError("A category cannot be its own parent.")
    if changes.get("parent_id") and not await Category.filter(id=changes["parent_id"]).exists():
        raise CategoryNotFound(changes["parent_id"])
    if not await Category.filter(id=category_id).exists():
        raise CategoryNotFound(category_id)
    if changes:
        await Category.filter(id=category_id).update(**changes)
    return await get_category(category_id)


async def deactivate_category(category_id: UUID) -> CategoryResponse:
    updated = await Category.filter(id=category_id).update(is_active=False)
    if not updated:
        raise CategoryNotFound(category_id)
    log.info(f"Category {category_id} deactivated.")
    return await get_category(category_id)


async def list_areas(include_stats: bool = False) -> List[AreaResponse]:
    areas = await Area.filter(is_active=True).order_by("name")
    totals = await _stock_totals("area_id") if include_stats else {}
    result = []
    for area in areas:
        response = AreaResponse.model_validate(area)
        if include_stats:
            count, value = totals.get(area.id, (0, Decimal("0")))
            response = response.model_copy(update={"item_count": count, "total_value": value})
        result.append(response)
    return result


async def get_area(area_id: UUID) -> AreaResponse:
    area = await Area.get_or_none(id=area_id)
    if not area:
        raise AreaNotFound(area_id)
    return AreaResponse.model_validate(area)


async def create_area(data: AreaRequest) -> AreaResponse:
    area = await Area.create(**data.model_dump())
    log.info(f"Area '{area.name}' created ({area.id}).")
    return AreaResponse.model_validate(area)


async def update_area(area_id: UUID, data: AreaUpdate) -> AreaResponse:
    changes = data.model_dump(exclude_unset=True)
    if not await Area.filter(id=area_id).exists():
        raise AreaNotFound(area_id)
    if changes:
        await Area.filter(id=area_id).update(**changes)
    return await get_area(area_id)


async def deactivate_area(area_id: UUID) -> AreaResponse:
    updated = await Area.filter(id=area_id).update(is_active=False)
    if not updated:
        raise AreaNotFound(area_id)
    log.info(f"Area {area_id} deactivated.")
    return await get_area(area_id)
