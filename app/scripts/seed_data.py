# app/scripts/seed_data.py
import asyncio
import logging
from datetime import timedelta
from app.core.db import init_db, close_db
from app.core.logging import setup_logging
from app.models.inventory import Area, Category, InventoryItem, ItemCondition
from app.models.transaction import TransactionType
from app.models.user import Profile, UserRole
from app.schemas.inventory import ItemCreate
from app.schemas.records import utcnow
from app.services.inventory_service import create_item
from app.services.stock_engine import StockReconciliationEngine
from app.services.user_service import assign_areas
from app.stores.tortoise_store import TortoiseStockStore

log = logging.getLogger("seed_data")

ITEMS = [
    # name, category, area, quantity, min_stock_level, unit_price, condition
    ("Microscope", "Science Equipment", "Science Lab", 25, 5, "320.00", ItemCondition.GOOD),
    ("Graphing Calculator", "Electronics", "Math Department", 15, 5, "110.00", ItemCondition.NEW),
    ("Football", "Sports Equipment", "Sports Store", 8, 10, "25.00", ItemCondition.FAIR),
    ("A4 Paper Ream", "Stationery", "Main Store", 50, 20, "4.50", ItemCondition.NEW),
]


async def seed():
    categories = {}
    areas = {}
    for _, category_name, area_name, *_ in ITEMS:
        if category_name not in categories:
            categories[category_name], _ = await Category.get_or_create(name=category_name)
        if area_name not in areas:
            areas[area_name], _ = await Area.get_or_create(name=area_name)

    manager, new_profile = await Profile.get_or_create(
        email="lab.manager@school.edu",
        defaults={"name": "Lab Manager", "role": UserRole.MANAGER, "department": "Science"},
    )
    if new_profile:
        await assign_areas(manager.id, [areas["Science Lab"].id])
        log.info(f"User: {manager.email} ({manager.id})")

    engine = StockReconciliationEngine(TortoiseStockStore())
    created = {}
    for name, category_name, area_name, qty, minimum, price, condition in ITEMS:
        if await InventoryItem.filter(name=name).exists():
            continue
        item = await create_item(ItemCreate(
            name=name,
            category_id=categories[category_name].id,
            area_id=areas[area_name].id,
            quantity=qty,
            min_stock_level=minimum,
            unit_price=price,
            condition=condition,
        ), engine)
        created[name] = item.id
        log.info(f"Item: {name} ({item.id}) x{item.quantity}")

    # One open checkout and one consumption so the ledger has something to show; first run only
    if "Microscope" in created:
        await engine.issue(
            created["Microscope"], 2, "Grade 10 Biology",
            expected_return_date=utcnow() + timedelta(days=7),
            purpose="Cell structure practical",
            user_id=manager.id,
        )
    if "A4 Paper Ream" in created:
        await engine.issue(created["A4 Paper Ream"], 5, "Admin Office", mode=TransactionType.USE, user_id=manager.id)

    log.info("Inventory seeded.")

async def main():
    setup_logging()
    await init_db()
    try:
        await seed()
    finally:
        await close_db()

if __name__ == "__main__":
    asyncio.run(main())
