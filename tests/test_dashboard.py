import uuid
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import patch

import pytest

from app.models.transaction import InventoryTransaction, TransactionType
from app.models.user import Profile
from app.services import dashboard_service
from app.services.dashboard_service import DEFAULT_CATEGORY_COLOR, build_activity, summarize_items

from conftest import FakeQuerySet

LIBRARY = uuid.uuid4()
GYM = uuid.uuid4()


def row(name, quantity, min_stock_level=0, status="available", unit_price="1.00", category=None, color=None,
        area=None, area_id=None, area_active=True):
    return {
        "id": uuid.uuid4(),
        "name": name,
        "quantity": quantity,
        "min_stock_level": min_stock_level,
        "unit_price": Decimal(unit_price) if unit_price is not None else None,
        "status": status,
        "category__name": category,
        "category__color": color,
        "area_id": area_id,
        "area__name": area,
        "area__is_active": area_active if area_id else None,
    }


def test_summary_counts_and_values():
    rows = [
        row("Football", 4, 5, unit_price="12.50", category="Sports", color="#22AA22"),
        row("Microscope", 0, 1, status="checked_out", unit_price="300.00", category="Science"),
        row("Kiln", 1, 0, status="maintenance", unit_price="900.00", category="Art"),
        row("Old projector", 2, 0, status="retired", unit_price="80.00", category="AV"),
        row("Chalk", 40, 10, unit_price=None, category="Sports"),
    ]

    stats = summarize_items(rows)

    assert stats.unique_item_count == 4
    assert stats.total_items == 45
    assert stats.total_value == Decimal("950.00")
    assert (stats.available_count, stats.checked_out_count, stats.maintenance_count, stats.retired_count) == (2, 1, 1, 1)
    assert stats.low_stock_count == 2
    assert [c.name for c in stats.category_distribution] == ["Sports", "Science", "Art"]
    assert stats.category_distribution[0].color == "#22AA22"
    assert stats.category_distribution[1].color == DEFAULT_CATEGORY_COLOR


def test_low_stock_list_is_emptiest_first_and_limited():
    rows = [row(f"Item {n}", n, 5) for n in range(5)]

    stats = summarize_items(rows, low_stock_limit=3)

    assert stats.low_stock_count == 5
    assert [i.name for i in stats.low_stock_items] == ["Item 0", "Item 1", "Item 2"]
    assert stats.low_stock_items[0].current == 0


# --- AREA DISTRIBUTION ---

def test_area_distribution_counts_active_areas_busiest_first():
    closed = uuid.uuid4()
    rows = [
        row("Atlas", 3, unit_price="20.00", area="Library", area_id=LIBRARY),
        row("Ball", 10, unit_price="5.00", area="Gym", area_id=GYM),
        row("Mat", 2, unit_price="15.00", area="Gym", area_id=GYM),
        row("Globe", 1, status="retired", area="Library", area_id=LIBRARY),
        row("Easel", 4, area="Old art room", area_id=closed, area_active=False),
        row("Stapler", 1),
    ]

    stats = summarize_items(rows)

    assert [(a.name, a.count) for a in stats.area_distribution] == [("Gym", 2), ("Library", 1)]
    assert stats.area_distribution[0].id == GYM
    assert stats.area_distribution[0].value == Decimal("80.00")
    assert stats.area_distribution[1].value == Decimal("60.00")


def test_area_distribution_keeps_top_six():
    rows = []
    for n in range(8):
        area_id = uuid.uuid4()
        rows += [row(f"Item {n}-{k}", 1, area=f"Area {n}", area_id=area_id) for k in range(n + 1)]

    stats = summarize_items(rows)

    assert len(stats.area_distribution) == 6
    assert [a.name for a in stats.area_distribution] == [f"Area {n}" for n in range(7, 1, -1)]


# --- RECENT ACTIVITY ---

def test_activity_names_item_and_user_with_fallbacks():
    staff_id, clerk = uuid.uuid4(), uuid.uuid4()
    when = datetime(2024, 9, 2, 8, 30, tzinfo=timezone.utc)
    rows = [
        {"id": uuid.uuid4(), "transaction_type": "issue", "quantity": 2, "created_at": when,
         "item__name": "Microscope", "user_id": staff_id, "issued_by": clerk},
        {"id": uuid.uuid4(), "transaction_type": "add", "quantity": 10, "created_at": when,
         "item__name": None, "user_id": None, "issued_by": clerk},
        {"id": uuid.uuid4(), "transaction_type": "use", "quantity": 1, "created_at": when,
         "item__name": "Paper", "user_id": None, "issued_by": None},
    ]

    activity = build_activity(rows, {staff_id: "Ms. Rivera", clerk: "Front office"})

    assert [a.action for a in activity] == [TransactionType.ISSUE, TransactionType.ADD, TransactionType.USE]
    assert [a.item_name for a in activity] == ["Microscope", "Unknown Item", "Paper"]
    assert [a.user_name for a in activity] == ["Ms. Rivera", "Front office", "Unknown User"]
    assert activity[0].quantity == 2
    assert activity[0].created_at == when


@pytest.mark.asyncio
async def test_recent_activity_reads_newest_entries_and_looks_up_names():
    staff_id = uuid.uuid4()
    ledger_qs = FakeQuerySet(result=[
        {"id": uuid.uuid4(), "transaction_type": "remove", "quantity": 1, "created_at": None,
         "item__name": "Camera", "user_id": staff_id, "issued_by": None},
    ])
    profiles_qs = FakeQuerySet(result=[(staff_id, "Mr. Okafor")])

    with patch.object(InventoryTransaction, "all", return_value=ledger_qs), \
         patch.object(Profile, "filter", return_value=profiles_qs) as mock_profiles:

        activity = await dashboard_service.recent_activity(limit=5)

    assert ("order_by", ("-created_at",), {}) in ledger_qs.chain
    assert ("limit", (5,), {}) in ledger_qs.chain
    mock_profiles.assert_called_once_with(id__in=[staff_id])
    assert activity[0].user_name == "Mr. Okafor"
    assert activity[0].action == TransactionType.REMOVE


@pytest.mark.asyncio
async def test_recent_activity_without_users_skips_profile_lookup():
    ledger_qs = FakeQuerySet(result=[])
    with patch.object(InventoryTransaction, "all", return_value=ledger_qs), \
         patch.object(Profile, "filter") as mock_profiles:

        assert await dashboard_service.recent_activity() == []

    mock_profiles.assert_not_called()
