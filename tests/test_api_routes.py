import uuid
from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from app.api.dependencies import get_engine, get_stock_store
from app.core.exceptions import ItemNotFound, StoreUnavailable, UserNotFound
from app.main import app
from app.models.inventory import ItemStatus
from app.models.transaction import TransactionStatus
from app.models.user import UserRole
from app.schemas.dashboard import DashboardStats
from app.schemas.inventory import Page
from app.schemas.records import ItemRecord, utcnow
from app.schemas.user import UserResponse
from app.services.stock_engine import StockReconciliationEngine
from app.testing.memory_store import MemoryStockStore


@pytest.fixture
def api_store():
    return MemoryStockStore()


@pytest.fixture
def client(api_store):
    """Routes run against the in-memory store; the lifespan (DB, poller) is not started."""
    app.dependency_overrides[get_stock_store] = lambda: api_store
    app.dependency_overrides[get_engine] = lambda: StockReconciliationEngine(api_store, backoff_seconds=0)
    yield TestClient(app)
    app.dependency_overrides.clear()


def iso_in(days):
    return (utcnow() + timedelta(days=days)).isoformat()


def issue(client, item_id, quantity=1, **extra):
    body = {
        "item_id": str(item_id),
        "quantity": quantity,
        "recipient_name": "Ms. Patel",
        "expected_return_date": iso_in(7),
    }
    body.update(extra)
    return client.post("/api/v1/transactions/issue", json=body)


# --- ISSUE / RETURN ---

def test_issue_item_success(client, api_store):
    item = api_store.add_item("Football", quantity=10, min_stock_level=5)

    response = issue(client, item.id, quantity=6, purpose="PE lesson")

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["status"] == "pending"
    assert data["display_status"] == "pending"
    assert data["item_name"] == "Football"
    assert api_store.items[item.id].quantity == 4


def test_issue_insufficient_stock_names_the_rule(client, api_store):
    item = api_store.add_item("Football", quantity=4)

    response = issue(client, item.id, quantity=5)

    assert response.status_code == 409
    error = response.json()["error"]
    assert error["code"] == "insufficient_stock"
    assert "only 4 available" in error["message"]
    assert api_store.transactions == {}


def test_issue_with_past_return_date(client, api_store):
    item = api_store.add_item("Tablet", quantity=2)

    response = issue(client, item.id, expected_return_date=iso_in(-1))

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "invalid_return_date"


def test_issue_unknown_item(client):
    response = issue(client, uuid.uuid4())

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "item_not_found"


def test_use_does_not_need_a_return_date(client, api_store):
    item = api_store.add_item("Paper", quantity=100)

    response = client.post("/api/v1/transactions/issue", json={
        "item_id": str(item.id),
        "quantity": 5,
        "recipient_name": "Art room",
        "transaction_type": "use",
    })

    assert response.status_code == 201
    assert response.json()["data"]["status"] == "returned"
    assert api_store.items[item.id].quantity == 95


def test_return_then_return_again(client, api_store):
    item = api_store.add_item("Microscope", quantity=1)
    txn_id = issue(client, item.id).json()["data"]["id"]
    assert api_store.items[item.id].status == ItemStatus.CHECKED_OUT

    first = client.post(f"/api/v1/transactions/{txn_id}/return", json={"notes": "Lens cleaned"})
    second = client.post(f"/api/v1/transactions/{txn_id}/return")

    assert first.status_code == 200
    assert first.json()["data"]["notes"] == "Lens cleaned"
    assert second.status_code == 409
    assert second.json()["error"]["code"] == "already_returned"
    assert api_store.items[item.id].quantity == 1
    assert api_store.items[item.id].status == ItemStatus.AVAILABLE


def test_issue_request_validation_error(client):
    response = client.post("/api/v1/transactions/issue", json={"quantity": 1})

    assert response.status_code == 422
    body = response.json()
    assert body["success"] is False
    assert body["error"]["code"] == "validation_error"


# --- LEDGER READS ---

def test_list_and_get_transactions(client, api_store):
    item = api_store.add_item("Camera", quantity=3)
    txn_id = issue(client, item.id).json()["data"]["id"]
    issue(client, item.id)

    listed = client.get("/api/v1/transactions", params={"status": "pending", "limit": 1})
    fetched = client.get(f"/api/v1/transactions/{txn_id}")
    overdue = client.get("/api/v1/transactions", params={"status": "overdue"})

    assert listed.status_code == 200
    assert len(listed.json()["data"]) == 1
    assert fetched.json()["data"]["id"] == txn_id
    assert overdue.json()["data"] == []
    assert client.get("/api/v1/transactions/overdue").json()["data"] == []


def test_get_unknown_transaction(client):
    response = client.get(f"/api/v1/transactions/{uuid.uuid4()}")

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "transaction_not_found"


# --- ADJUST & RECONCILE ---

def test_adjust_quantity(client, api_store):
    item = api_store.add_item("Markers", quantity=3)

    added = client.post(f"/api/v1/items/{item.id}/adjust", json={"delta": 5, "notes": "Delivery"})
    too_many = client.post(f"/api/v1/items/{item.id}/adjust", json={"delta": -20})

    assert added.status_code == 200
    assert added.json()["data"]["quantity"] == 8
    assert too_many.status_code == 409
    assert too_many.json()["error"]["code"] == "negative_quantity"
    assert api_store.items[item.id].quantity == 8


def test_failed_item_write_is_flagged_and_resolved(client, api_store):
    item = api_store.add_item("Laptop", quantity=4)
    api_store.fail_next_item_writes(3)

    failed = issue(client, item.id, quantity=2)
    assert failed.status_code == 500
    assert failed.json()["error"]["code"] == "reconciliation_required"

    flagged = client.get("/api/v1/transactions", params={"needs_reconciliation": "true"}).json()["data"]
    assert len(flagged) == 1

    early_return = client.post(f"/api/v1/transactions/{flagged[0]['id']}/return")
    assert early_return.status_code == 409
    assert early_return.json()["error"]["code"] == "reconciliation_pending"
    assert api_store.items[item.id].quantity == 4

    resolved = client.post(f"/api/v1/transactions/{flagged[0]['id']}/reconcile", json={"action": "apply"})
    assert resolved.status_code == 200
    assert resolved.json()["data"]["needs_reconciliation"] is False
    assert api_store.items[item.id].quantity == 2
    assert api_store.transactions[uuid.UUID(flagged[0]["id"])].status == TransactionStatus.PENDING


def test_store_outage_answers_503(client, api_store):
    item = api_store.add_item("Laptop", quantity=4)
    with patch.object(api_store, "get_item", AsyncMock(side_effect=StoreUnavailable("db down"))):
        response = issue(client, item.id)

    assert response.status_code == 503
    assert response.json()["error"]["code"] == "store_unavailable"


# --- ITEMS & DASHBOARD (service layer mocked) ---

def test_list_items_passes_filters(client):
    page = Page[ItemRecord](items=[], total=0, page=2, page_size=5)
    with patch("app.services.inventory_service.list_items", new_callable=AsyncMock, return_value=page) as mock_list:
        response = client.get("/api/v1/items", params={"status": "available", "page": 2, "page_size": 5, "search": "ball"})

    assert response.status_code == 200
    assert response.json()["data"]["page"] == 2
    filters = mock_list.call_args.args[0]
    assert filters.status == ItemStatus.AVAILABLE
    assert filters.search == "ball"
    assert filters.page_size == 5


def test_list_items_rejects_oversized_pages(client):
    response = client.get("/api/v1/items", params={"page_size": 10_000})
    assert response.status_code == 422


def test_create_item_books_stock_through_engine(client):
    created = ItemRecord(id=uuid.uuid4(), name="Globe", quantity=2)
    with patch("app.services.inventory_service.create_item", new_callable=AsyncMock, return_value=created) as mock_create:
        response = client.post("/api/v1/items", json={"name": "Globe", "quantity": 2})

    assert response.status_code == 201
    assert response.json()["data"]["name"] == "Globe"
    data, engine = mock_create.call_args.args
    assert data.quantity == 2
    assert isinstance(engine, StockReconciliationEngine)


def test_get_item_not_found(client):
    missing = uuid.uuid4()
    with patch("app.services.inventory_service.get_item", new_callable=AsyncMock, side_effect=ItemNotFound(missing)):
        response = client.get(f"/api/v1/items/{missing}")

    assert response.status_code == 404
    assert response.json()["error"]["details"]["item_id"] == str(missing)


def test_delete_item_retires_by_default(client):
    item_id = uuid.uuid4()
    retired = ItemRecord(id=item_id, name="Old projector", status=ItemStatus.RETIRED)
    with patch("app.services.inventory_service.retire_item", new_callable=AsyncMock, return_value=retired) as mock_retire, \
         patch("app.services.inventory_service.hard_delete_item", new_callable=AsyncMock) as mock_hard:
        response = client.delete(f"/api/v1/items/{item_id}")

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "retired"
    mock_retire.assert_awaited_once_with(item_id)
    mock_hard.assert_not_awaited()


def test_dashboard_stats(client):
    stats = DashboardStats(total_items=12, overdue_count=1)
    with patch("app.api.v1.dashboard.get_dashboard_stats", new_callable=AsyncMock, return_value=stats) as mock_stats:
        response = client.get("/api/v1/dashboard/stats", params={"activity_limit": 5})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["total_items"] == 12
    assert data["overdue_count"] == 1
    assert data["area_distribution"] == []
    assert data["recent_activity"] == []
    mock_stats.assert_awaited_once_with(low_stock_limit=10, activity_limit=5)


# --- USERS (service layer mocked) ---

def test_get_unknown_user(client):
    user_id = uuid.uuid4()
    with patch("app.api.v1.users.user_service.get_user", AsyncMock(side_effect=UserNotFound(user_id))):
        response = client.get(f"/api/v1/users/{user_id}")

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "user_not_found"


def test_delete_user_deactivates(client):
    user = UserResponse(
        id=uuid.uuid4(), email="k.lee@school.edu", name="Kim Lee", role=UserRole.MANAGER, is_active=False
    )
    with patch("app.api.v1.users.user_service.deactivate_user", AsyncMock(return_value=user)) as mock_deactivate:
        response = client.delete(f"/api/v1/users/{user.id}")

    assert response.status_code == 200
    assert response.json()["data"]["is_active"] is False
    mock_deactivate.assert_awaited_once_with(user.id)


def test_assign_user_areas(client):
    user_id, area_id = uuid.uuid4(), uuid.uuid4()
    user = UserResponse(
        id=user_id, email="k.lee@school.edu", name="Kim Lee", role=UserRole.MANAGER,
        areas=[{"id": area_id, "name": "Library"}],
    )
    with patch("app.api.v1.users.user_service.assign_areas", AsyncMock(return_value=user)) as mock_assign:
        response = client.put(f"/api/v1/users/{user_id}/areas", json={"area_ids": [str(area_id)]})

    assert response.status_code == 200
    assert response.json()["data"]["areas"] == [{"id": str(area_id), "name": "Library"}]
    mock_assign.assert_awaited_once_with(user_id, [area_id])


def test_role_change_rejects_unknown_role(client):
    response = client.put(f"/api/v1/users/{uuid.uuid4()}/role", json={"role": "principal"})
    assert response.status_code == 422
