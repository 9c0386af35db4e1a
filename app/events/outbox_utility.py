"""Outbox event types for item writes and the rows that carry them."""
from typing import Any, Dict, Optional

from app.models.inventory import InventoryItem
from app.models.outbox import OutboxEvent

ITEM_CHANGED = "inventory.item.changed.v1"
LOW_STOCK_ALERT = "inventory.low_stock_alert.v1"

ITEM_AGGREGATE = "inventory_item"


def item_changed_payload(item: InventoryItem) -> Dict[str, Any]:
    return {
        "item_id": str(item.id),
        "quantity": item.quantity,
        "status": item.status.value,
        "is_low_stock": item.quantity <= item.min_stock_level,
    }


def low_stock_payload(item: InventoryItem) -> Dict[str, Any]:
    return {
        "item_id": str(item.id),
        "name": item.name,
        "quantity": item.quantity,
        "min_stock_level": item.min_stock_level,
    }


async def create_outbox_event(
    event_type: str,
    payload: Dict[str, Any],
    aggregate_id: Optional[Any] = None,
    aggregate_type: str = ITEM_AGGREGATE,
    conn: Any = None,
) -> OutboxEvent:
    """
    Queues an event on ``conn`` so it commits or rolls back with the item
    write that produced it.
    """
    return await OutboxEvent.create(
        aggregate_type=aggregate_type,
        aggregate_id=aggregate_id,
        event_type=event_type,
        payload=payload,
        using_db=conn,
    )
