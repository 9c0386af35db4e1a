"""Tortoise ORM implementation of the stock store."""

import logging
import uuid
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

from tortoise.exceptions import DBConnectionError, IntegrityError, OperationalError, TransactionManagementError
from tortoise.expressions import F
from tortoise.transactions import in_transaction

from app.core.exceptions import (
    InsufficientStock,
    ItemNotFound,
    StoreUnavailable,
    TransactionConflict,
    TransactionNotFound,
    ValidationError,
)
from app.events.change_feed import ChangeFeed, item_change_feed
from app.events.outbox_utility import (
    ITEM_CHANGED,
    LOW_STOCK_ALERT,
    create_outbox_event,
    item_changed_payload,
    low_stock_payload,
)
from app.models.inventory import InventoryItem, derive_item_status
from app.models.transaction import InventoryTransaction, TransactionStatus
from app.schemas.records import ItemRecord, NewTransaction, TransactionFilter, TransactionRecord, utcnow
from app.stores.base import MUTABLE_TRANSACTION_FIELDS, ChangeCallback, StockStore, Unsubscribe

log = logging.getLogger("tortoise_store")


@contextmanager
def store_errors():
    """Maps driver failures onto the domain: integrity problems are final, the rest transient."""
    try:
        yield
    except IntegrityError as e:
        raise ValidationError(f"Rejected by the database: {e}") from e
    except (OperationalError, DBConnectionError, TransactionManagementError) as e:
        log.warning(f"Store call failed: {e}")
        raise StoreUnavailable(str(e)) from e


def to_item_record(item: InventoryItem) -> ItemRecord:
    return ItemRecord.model_validate(item)


def to_transaction_record(txn: InventoryTransaction, item_name: Optional[str] = None) -> TransactionRecord:
    record = TransactionRecord.model_validate(txn)
    if item_name is not None:
        record = record.model_copy(update={"item_name": item_name})
    return record


def _check_storable(fields: Dict[str, Any]) -> None:
    if fields.get("status") == TransactionStatus.OVERDUE:
        raise ValidationError("'overdue' is derived from the expected return date and cannot be stored.")


class TortoiseStockStore(StockStore):

    def __init__(self, feed: ChangeFeed = item_change_feed):
        self._feed = feed

    async def get_item(self, item_id: uuid.UUID) -> ItemRecord:
        with store_errors():
            item = await InventoryItem.get_or_none(id=item_id)
        if item is None:
            raise ItemNotFound(item_id)
        return to_item_record(item)

    async def conditional_decrement_quantity(self, item_id: uuid.UUID, amount: int) -> ItemRecord:
        with store_errors():
            async with in_transaction() as conn:
                # UPDATE ... SET quantity = quantity - n WHERE id = :id AND quantity >= n
                updated = await InventoryItem.filter(id=item_id, quantity__gte=amount).using_db(conn).update(
                    quantity=F("quantity") - amount,
                    updated_at=utcnow(),
                )
                if not updated:
                    current = await InventoryItem.get_or_none(id=item_id).using_db(conn)
                    if current is None:
                        raise ItemNotFound(item_id)
                    raise InsufficientStock(item_id, amount, current.quantity)
                item = await self._settle_item(item_id, conn)
        return to_item_record(item)

    async def increment_quantity(self, item_id: uuid.UUID, amount: int) -> ItemRecord:
        with store_errors():
            async with in_transaction() as conn:
                updated = await InventoryItem.filter(id=item_id).using_db(conn).update(
                    quantity=F("quantity") + amount,
                    updated_at=utcnow(),
                )
                if not updated:
                    raise ItemNotFound(item_id)
                item = await self._settle_item(item_id, conn)
        return to_item_record(item)

    async def _settle_item(self, item_id: uuid.UUID, conn: Any) -> InventoryItem:
        """Re-derives status after a quantity write and queues the change events on the same connection."""
        item = await InventoryItem.get(id=item_id).using_db(conn)
        status = derive_item_status(item.status, item.quantity)
        if status != item.status:
            item.status = status
            await item.save(update_fields=["status", "updated_at"], using_db=conn)

        await create_outbox_event(ITEM_CHANGED, item_changed_payload(item), aggregate_id=item.id, conn=conn)
        if item.quantity <= item.min_stock_level:
            await create_outbox_event(LOW_STOCK_ALERT, low_stock_payload(item), aggregate_id=item.id, conn=conn)
        return item

    async def insert_transaction(self, record: NewTransaction) -> TransactionRecord:
        fields = record.model_dump()
        _check_storable(fields)
        with store_errors():
            txn = await InventoryTransaction.create(**fields)
        return to_transaction_record(txn)

    async def get_transaction(self, transaction_id: uuid.UUID) -> TransactionRecord:
        with store_errors():
            txn = await InventoryTransaction.get_or_none(id=transaction_id).select_related("item")
        if txn is None:
            raise TransactionNotFound(transaction_id)
        return to_transaction_record(txn, item_name=txn.item.name)

    async def update_transaction(
        self,
        transaction_id: uuid.UUID,
        fields: Dict[str, Any],
        expect_status: Optional[TransactionStatus] = None,
    ) -> TransactionRecord:
        unknown = set(fields) - MUTABLE_TRANSACTION_FIELDS
        if unknown:
            raise ValidationError(f"Ledger fields cannot be changed: {', '.join(sorted(unknown))}")
        _check_storable(fields)

        with store_errors():
            query = InventoryTransaction.filter(id=transaction_id)
            if expect_status is not None:
                query = query.filter(status=expect_status)
            updated = await query.update(**fields, updated_at=utcnow())
            if not updated:
                current = await InventoryTransaction.get_or_none(id=transaction_id)
                if current is None:
                    raise TransactionNotFound(transaction_id)
                expected = expect_status.value if expect_status is not None else "any"
                raise TransactionConflict(transaction_id, expected, current.status.value)
        return await self.get_transaction(transaction_id)

    async def list_transactions(self, query: TransactionFilter) -> List[TransactionRecord]:
        qs = InventoryTransaction.all().select_related("item")
        if query.status is not None:
            qs = qs.filter(status=query.status)
        if query.transaction_type is not None:
            qs = qs.filter(transaction_type=query.transaction_type)
        if query.item_id is not None:
            qs = qs.filter(item_id=query.item_id)
        if query.needs_reconciliation is not None:
            qs = qs.filter(needs_reconciliation=query.needs_reconciliation)
        if query.overdue_before is not None:
            qs = qs.filter(status=TransactionStatus.PENDING, expected_return_date__lt=query.overdue_before)

        if query.order_by_due_date:
            qs = qs.order_by("expected_return_date", "id")
        else:
            # Stable order so offset pages can be resumed
            qs = qs.order_by("-created_at", "-id")
        if query.offset:
            qs = qs.offset(query.offset)
        if query.limit:
            qs = qs.limit(query.limit)

        with store_errors():
            rows = await qs
        return [to_transaction_record(t, item_name=t.item.name) for t in rows]

    def subscribe_to_item_changes(self, callback: ChangeCallback) -> Unsubscribe:
        return self._feed.subscribe(callback)
