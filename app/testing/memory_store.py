"""
Dict-backed stock store for local runs and tests.

Every call yields to the event loop once before touching state, so
concurrent callers interleave the way they would against a remote store,
while each quantity write stays atomic (no await between check and write).
"""
import asyncio
import itertools
import uuid
from typing import Any, Callable, Dict, List, Optional

from app.core.exceptions import (
    InsufficientStock,
    ItemNotFound,
    StoreUnavailable,
    TransactionConflict,
    TransactionNotFound,
    ValidationError,
)
from app.events.change_feed import ChangeFeed
from app.models.inventory import ItemStatus, derive_item_status
from app.models.transaction import TransactionStatus
from app.schemas.records import ItemChange, ItemRecord, NewTransaction, TransactionFilter, TransactionRecord, utcnow
from app.stores.base import MUTABLE_TRANSACTION_FIELDS, ChangeCallback, StockStore, Unsubscribe


class MemoryStockStore(StockStore):

    def __init__(self, clock: Callable = utcnow):
        self.clock = clock
        self.items: Dict[uuid.UUID, ItemRecord] = {}
        self.transactions: Dict[uuid.UUID, TransactionRecord] = {}
        self.item_write_calls = 0
        self._item_errors: List[BaseException] = []
        self._transaction_errors: List[BaseException] = []
        self._read_errors: List[Optional[BaseException]] = []
        self._lost_update_acks: List[BaseException] = []
        self._lost_insert_acks: List[BaseException] = []
        self._order: Dict[uuid.UUID, int] = {}
        self._seq = itertools.count()
        self._feed = ChangeFeed()

    # ----------- Seeding & fault injection -----------

    def add_item(self, name: str = "Item", quantity: int = 0, min_stock_level: int = 0,
                 status: Optional[ItemStatus] = None, **fields: Any) -> ItemRecord:
        now = self.clock()
        item = ItemRecord(
            id=fields.pop("id", None) or uuid.uuid4(),
            name=name,
            quantity=quantity,
            min_stock_level=min_stock_level,
            status=status or derive_item_status(ItemStatus.AVAILABLE, quantity),
            created_at=now,
            updated_at=now,
            **fields,
        )
        self.items[item.id] = item
        return item

    def fail_next_item_writes(self, count: int = 1, error: Optional[BaseException] = None) -> None:
        """The next ``count`` quantity writes raise ``error`` (StoreUnavailable by default) without applying."""
        for _ in range(count):
            self._item_errors.append(error or StoreUnavailable("Injected item write failure."))

    def fail_next_transaction_updates(self, count: int = 1, error: Optional[BaseException] = None) -> None:
        for _ in range(count):
            self._transaction_errors.append(error or StoreUnavailable("Injected ledger update failure."))

    def fail_next_transaction_reads(self, count: int = 1, error: Optional[BaseException] = None, skip: int = 0) -> None:
        """After letting ``skip`` reads through, the next ``count`` ledger reads raise."""
        self._read_errors.extend([None] * skip)
        for _ in range(count):
            self._read_errors.append(error or StoreUnavailable("Injected ledger read failure."))

    def lose_next_transaction_acks(self, count: int = 1, error: Optional[BaseException] = None) -> None:
        """The next ``count`` ledger updates apply, then raise as if the reply was lost."""
        for _ in range(count):
            self._lost_update_acks.append(error or StoreUnavailable("Injected lost ledger update reply."))

    def lose_next_insert_acks(self, count: int = 1, error: Optional[BaseException] = None) -> None:
        """The next ``count`` ledger inserts land, then raise as if the reply was lost."""
        for _ in range(count):
            self._lost_insert_acks.append(error or StoreUnavailable("Injected lost ledger insert reply."))

    # ----------- Items -----------

    def _require_item(self, item_id: uuid.UUID) -> ItemRecord:
        item = self.items.get(item_id)
        if item is None:
            raise ItemNotFound(item_id)
        return item

    async def get_item(self, item_id: uuid.UUID) -> ItemRecord:
        await asyncio.sleep(0)
        return self._require_item(item_id)

    async def conditional_decrement_quantity(self, item_id: uuid.UUID, amount: int) -> ItemRecord:
        await asyncio.sleep(0)
        self._before_item_write()
        item = self._require_item(item_id)
        if item.quantity < amount:
            raise InsufficientStock(item_id, amount, item.quantity)
        return await self._write_quantity(item, item.quantity - amount)

    async def increment_quantity(self, item_id: uuid.UUID, amount: int) -> ItemRecord:
        await asyncio.sleep(0)
        self._before_item_write()
        item = self._require_item(item_id)
        return await self._write_quantity(item, item.quantity + amount)

    def _before_item_write(self) -> None:
        self.item_write_calls += 1
        if self._item_errors:
            raise self._item_errors.pop(0)

    async def _write_quantity(self, item: ItemRecord, quantity: int) -> ItemRecord:
        updated = item.model_copy(update={
            "quantity": quantity,
            "status": derive_item_status(item.status, quantity),
            "updated_at": self.clock(),
        })
        self.items[item.id] = updated
        await self._feed.publish(ItemChange(
            item_id=updated.id,
            quantity=updated.quantity,
            status=updated.status,
            is_low_stock=updated.is_low_stock,
        ))
        return updated

    # ----------- Ledger -----------

    async def insert_transaction(self, record: NewTransaction) -> TransactionRecord:
        await asyncio.sleep(0)
        if record.status == TransactionStatus.OVERDUE:
            raise ValidationError("'overdue' is derived from the expected return date and cannot be stored.")
        item = self.items.get(record.item_id)
        if item is None:
            raise ValidationError(f"Ledger entry references unknown item {record.item_id}")
        now = self.clock()
        txn = TransactionRecord(
            item_name=item.name,
            created_at=now,
            updated_at=now,
            **record.model_dump(),
        )
        self.transactions[txn.id] = txn
        self._order[txn.id] = next(self._seq)
        if self._lost_insert_acks:
            raise self._lost_insert_acks.pop(0)
        return txn

    async def get_transaction(self, transaction_id: uuid.UUID) -> TransactionRecord:
        await asyncio.sleep(0)
        if self._read_errors:
            error = self._read_errors.pop(0)
            if error is not None:
                raise error
        txn = self.transactions.get(transaction_id)
        if txn is None:
            raise TransactionNotFound(transaction_id)
        return txn

    async def update_transaction(
        self,
        transaction_id: uuid.UUID,
        fields: Dict[str, Any],
        expect_status: Optional[TransactionStatus] = None,
    ) -> TransactionRecord:
        await asyncio.sleep(0)
        unknown = set(fields) - MUTABLE_TRANSACTION_FIELDS
        if unknown:
            raise ValidationError(f"Ledger fields cannot be changed: {', '.join(sorted(unknown))}")
        if fields.get("status") == TransactionStatus.OVERDUE:
            raise ValidationError("'overdue' is derived from the expected return date and cannot be stored.")
        if self._transaction_errors:
            raise self._transaction_errors.pop(0)

        txn = self.transactions.get(transaction_id)
        if txn is None:
            raise TransactionNotFound(transaction_id)
        if expect_status is not None and txn.status != expect_status:
            raise TransactionConflict(transaction_id, expect_status.value, txn.status.value)
        updated = txn.model_copy(update={**fields, "updated_at": self.clock()})
        self.transactions[transaction_id] = updated
        if self._lost_update_acks:
            raise self._lost_update_acks.pop(0)
        return updated

    async def list_transactions(self, query: TransactionFilter) -> List[TransactionRecord]:
        await asyncio.sleep(0)
        rows = list(self.transactions.values())
        if query.status is not None:
            rows = [t for t in rows if t.status == query.status]
        if query.transaction_type is not None:
            rows = [t for t in rows if t.transaction_type == query.transaction_type]
        if query.item_id is not None:
            rows = [t for t in rows if t.item_id == query.item_id]
        if query.needs_reconciliation is not None:
            rows = [t for t in rows if t.needs_reconciliation == query.needs_reconciliation]
        if query.overdue_before is not None:
            rows = [
                t for t in rows
                if t.status == TransactionStatus.PENDING
                and t.expected_return_date is not None
                and t.expected_return_date < query.overdue_before
            ]

        if query.order_by_due_date:
            rows.sort(key=lambda t: (t.expected_return_date, self._order[t.id]))
        else:
            rows.sort(key=lambda t: self._order[t.id], reverse=True)
        rows = rows[query.offset:]
        if query.limit:
            rows = rows[:query.limit]
        return rows

    def subscribe_to_item_changes(self, callback: ChangeCallback) -> Unsubscribe:
        return self._feed.subscribe(callback)
