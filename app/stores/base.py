"""Abstract persistence interface consumed by the stock engine."""

import uuid
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from app.models.transaction import TransactionStatus
from app.schemas.records import ItemChange, ItemRecord, NewTransaction, TransactionFilter, TransactionRecord

ChangeCallback = Callable[[ItemChange], Union[None, Awaitable[None]]]
Unsubscribe = Callable[[], None]


class StockStore(ABC):
    """
    Item and ledger persistence.

    Both quantity writes must be atomic at the store and must recompute the
    item status in the same write. Implementations raise ``StoreUnavailable``
    for transient failures; every other error is final.
    """

    @abstractmethod
    async def get_item(self, item_id: uuid.UUID) -> ItemRecord:
        """Fetch an item. Raises ItemNotFound."""

    @abstractmethod
    async def conditional_decrement_quantity(self, item_id: uuid.UUID, amount: int) -> ItemRecord:
        """
        Take ``amount`` off the item only if at least that much is on hand.
        Raises InsufficientStock (with the quantity seen) or ItemNotFound.
        """

    @abstractmethod
    async def increment_quantity(self, item_id: uuid.UUID, amount: int) -> ItemRecord:
        """Add ``amount`` to the item. Raises ItemNotFound."""

    @abstractmethod
    async def insert_transaction(self, record: NewTransaction) -> TransactionRecord:
        """Append a ledger entry."""

    @abstractmethod
    async def get_transaction(self, transaction_id: uuid.UUID) -> TransactionRecord:
        """Fetch a ledger entry. Raises TransactionNotFound."""

    @abstractmethod
    async def update_transaction(
        self,
        transaction_id: uuid.UUID,
        fields: Dict[str, Any],
        expect_status: Optional[TransactionStatus] = None,
    ) -> TransactionRecord:
        """
        Update the mutable fields of a ledger entry. With ``expect_status`` the
        update only applies while the stored status still matches, otherwise
        TransactionConflict is raised. Raises TransactionNotFound.
        """

    @abstractmethod
    async def list_transactions(self, query: TransactionFilter) -> List[TransactionRecord]:
        """Newest first unless ``order_by_due_date`` is set."""

    @abstractmethod
    def subscribe_to_item_changes(self, callback: ChangeCallback) -> Unsubscribe:
        """Register for item change notifications; returns the unsubscribe callable."""


# Fields of a ledger entry that may change after creation
MUTABLE_TRANSACTION_FIELDS = frozenset({
    "status",
    "actual_return_date",
    "notes",
    "needs_reconciliation",
    "reconciliation_note",
    "owed_write",
})
