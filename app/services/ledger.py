import uuid
from datetime import datetime
from typing import Callable, List, Optional

from app.models.transaction import TransactionStatus, TransactionType
from app.schemas.records import TransactionFilter, TransactionRecord, utcnow
from app.stores.base import StockStore


class LedgerReader:
    """
    Read side of the ledger. 'overdue' is answered from the expected return
    date at query time; it is never a stored status.
    """

    def __init__(self, store: StockStore, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.clock = clock

    async def list_transactions(
        self,
        status: Optional[TransactionStatus] = None,
        transaction_type: Optional[TransactionType] = None,
        item_id: Optional[uuid.UUID] = None,
        needs_reconciliation: Optional[bool] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[TransactionRecord]:
        query = TransactionFilter(
            transaction_type=transaction_type,
            item_id=item_id,
            needs_reconciliation=needs_reconciliation,
            limit=limit,
            offset=offset,
        )
        if status == TransactionStatus.OVERDUE:
            query.overdue_before = self.clock()
        else:
            query.status = status
        return await self.store.list_transactions(query)

    async def list_overdue(self, limit: Optional[int] = None, offset: int = 0) -> List[TransactionRecord]:
        """Pending issues past their expected return date, most overdue first."""
        return await self.store.list_transactions(TransactionFilter(
            overdue_before=self.clock(),
            order_by_due_date=True,
            limit=limit,
            offset=offset,
        ))

    async def get_transaction(self, transaction_id: uuid.UUID) -> TransactionRecord:
        return await self.store.get_transaction(transaction_id)

    async def count_overdue(self) -> int:
        return len(await self.list_overdue())
