"""
Stock reconciliation: the only code path that changes an item's quantity.

Every operation is a ledger write followed by an item write, and the store
gives no atomicity across the two. The ledger entry always goes first. A
rejected item write (lost race, vanished item) cancels the entry. An item
write that cannot be confirmed (store down after retries, caller cancelled)
flags the entry for manual reconciliation and raises; success is never
reported while the two disagree. A ledger insert whose outcome is unknown is
voided by its id before the caller sees the error.
"""
import asyncio
import logging
import uuid
from datetime import datetime
from enum import Enum
from functools import partial
from typing import Awaitable, Callable, Optional, TypeVar, Union

from app.core.config import RECONCILE_BACKOFF_SECONDS, RECONCILE_MAX_ATTEMPTS
from app.core.exceptions import (
    AlreadyReturned,
    InsufficientStock,
    InvalidReturnDate,
    ItemNotFound,
    ItemRetired,
    NegativeQuantity,
    NotReturnable,
    ReconciliationInconsistency,
    ReconciliationPending,
    StoreUnavailable,
    TransactionConflict,
    TransactionNotFound,
    ValidationError,
)
from app.models.inventory import ItemStatus
from app.models.transaction import OwedWrite, TransactionStatus, TransactionType
from app.schemas.records import ItemRecord, NewTransaction, TransactionRecord, as_utc, utcnow
from app.stores.base import StockStore

log = logging.getLogger("stock_engine")

T = TypeVar("T")

# Failures tolerated while flagging; the caller raises ReconciliationInconsistency regardless
FLAG_WRITE_ERRORS = (StoreUnavailable, TransactionNotFound, ValidationError)


class ReconciliationAction(str, Enum):
    APPLY = "apply"      # Perform the write the entry still owes
    CANCEL = "cancel"    # The stock never moved; close the entry as cancelled
    DISMISS = "dismiss"  # The item write did land; just clear the flag


class StockReconciliationEngine:

    def __init__(
        self,
        store: StockStore,
        max_attempts: int = RECONCILE_MAX_ATTEMPTS,
        backoff_seconds: float = RECONCILE_BACKOFF_SECONDS,
        clock: Callable[[], datetime] = utcnow,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.store = store
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.clock = clock

    # ----------- Operations -----------

    async def issue(
        self,
        item_id: uuid.UUID,
        quantity: int,
        recipient_name: str,
        mode: TransactionType = TransactionType.ISSUE,
        expected_return_date: Optional[datetime] = None,
        purpose: Optional[str] = None,
        notes: Optional[str] = None,
        recipient_email: Optional[str] = None,
        recipient_department: Optional[str] = None,
        issued_by: Optional[uuid.UUID] = None,
        user_id: Optional[uuid.UUID] = None,
    ) -> TransactionRecord:
        """
        Checks an item out ('issue', comes back later) or consumes it ('use').
        Returns the created ledger entry.
        """
        if mode not in (TransactionType.ISSUE, TransactionType.USE):
            raise ValidationError(f"Issue mode must be 'issue' or 'use', got '{mode}'.")
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1.", details={"quantity": quantity})
        if not recipient_name or not recipient_name.strip():
            raise ValidationError("Recipient name is required.")

        now = self.clock()
        due = None
        if mode == TransactionType.ISSUE:
            if expected_return_date is None:
                raise InvalidReturnDate("Expected return date is required when issuing an item.")
            due = as_utc(expected_return_date)
            if due <= now:
                raise InvalidReturnDate()

        item = await self.store.get_item(item_id)
        if item.status == ItemStatus.RETIRED:
            raise ItemRetired(item_id)
        # Early answer only; the conditional decrement below is the real check
        if quantity > item.quantity:
            raise InsufficientStock(item_id, quantity, item.quantity)

        txn = await self._record(NewTransaction(
            item_id=item_id,
            transaction_type=mode,
            quantity=quantity,
            # Consumption is terminal at creation
            status=TransactionStatus.PENDING if mode == TransactionType.ISSUE else TransactionStatus.RETURNED,
            issue_date=now,
            expected_return_date=due,
            user_id=user_id,
            issued_by=issued_by,
            recipient_name=recipient_name.strip(),
            recipient_email=recipient_email,
            recipient_department=recipient_department,
            purpose=purpose,
            notes=notes,
        ))

        try:
            item = await self._apply_item_write(
                txn, lambda: self.store.conditional_decrement_quantity(item_id, quantity), OwedWrite.DECREMENT
            )
        except (InsufficientStock, ItemNotFound) as e:
            await self._cancel_entry(txn, e.message)
            raise

        log.info(
            f"{mode.value.upper()}: {quantity} x item {item_id} to {txn.recipient_name} "
            f"(entry {txn.id}); {item.quantity} left, status {item.status.value}"
        )
        if item.is_low_stock:
            log.warning(f"Low stock for item {item_id}: {item.quantity} left, minimum {item.min_stock_level}")
        return txn

    async def return_item(self, transaction_id: uuid.UUID, notes: Optional[str] = None) -> TransactionRecord:
        """Closes a pending (or overdue) issue entry and puts its quantity back on hand."""
        txn = await self.store.get_transaction(transaction_id)
        if txn.transaction_type != TransactionType.ISSUE:
            raise NotReturnable(transaction_id, txn.transaction_type.value)
        if txn.needs_reconciliation:
            raise ReconciliationPending(transaction_id)
        if txn.status == TransactionStatus.RETURNED:
            raise AlreadyReturned(transaction_id)
        if txn.status == TransactionStatus.CANCELLED:
            raise ValidationError(
                f"Transaction {transaction_id} was cancelled and cannot be returned.",
                details={"transaction_id": str(transaction_id)},
            )

        returned_at = self.clock()
        fields = {"status": TransactionStatus.RETURNED, "actual_return_date": returned_at}
        if notes is not None:
            fields["notes"] = notes

        try:
            returned = await self.store.update_transaction(
                transaction_id, fields, expect_status=TransactionStatus.PENDING
            )
        except TransactionConflict as e:
            if e.actual == TransactionStatus.RETURNED.value:
                raise AlreadyReturned(transaction_id) from e
            raise
        except StoreUnavailable:
            # The update may have landed anyway; our timestamp tells us if it was ours
            try:
                returned = await self._retry(
                    lambda: self.store.get_transaction(transaction_id), "re-read ledger entry"
                )
            except StoreUnavailable as reread_error:
                reason = "return outcome unknown: ledger update and re-read both failed"
                await self._flag(txn, reason, OwedWrite.INCREMENT)
                raise ReconciliationInconsistency(transaction_id, reason) from reread_error
            landed = (
                returned.status == TransactionStatus.RETURNED
                and returned.actual_return_date is not None
                and as_utc(returned.actual_return_date) == as_utc(returned_at)
            )
            if not landed:
                raise

        item = await self._apply_item_write(
            returned, lambda: self.store.increment_quantity(txn.item_id, txn.quantity), OwedWrite.INCREMENT
        )
        log.info(
            f"RETURN: {txn.quantity} x item {txn.item_id} (entry {transaction_id}); "
            f"{item.quantity} on hand, status {item.status.value}"
        )
        return returned

    async def adjust_quantity(
        self,
        item_id: uuid.UUID,
        delta: int,
        notes: Optional[str] = None,
        actor: Optional[uuid.UUID] = None,
    ) -> ItemRecord:
        """Manual stock correction, recorded as a terminal 'add' or 'remove' entry."""
        if delta == 0:
            raise ValidationError("Adjustment must change the quantity.", details={"delta": delta})

        item = await self.store.get_item(item_id)
        if item.quantity + delta < 0:
            raise NegativeQuantity(item_id, delta, item.quantity)

        txn = await self._record(NewTransaction(
            item_id=item_id,
            transaction_type=TransactionType.ADD if delta > 0 else TransactionType.REMOVE,
            quantity=abs(delta),
            status=TransactionStatus.RETURNED,
            issue_date=self.clock(),
            issued_by=actor,
            notes=notes,
        ))

        if delta > 0:
            write = partial(self.store.increment_quantity, item_id, delta)
        else:
            write = partial(self.store.conditional_decrement_quantity, item_id, -delta)

        try:
            item = await self._apply_item_write(txn, write, OwedWrite.INCREMENT if delta > 0 else OwedWrite.DECREMENT)
        except InsufficientStock as e:
            await self._cancel_entry(txn, e.message)
            raise NegativeQuantity(item_id, delta, e.available) from e
        except ItemNotFound as e:
            await self._cancel_entry(txn, e.message)
            raise

        log.info(f"ADJUST: item {item_id} by {delta:+d} (entry {txn.id}); {item.quantity} on hand")
        return item

    async def resolve_reconciliation(
        self,
        transaction_id: uuid.UUID,
        action: ReconciliationAction,
        notes: Optional[str] = None,
    ) -> TransactionRecord:
        """Operator follow-up for an entry flagged by a failed or unconfirmed write."""
        txn = await self.store.get_transaction(transaction_id)
        if not txn.needs_reconciliation:
            raise ValidationError(
                f"Transaction {transaction_id} is not flagged for reconciliation.",
                details={"transaction_id": str(transaction_id)},
            )

        fields = {
            "needs_reconciliation": False,
            "owed_write": None,
            "reconciliation_note": notes or f"Resolved by operator: {action.value}",
        }
        if action == ReconciliationAction.APPLY:
            fields.update(await self._settle_owed_write(txn))
        elif action == ReconciliationAction.CANCEL:
            if txn.transaction_type == TransactionType.ISSUE and txn.status == TransactionStatus.RETURNED:
                raise ValidationError("A returned issue cannot be cancelled; apply or dismiss instead.")
            if txn.transaction_type == TransactionType.ISSUE and txn.owed_write == OwedWrite.INCREMENT:
                raise ValidationError(
                    "An issue with an unconfirmed return cannot be cancelled; apply or dismiss instead."
                )
            fields["status"] = TransactionStatus.CANCELLED

        resolved = await self._retry(
            lambda: self.store.update_transaction(transaction_id, fields), "clear reconciliation flag"
        )
        log.info(f"RECONCILED: entry {transaction_id} resolved with '{action.value}'")
        return resolved

    # ----------- Write sequencing -----------

    async def _settle_owed_write(self, txn: TransactionRecord) -> dict:
        """Performs what a flagged entry still owes. Returns the extra ledger fields to write."""
        if txn.owed_write is None:
            raise ValidationError(f"Transaction {txn.id} records no outstanding write; cancel or dismiss instead.")
        if txn.owed_write == OwedWrite.VOID:
            return {"status": TransactionStatus.CANCELLED}
        if txn.status == TransactionStatus.CANCELLED:
            raise ValidationError(f"Transaction {txn.id} is cancelled; there is no item write to replay.")

        if txn.owed_write == OwedWrite.DECREMENT:
            if txn.transaction_type == TransactionType.ISSUE and txn.status == TransactionStatus.RETURNED:
                # A return already ran against it; only a manual adjustment can square the quantity
                raise ValidationError(
                    f"Transaction {txn.id} was returned before its issue was confirmed; adjust the item and dismiss."
                )
            await self._retry(
                partial(self.store.conditional_decrement_quantity, txn.item_id, txn.quantity),
                f"replay decrement for entry {txn.id}",
            )
            return {}

        await self._retry(
            partial(self.store.increment_quantity, txn.item_id, txn.quantity),
            f"replay increment for entry {txn.id}",
        )
        if txn.transaction_type == TransactionType.ISSUE and txn.status == TransactionStatus.PENDING:
            # The return's ledger update never landed; complete it
            return {"status": TransactionStatus.RETURNED, "actual_return_date": self.clock()}
        return {}

    async def _retry(self, op: Callable[[], Awaitable[T]], description: str) -> T:
        """Runs ``op``, retrying StoreUnavailable with linear backoff. Re-raises the last failure."""
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await op()
            except StoreUnavailable as e:
                log.warning(f"{description} failed (attempt {attempt}/{self.max_attempts}): {e.message}")
                if attempt == self.max_attempts:
                    raise
                await asyncio.sleep(self.backoff_seconds * attempt)

    async def _record(self, record: NewTransaction) -> TransactionRecord:
        """
        Inserts a ledger entry. The id is ours, so an insert with an unknown
        outcome can be looked up, and voided when even that fails.
        """
        try:
            return await self.store.insert_transaction(record)
        except StoreUnavailable as e:
            try:
                return await self._retry(lambda: self.store.get_transaction(record.id), "re-read ledger entry")
            except TransactionNotFound:
                log.info(f"Ledger insert {record.id} did not land; nothing to reconcile.")
            except StoreUnavailable:
                note = await self._void_unconfirmed_insert(record, f"ledger insert unconfirmed: {e.message}")
                if note:
                    raise ReconciliationInconsistency(record.id, note) from e
            raise e
        except asyncio.CancelledError:
            await self._void_unconfirmed_insert(record, "cancelled before the ledger insert was confirmed")
            raise

    async def _void_unconfirmed_insert(self, record: NewTransaction, reason: str) -> Optional[str]:
        """
        Cancels, by id, an entry that may or may not exist. No item write has
        been attempted for it. Returns the flag note when it could not be voided.
        """
        try:
            await asyncio.shield(self._retry(
                lambda: self.store.update_transaction(
                    record.id,
                    {"status": TransactionStatus.CANCELLED, "reconciliation_note": f"Voided: {reason}"},
                    expect_status=record.status,
                ),
                f"void entry {record.id}",
            ))
        except TransactionNotFound:
            log.info(f"Ledger insert {record.id} did not land; nothing to void.")
            return None
        except (StoreUnavailable, TransactionConflict) as e:
            note = f"{reason}; the entry could not be voided: {e.message}"
            await self._flag(record, note, OwedWrite.VOID)
            return note
        log.warning(f"Voided ledger entry {record.id}: {reason}")
        return None

    async def _apply_item_write(
        self,
        txn: TransactionRecord,
        write: Callable[[], Awaitable[ItemRecord]],
        owed: OwedWrite,
    ) -> ItemRecord:
        try:
            return await self._retry(write, f"item write for entry {txn.id}")
        except StoreUnavailable as e:
            reason = f"item write failed after {self.max_attempts} attempts: {e.message}"
            await self._flag(txn, reason, owed)
            raise ReconciliationInconsistency(txn.id, reason) from e
        except asyncio.CancelledError:
            await self._flag(txn, "cancelled before the item write was confirmed", owed)
            raise

    async def _cancel_entry(self, txn: TransactionRecord, reason: str) -> None:
        """Compensates a ledger entry whose item write was rejected."""
        try:
            await self._retry(
                lambda: self.store.update_transaction(
                    txn.id,
                    {"status": TransactionStatus.CANCELLED, "reconciliation_note": f"Cancelled: {reason}"},
                    expect_status=txn.status,
                ),
                f"cancel entry {txn.id}",
            )
        except (StoreUnavailable, TransactionConflict) as e:
            note = f"stock write rejected ({reason}) and the entry could not be cancelled: {e.message}"
            await self._flag(txn, note, OwedWrite.VOID)
            raise ReconciliationInconsistency(txn.id, note) from e
        log.info(f"Cancelled ledger entry {txn.id}: {reason}")

    async def _flag(self, txn: Union[TransactionRecord, NewTransaction], reason: str, owed: OwedWrite) -> None:
        """
        Marks an entry for manual reconciliation, recording the write it still
        owes. Shielded so a cancelled caller still leaves the mark.
        """
        log.error(
            f"RECONCILIATION REQUIRED for ledger entry {txn.id} (item {txn.item_id}, owes {owed.value}): {reason}"
        )
        try:
            await asyncio.shield(self.store.update_transaction(
                txn.id,
                {"needs_reconciliation": True, "reconciliation_note": reason, "owed_write": owed},
            ))
        except FLAG_WRITE_ERRORS as e:
            log.critical(f"Could not flag ledger entry {txn.id} for reconciliation: {e}")
