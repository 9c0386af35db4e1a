"""
Domain exceptions for the inventory service.

Every rejected operation carries a machine-readable ``code`` and a message
naming the rule that was violated. ``status_code`` is what the API layer
answers with when the exception escapes a route.
"""

from typing import Any, Dict, Optional


class InventoryError(Exception):
    """Base exception for all inventory errors."""

    status_code = 400

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


# Input Errors
class ValidationError(InventoryError):
    """Bad input shape or range. Reported to the caller, never retried."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="validation_error", details=details)


class InvalidReturnDate(ValidationError):
    def __init__(self, message: str = "Expected return date must be in the future."):
        super().__init__(message)
        self.code = "invalid_return_date"


class NotReturnable(ValidationError):
    """Only 'issue' entries that are still pending can be returned."""

    def __init__(self, transaction_id: Any, transaction_type: str):
        super().__init__(
            f"Transaction {transaction_id} is a '{transaction_type}' entry; only 'issue' entries can be returned.",
            details={"transaction_id": str(transaction_id), "transaction_type": transaction_type},
        )
        self.code = "not_returnable"


# Lookup Errors
class NotFoundError(InventoryError):
    status_code = 404


class ItemNotFound(NotFoundError):
    def __init__(self, item_id: Any):
        super().__init__(
            f"Inventory item not found: {item_id}",
            code="item_not_found",
            details={"item_id": str(item_id)},
        )


class TransactionNotFound(NotFoundError):
    def __init__(self, transaction_id: Any):
        super().__init__(
            f"Transaction not found: {transaction_id}",
            code="transaction_not_found",
            details={"transaction_id": str(transaction_id)},
        )


class CategoryNotFound(NotFoundError):
    def __init__(self, category_id: Any):
        super().__init__(
            f"Category not found: {category_id}",
            code="category_not_found",
            details={"category_id": str(category_id)},
        )


class UserNotFound(NotFoundError):
    def __init__(self, user_id: Any):
        super().__init__(
            f"User not found: {user_id}",
            code="user_not_found",
            details={"user_id": str(user_id)},
        )


class AreaNotFound(NotFoundError):
    def __init__(self, area_id: Any):
        super().__init__(
            f"Area not found: {area_id}",
            code="area_not_found",
            details={"area_id": str(area_id)},
        )


# Business Rule Errors
class InsufficientStock(InventoryError):
    """Requested more than is on hand. Also reported when a concurrent issue wins the race."""

    status_code = 409

    def __init__(self, item_id: Any, requested: int, available: int):
        super().__init__(
            f"Insufficient stock: requested {requested}, only {available} available.",
            code="insufficient_stock",
            details={"item_id": str(item_id), "requested": requested, "available": available},
        )
        self.requested = requested
        self.available = available


class NegativeQuantity(InventoryError):
    status_code = 409

    def __init__(self, item_id: Any, delta: int, on_hand: int):
        super().__init__(
            f"Adjustment of {delta} would make quantity negative: only {on_hand} on hand.",
            code="negative_quantity",
            details={"item_id": str(item_id), "delta": delta, "on_hand": on_hand},
        )


class ItemRetired(InventoryError):
    status_code = 409

    def __init__(self, item_id: Any):
        super().__init__(
            f"Item {item_id} is retired and cannot be issued or changed.",
            code="item_retired",
            details={"item_id": str(item_id)},
        )


class AlreadyReturned(InventoryError):
    status_code = 409

    def __init__(self, transaction_id: Any):
        super().__init__(
            f"Transaction {transaction_id} has already been returned.",
            code="already_returned",
            details={"transaction_id": str(transaction_id)},
        )


class ReconciliationPending(InventoryError):
    """The entry is flagged; an operator must resolve it before it can change again."""

    status_code = 409

    def __init__(self, transaction_id: Any):
        super().__init__(
            f"Transaction {transaction_id} is awaiting manual reconciliation and cannot be returned yet.",
            code="reconciliation_pending",
            details={"transaction_id": str(transaction_id)},
        )


class TransactionConflict(InventoryError):
    """A guarded ledger update found the entry in a different status than expected."""

    status_code = 409

    def __init__(self, transaction_id: Any, expected: str, actual: str):
        super().__init__(
            f"Transaction {transaction_id} is '{actual}', expected '{expected}'.",
            code="transaction_conflict",
            details={"transaction_id": str(transaction_id), "expected": expected, "actual": actual},
        )
        self.expected = expected
        self.actual = actual


# Store Errors
class StoreUnavailable(InventoryError):
    """Transient failure talking to the data store. Safe to retry."""

    status_code = 503

    def __init__(self, message: str = "Data store unavailable."):
        super().__init__(message, code="store_unavailable")


class ReconciliationInconsistency(InventoryError):
    """
    The ledger entry was written but the matching item write could not be
    confirmed. The entry is flagged for manual reconciliation.
    """

    status_code = 500

    def __init__(self, transaction_id: Any, reason: str):
        super().__init__(
            f"Ledger entry {transaction_id} is flagged for manual reconciliation: {reason}",
            code="reconciliation_required",
            details={"transaction_id": str(transaction_id), "reason": reason},
        )
        self.transaction_id = transaction_id
