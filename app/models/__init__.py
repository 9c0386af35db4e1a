# app/models/__init__.py
from .inventory import Area, Category, InventoryItem, ItemCondition, ItemStatus, derive_item_status
from .transaction import InventoryTransaction, OwedWrite, TransactionStatus, TransactionType
from .outbox import OutboxEvent
from .user import Profile, UserArea, UserRole

# Export all models
__all__ = [
    "Area",
    "Category",
    "InventoryItem",
    "InventoryTransaction",
    "ItemCondition",
    "ItemStatus",
    "OutboxEvent",
    "OwedWrite",
    "Profile",
    "TransactionStatus",
    "TransactionType",
    "UserArea",
    "UserRole",
    "derive_item_status",
]
