from enum import Enum
from tortoise import fields, models
import uuid


class TransactionType(str, Enum):
    ISSUE = "issue"    # Checkout, expected back
    USE = "use"        # Consumed, never comes back
    ADD = "add"        # Manual adjustment up
    REMOVE = "remove"  # Manual adjustment down


class TransactionStatus(str, Enum):
    PENDING = "pending"
    RETURNED = "returned"
    OVERDUE = "overdue"      # Display only, derived at read time; never stored
    CANCELLED = "cancelled"  # Compensated: the stock write was rejected


class OwedWrite(str, Enum):
    """What a flagged entry still needs before item and ledger agree again."""
    DECREMENT = "decrement"  # Stock should have left the item
    INCREMENT = "increment"  # Stock should have come back
    VOID = "void"            # No stock moved; the entry itself must be cancelled


class InventoryTransaction(models.Model):
    """
    Ledger entry. Never deleted; only the status, return and reconciliation
    fields change after creation.
    """
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    item = fields.ForeignKeyField("models.InventoryItem", related_name="transactions", on_delete=fields.RESTRICT)
    transaction_type = fields.CharEnumField(TransactionType)
    quantity = fields.IntField()
    status = fields.CharEnumField(TransactionStatus, default=TransactionStatus.PENDING)
    issue_date = fields.DatetimeField()
    expected_return_date = fields.DatetimeField(null=True)
    actual_return_date = fields.DatetimeField(null=True)
    user_id = fields.UUIDField(null=True)
    issued_by = fields.UUIDField(null=True)
    recipient_name = fields.CharField(max_length=255, null=True)
    recipient_email = fields.CharField(max_length=255, null=True)
    recipient_department = fields.CharField(max_length=255, null=True)
    purpose = fields.TextField(null=True)
    notes = fields.TextField(null=True)
    needs_reconciliation = fields.BooleanField(default=False)
    reconciliation_note = fields.TextField(null=True)
    owed_write = fields.CharEnumField(OwedWrite, null=True)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "inventory_transactions"
        indexes = [
            ("item_id",),
            ("status",),
            ("transaction_type",),
            ("created_at",),
            ("status", "expected_return_date"),  # Overdue lookups
            ("needs_reconciliation",),
        ]
