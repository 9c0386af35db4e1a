from enum import Enum
from tortoise import fields, models
import uuid


class ItemStatus(str, Enum):
    AVAILABLE = "available"
    CHECKED_OUT = "checked_out"  # Nothing left on hand
    MAINTENANCE = "maintenance"  # Sticky: set by an explicit edit only
    RETIRED = "retired"          # Terminal: soft delete


class ItemCondition(str, Enum):
    NEW = "new"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


# Statuses the stock writes may recompute; the others are only changed by explicit edits
STOCK_DRIVEN_STATUSES = (ItemStatus.AVAILABLE, ItemStatus.CHECKED_OUT)


def derive_item_status(current: ItemStatus, quantity: int) -> ItemStatus:
    """Status after a quantity change. Maintenance and retired are left alone."""
    if current not in STOCK_DRIVEN_STATUSES:
        return current
    return ItemStatus.CHECKED_OUT if quantity == 0 else ItemStatus.AVAILABLE


class Category(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    name = fields.CharField(max_length=255)
    description = fields.TextField(null=True)
    color = fields.CharField(max_length=32, null=True)
    icon = fields.CharField(max_length=64, null=True)
    parent = fields.ForeignKeyField("models.Category", related_name="children", null=True)
    is_active = fields.BooleanField(default=True)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "categories"
        indexes = [
            ("is_active",),
        ]


class Area(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    name = fields.CharField(max_length=255)
    description = fields.TextField(null=True)
    location = fields.CharField(max_length=255, null=True)
    manager_id = fields.UUIDField(null=True)  # Profile id from the identity provider
    is_active = fields.BooleanField(default=True)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "areas"
        indexes = [
            ("is_active",),
        ]


class InventoryItem(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    name = fields.CharField(max_length=255)
    description = fields.TextField(null=True)
    category = fields.ForeignKeyField("models.Category", related_name="items", null=True)
    area = fields.ForeignKeyField("models.Area", related_name="items", null=True)
    serial_number = fields.CharField(max_length=128, null=True)
    barcode = fields.CharField(max_length=128, null=True)
    purchase_date = fields.DateField(null=True)
    unit_price = fields.DecimalField(max_digits=12, decimal_places=2, null=True)
    # Authoritative on-hand count; only changed through the stock engine
    quantity = fields.IntField(default=0)
    min_stock_level = fields.IntField(default=0)
    max_stock_level = fields.IntField(null=True)
    image_url = fields.CharField(max_length=1024, null=True)
    status = fields.CharEnumField(ItemStatus, default=ItemStatus.CHECKED_OUT)
    location = fields.CharField(max_length=255, null=True)
    condition = fields.CharEnumField(ItemCondition, null=True)
    manufacturer = fields.CharField(max_length=255, null=True)
    model = fields.CharField(max_length=255, null=True)
    warranty_expiry = fields.DateField(null=True)
    notes = fields.TextField(null=True)
    created_by = fields.UUIDField(null=True)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "inventory_items"
        indexes = [
            ("category_id",),
            ("area_id",),
            ("status",),
            ("created_at",),
        ]
