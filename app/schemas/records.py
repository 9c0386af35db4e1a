"""
Typed rows that cross the store boundary. Stores build these from whatever
they hold (ORM instances, dicts); the engine and routes only ever see these.
Derived flags are computed here and never stored.
"""
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from app.models.inventory import ItemCondition, ItemStatus
from app.models.transaction import OwedWrite, TransactionStatus, TransactionType


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def compute_overdue(status: TransactionStatus, expected_return_date: Optional[datetime], now: Optional[datetime] = None) -> bool:
    if status != TransactionStatus.PENDING or expected_return_date is None:
        return False
    return as_utc(expected_return_date) < (now or utcnow())


class ItemRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: Optional[str] = None
    category_id: Optional[uuid.UUID] = None
    category_name: Optional[str] = None
    category_color: Optional[str] = None
    area_id: Optional[uuid.UUID] = None
    area_name: Optional[str] = None
    serial_number: Optional[str] = None
    barcode: Optional[str] = None
    purchase_date: Optional[date] = None
    unit_price: Optional[Decimal] = None
    quantity: int = Field(0, ge=0)
    min_stock_level: int = Field(0, ge=0)
    max_stock_level: Optional[int] = None
    image_url: Optional[str] = None
    status: ItemStatus = ItemStatus.AVAILABLE
    location: Optional[str] = None
    condition: Optional[ItemCondition] = None
    manufacturer: Optional[str] = None
    model: Optional[str] = None
    warranty_expiry: Optional[date] = None
    notes: Optional[str] = None
    created_by: Optional[uuid.UUID] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @computed_field
    @property
    def is_low_stock(self) -> bool:
        return self.quantity <= self.min_stock_level

    @computed_field
    @property
    def total_value(self) -> Decimal:
        return Decimal(self.quantity) * (self.unit_price or Decimal("0"))


class NewTransaction(BaseModel):
    """Fields for a ledger insert. The caller picks the id so an insert with an unknown outcome can be looked up."""
    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    item_id: uuid.UUID
    transaction_type: TransactionType
    quantity: int = Field(..., ge=1)
    status: TransactionStatus
    issue_date: datetime
    expected_return_date: Optional[datetime] = None
    user_id: Optional[uuid.UUID] = None
    issued_by: Optional[uuid.UUID] = None
    recipient_name: Optional[str] = None
    recipient_email: Optional[str] = None
    recipient_department: Optional[str] = None
    purpose: Optional[str] = None
    notes: Optional[str] = None


class TransactionRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    item_id: uuid.UUID
    item_name: Optional[str] = None
    transaction_type: TransactionType
    quantity: int
    status: TransactionStatus
    issue_date: datetime
    expected_return_date: Optional[datetime] = None
    actual_return_date: Optional[datetime] = None
    user_id: Optional[uuid.UUID] = None
    issued_by: Optional[uuid.UUID] = None
    recipient_name: Optional[str] = None
    recipient_email: Optional[str] = None
    recipient_department: Optional[str] = None
    purpose: Optional[str] = None
    notes: Optional[str] = None
    needs_reconciliation: bool = False
    reconciliation_note: Optional[str] = None
    owed_write: Optional[OwedWrite] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @computed_field
    @property
    def is_overdue(self) -> bool:
        return compute_overdue(self.status, self.expected_return_date)

    @computed_field
    @property
    def display_status(self) -> TransactionStatus:
        return TransactionStatus.OVERDUE if self.is_overdue else self.status


class TransactionFilter(BaseModel):
    """Ledger query. ``overdue_before`` selects pending entries due before that instant."""
    status: Optional[TransactionStatus] = None
    transaction_type: Optional[TransactionType] = None
    item_id: Optional[uuid.UUID] = None
    needs_reconciliation: Optional[bool] = None
    overdue_before: Optional[datetime] = None
    order_by_due_date: bool = False
    limit: Optional[int] = Field(None, ge=1)
    offset: int = Field(0, ge=0)


class ItemChange(BaseModel):
    """Notification delivered to change-feed subscribers after an item write."""
    item_id: uuid.UUID
    quantity: int
    status: ItemStatus
    is_low_stock: bool
    changed_at: datetime = Field(default_factory=utcnow)
