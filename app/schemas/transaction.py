import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from app.models.transaction import TransactionType
from app.services.stock_engine import ReconciliationAction


class IssueRequest(BaseModel):
    """Schema for issuing (checking out) or using (consuming) an item."""
    item_id: uuid.UUID
    quantity: int = Field(..., description="Units to move; must be at least 1.")
    recipient_name: str = Field(..., description="Who receives the item.")
    recipient_email: Optional[str] = None
    recipient_department: Optional[str] = None
    expected_return_date: Optional[datetime] = Field(None, description="Required for 'issue', ignored for 'use'.")
    purpose: Optional[str] = None
    notes: Optional[str] = None
    transaction_type: TransactionType = Field(TransactionType.ISSUE, description="'issue' or 'use'.")
    issued_by: Optional[uuid.UUID] = None
    user_id: Optional[uuid.UUID] = None


class ReturnRequest(BaseModel):
    notes: Optional[str] = None


class ReconcileRequest(BaseModel):
    action: ReconciliationAction
    notes: Optional[str] = None
