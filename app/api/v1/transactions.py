import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from app.api.dependencies import get_engine, get_ledger
from app.models.transaction import TransactionStatus, TransactionType
from app.schemas.response import SuccessResponse
from app.schemas.transaction import IssueRequest, ReconcileRequest, ReturnRequest
from app.services.ledger import LedgerReader
from app.services.stock_engine import StockReconciliationEngine

log = logging.getLogger("api.transactions")

router = APIRouter()


@router.get("", response_model=SuccessResponse)
async def list_transactions_endpoint(
    txn_status: Optional[TransactionStatus] = Query(None, alias="status"),
    transaction_type: Optional[TransactionType] = None,
    item_id: Optional[UUID] = None,
    needs_reconciliation: Optional[bool] = None,
    limit: Optional[int] = Query(None, ge=1, le=500),
    offset: int = Query(0, ge=0),
    ledger: LedgerReader = Depends(get_ledger),
):
    """Lists ledger entries, newest first. `status=overdue` is computed from the due date."""
    rows = await ledger.list_transactions(
        status=txn_status,
        transaction_type=transaction_type,
        item_id=item_id,
        needs_reconciliation=needs_reconciliation,
        limit=limit,
        offset=offset,
    )
    return SuccessResponse(data=[row.model_dump(mode="json") for row in rows])


@router.get("/overdue", response_model=SuccessResponse)
async def list_overdue_endpoint(
    limit: Optional[int] = Query(None, ge=1, le=500),
    ledger: LedgerReader = Depends(get_ledger),
):
    rows = await ledger.list_overdue(limit=limit)
    return SuccessResponse(data=[row.model_dump(mode="json") for row in rows])


@router.get("/{transaction_id}", response_model=SuccessResponse)
async def get_transaction_endpoint(transaction_id: UUID, ledger: LedgerReader = Depends(get_ledger)):
    row = await ledger.get_transaction(transaction_id)
    return SuccessResponse(data=row.model_dump(mode="json"))


@router.post("/issue", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def issue_item_endpoint(payload: IssueRequest, engine: StockReconciliationEngine = Depends(get_engine)):
    """Issues an item for later return, or records its consumption ('use')."""
    txn = await engine.issue(
        item_id=payload.item_id,
        quantity=payload.quantity,
        recipient_name=payload.recipient_name,
        mode=payload.transaction_type,
        expected_return_date=payload.expected_return_date,
        purpose=payload.purpose,
        notes=payload.notes,
        recipient_email=payload.recipient_email,
        recipient_department=payload.recipient_department,
        issued_by=payload.issued_by,
        user_id=payload.user_id,
    )
    return SuccessResponse(data=txn.model_dump(mode="json"))


@router.post("/{transaction_id}/return", response_model=SuccessResponse)
async def return_item_endpoint(
    transaction_id: UUID,
    payload: Optional[ReturnRequest] = None,
    engine: StockReconciliationEngine = Depends(get_engine),
):
    txn = await engine.return_item(transaction_id, notes=payload.notes if payload else None)
    return SuccessResponse(data=txn.model_dump(mode="json"))


@router.post("/{transaction_id}/reconcile", response_model=SuccessResponse)
async def reconcile_endpoint(
    transaction_id: UUID,
    payload: ReconcileRequest,
    engine: StockReconciliationEngine = Depends(get_engine),
):
    """Operator resolution of an entry flagged for manual reconciliation."""
    txn = await engine.resolve_reconciliation(transaction_id, payload.action, notes=payload.notes)
    log.info(f"Entry {transaction_id} reconciled with '{payload.action.value}'.")
    return SuccessResponse(data=txn.model_dump(mode="json"))
