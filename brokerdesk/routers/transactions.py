"""Routes for transaction bookkeeping."""
from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from brokerdesk import crud
from brokerdesk.database import get_session
from brokerdesk.dependencies import PageParams, get_transaction_service, parse_date_param
from brokerdesk.models import TRANSACTION_STATUS_ENUM, TRANSACTION_TYPE_ENUM, Transaction
from brokerdesk.schemas import (
    Page,
    TransactionCreate,
    TransactionRead,
    TransactionStats,
    TransactionStatusUpdate,
    TransactionUpdate,
)
from brokerdesk.services import TransactionService, WorkflowError

router = APIRouter(prefix="/transactions", tags=["Transactions"])


def _get_transaction_or_404(db: Session, transaction_id: int) -> Transaction:
    transaction = crud.get_transaction(db, transaction_id)
    if transaction is None:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return transaction


def _normalize_choice(value: str | None, choices: tuple[str, ...], label: str) -> str | None:
    if not value:
        return None
    normalized = value.strip().upper()
    if normalized not in choices:
        raise HTTPException(status_code=400, detail=f"Unknown {label}: {value}")
    return normalized


@router.get("", response_model=Page[TransactionRead])
def list_transactions(
    type: str | None = Query(default=None),
    status: str | None = Query(default=None),
    office_id: int | None = Query(default=None),
    primary_agent_id: int | None = Query(default=None),
    collaborating_agent_id: int | None = Query(default=None),
    agent_id: int | None = Query(default=None, description="Primary or collaborating agent"),
    min_amount: Decimal | None = Query(default=None, ge=0),
    max_amount: Decimal | None = Query(default=None, ge=0),
    start: str | None = Query(default=None, description="Created on or after (YYYY-MM-DD)"),
    end: str | None = Query(default=None, description="Created on or before (YYYY-MM-DD)"),
    sort_by: str = Query(default="created_at"),
    sort_order: str = Query(default="desc"),
    page: PageParams = Depends(),
    db: Session = Depends(get_session),
):
    items, total = crud.list_transactions(
        db,
        limit=page.limit,
        offset=page.offset,
        sort_by=sort_by,
        sort_order=sort_order,
        transaction_type=_normalize_choice(type, TRANSACTION_TYPE_ENUM, "transaction type"),
        status=_normalize_choice(status, TRANSACTION_STATUS_ENUM, "status"),
        office_id=office_id,
        primary_agent_id=primary_agent_id,
        collaborating_agent_id=collaborating_agent_id,
        agent_id=agent_id,
        min_amount=min_amount,
        max_amount=max_amount,
        start=parse_date_param(start, "start"),
        end=parse_date_param(end, "end"),
    )
    return page.envelope([TransactionRead.model_validate(item) for item in items], total)


@router.get("/stats", response_model=TransactionStats)
def transaction_stats(
    office_id: int | None = Query(default=None),
    agent_id: int | None = Query(default=None),
    db: Session = Depends(get_session),
):
    return crud.transaction_stats(db, office_id=office_id, agent_id=agent_id)


@router.post("", status_code=201, response_model=TransactionRead)
def create_transaction(
    payload: TransactionCreate,
    service: TransactionService = Depends(get_transaction_service),
):
    try:
        return service.create_transaction(payload)
    except WorkflowError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.get("/{transaction_id}", response_model=TransactionRead)
def get_transaction(transaction_id: int, db: Session = Depends(get_session)):
    return _get_transaction_or_404(db, transaction_id)


@router.put("/{transaction_id}", response_model=TransactionRead)
def update_transaction(
    transaction_id: int,
    payload: TransactionUpdate,
    service: TransactionService = Depends(get_transaction_service),
):
    transaction = _get_transaction_or_404(service.db, transaction_id)
    try:
        return service.update_transaction(transaction, payload)
    except WorkflowError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.patch("/{transaction_id}/status", response_model=TransactionRead)
def update_transaction_status(
    transaction_id: int,
    payload: TransactionStatusUpdate,
    service: TransactionService = Depends(get_transaction_service),
):
    transaction = _get_transaction_or_404(service.db, transaction_id)
    return service.change_status(transaction, payload.status)


@router.delete("/{transaction_id}", status_code=204)
def delete_transaction(
    transaction_id: int,
    service: TransactionService = Depends(get_transaction_service),
) -> Response:
    transaction = _get_transaction_or_404(service.db, transaction_id)
    try:
        service.delete_transaction(transaction)
    except WorkflowError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return Response(status_code=204)
