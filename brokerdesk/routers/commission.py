"""Commission preview and configured rates."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from brokerdesk import crud
from brokerdesk.database import get_session
from brokerdesk.dependencies import get_transaction_service
from brokerdesk.schemas import CommissionPreviewRequest, CommissionRatesRead, CommissionSplitRead
from brokerdesk.services import TransactionService, WorkflowError

router = APIRouter(prefix="/commission", tags=["Commission"])


@router.post("/preview", response_model=CommissionSplitRead)
def preview_commission(
    payload: CommissionPreviewRequest,
    service: TransactionService = Depends(get_transaction_service),
):
    """Return the split a transaction with these inputs would be saved with."""
    try:
        rate, split = service.preview_split(
            payload.type,
            payload.gross_amount,
            payload.commission_amount,
            payload.has_collaborating_agent,
            payload.split_ratio,
        )
    except WorkflowError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return CommissionSplitRead(commission_rate=rate, **split.as_dict())


@router.get("/rates", response_model=CommissionRatesRead)
def commission_rates(db: Session = Depends(get_session)):
    rates = crud.get_commission_rates(db)
    currency = crud.get_currency_rates(db)
    return CommissionRatesRead(
        sale=rates["SALE"],
        rent=rates["RENT"],
        eur_to_all=currency.eur_to_all,
        all_to_eur=currency.all_to_eur,
    )
