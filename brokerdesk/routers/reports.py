"""Reporting routes: agent earnings and workbook export."""
from __future__ import annotations

from datetime import date
from io import BytesIO

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from brokerdesk import crud
from brokerdesk.database import get_session
from brokerdesk.dependencies import get_transaction_service, parse_date_param
from brokerdesk.exporting.xlsx import export_transactions_workbook
from brokerdesk.schemas import AgentEarningsRead
from brokerdesk.services import TransactionService

router = APIRouter(prefix="/reports", tags=["Reports"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@router.get("/agents/{agent_id}/earnings", response_model=AgentEarningsRead)
def agent_earnings(
    agent_id: int,
    start: str | None = Query(default=None, description="Closed on or after (YYYY-MM-DD)"),
    end: str | None = Query(default=None, description="Closed on or before (YYYY-MM-DD)"),
    service: TransactionService = Depends(get_transaction_service),
):
    agent = crud.get_agent(service.db, agent_id)
    if agent is None:
        raise HTTPException(status_code=404, detail="Agent not found")
    earnings = service.agent_earnings(
        agent,
        start=parse_date_param(start, "start"),
        end=parse_date_param(end, "end"),
    )
    return AgentEarningsRead(
        agent_id=earnings.agent_id,
        total_eur=earnings.total_eur,
        total_all=earnings.total_all,
        by_type=earnings.by_type,
        transactions_counted=earnings.transactions_counted,
    )


@router.get("/transactions.xlsx")
def export_transactions(db: Session = Depends(get_session)) -> StreamingResponse:
    content = export_transactions_workbook(db)
    filename = f"transactions_{date.today():%Y%m%d}.xlsx"
    return StreamingResponse(
        BytesIO(content),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
