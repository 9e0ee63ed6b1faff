"""Shared FastAPI dependencies."""
from __future__ import annotations

from datetime import date

from fastapi import Depends, HTTPException, Query
from sqlalchemy.orm import Session

from brokerdesk.core.formatting import coerce_date
from brokerdesk.database import get_session
from brokerdesk.services import TransactionService


def get_transaction_service(db: Session = Depends(get_session)) -> TransactionService:
    return TransactionService(db)


class PageParams:
    """``limit``/``offset`` query parameters shared by list endpoints."""

    def __init__(
        self,
        limit: int = Query(default=20, ge=1, le=200),
        offset: int = Query(default=0, ge=0),
    ) -> None:
        self.limit = limit
        self.offset = offset

    def envelope(self, items: list, total: int) -> dict:
        return {
            "items": items,
            "pagination": {
                "total": total,
                "limit": self.limit,
                "offset": self.offset,
                "has_more": self.offset + self.limit < total,
            },
        }


def parse_date_param(value: str | None, name: str) -> date | None:
    if not value:
        return None
    parsed = coerce_date(value)
    if parsed is None:
        raise HTTPException(status_code=400, detail=f"Invalid {name} date. Use YYYY-MM-DD.")
    return parsed
