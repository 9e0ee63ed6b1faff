"""Routes for business settings (commission and exchange rates)."""
from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from brokerdesk import crud
from brokerdesk.database import get_session
from brokerdesk.schemas import SystemSettingRead, SystemSettingUpdate

router = APIRouter(prefix="/settings", tags=["Settings"])

_COMMISSION_RATE_KEYS = {crud.SETTING_SALE_RATE, crud.SETTING_RENT_RATE}


@router.get("", response_model=list[SystemSettingRead])
def list_settings(db: Session = Depends(get_session)):
    return crud.list_settings(db)


@router.put("/{key}", response_model=SystemSettingRead)
def update_setting(key: str, payload: SystemSettingUpdate, db: Session = Depends(get_session)):
    normalized = key.strip().upper()
    if normalized not in crud.DEFAULT_SETTINGS:
        raise HTTPException(status_code=404, detail="Unknown setting")
    if normalized in _COMMISSION_RATE_KEYS and payload.value > Decimal("1"):
        raise HTTPException(status_code=400, detail="Commission rates must be between 0 and 1.")
    return crud.upsert_setting(db, normalized, payload.value, payload.description)
