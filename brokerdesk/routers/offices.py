"""Routes for managing offices."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from brokerdesk import crud
from brokerdesk.database import get_session
from brokerdesk.dependencies import PageParams
from brokerdesk.models import Office
from brokerdesk.schemas import OfficeCreate, OfficeRead, OfficeStats, OfficeUpdate, Page

router = APIRouter(prefix="/offices", tags=["Offices"])


def _get_office_or_404(db: Session, office_id: int) -> Office:
    office = crud.get_office(db, office_id)
    if office is None:
        raise HTTPException(status_code=404, detail="Office not found")
    return office


@router.get("", response_model=Page[OfficeRead])
def list_offices(
    city: str | None = Query(default=None),
    page: PageParams = Depends(),
    db: Session = Depends(get_session),
):
    offices = crud.list_offices(db, city=city)
    window = offices[page.offset : page.offset + page.limit]
    return page.envelope([OfficeRead.model_validate(office) for office in window], len(offices))


@router.post("", status_code=201, response_model=OfficeRead)
def create_office(payload: OfficeCreate, db: Session = Depends(get_session)):
    if crud.get_office_by_name(db, payload.name):
        raise HTTPException(status_code=400, detail="An office with this name already exists.")
    return crud.create_office(db, payload)


@router.get("/{office_id}", response_model=OfficeRead)
def get_office(office_id: int, db: Session = Depends(get_session)):
    return _get_office_or_404(db, office_id)


@router.put("/{office_id}", response_model=OfficeRead)
def update_office(office_id: int, payload: OfficeUpdate, db: Session = Depends(get_session)):
    office = _get_office_or_404(db, office_id)
    existing = crud.get_office_by_name(db, payload.name)
    if existing is not None and existing.id != office.id:
        raise HTTPException(status_code=400, detail="Another office already uses this name.")
    return crud.update_office(db, office, payload)


@router.delete("/{office_id}", status_code=204)
def delete_office(office_id: int, db: Session = Depends(get_session)) -> Response:
    office = _get_office_or_404(db, office_id)
    if crud.office_in_use(db, office.id):
        raise HTTPException(status_code=400, detail="Office still has agents or transactions.")
    crud.delete_office(db, office)
    return Response(status_code=204)


@router.get("/{office_id}/stats", response_model=OfficeStats)
def office_stats(office_id: int, db: Session = Depends(get_session)):
    _get_office_or_404(db, office_id)
    return crud.office_stats(db, office_id)
