"""Routes for managing agents."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from brokerdesk import crud
from brokerdesk.database import get_session
from brokerdesk.dependencies import PageParams
from brokerdesk.models import Agent
from brokerdesk.schemas import AgentCreate, AgentRead, AgentUpdate, Page

router = APIRouter(prefix="/agents", tags=["Agents"])


def _get_agent_or_404(db: Session, agent_id: int) -> Agent:
    agent = crud.get_agent(db, agent_id)
    if agent is None:
        raise HTTPException(status_code=404, detail="Agent not found")
    return agent


def _check_office_and_email(db: Session, payload: AgentCreate | AgentUpdate, agent_id: int | None = None) -> None:
    if crud.get_office(db, payload.office_id) is None:
        raise HTTPException(status_code=400, detail="Office not found.")
    existing = crud.get_agent_by_email(db, payload.email)
    if existing is not None and existing.id != agent_id:
        raise HTTPException(status_code=400, detail="Another agent already uses this email.")


@router.get("", response_model=Page[AgentRead])
def list_agents(
    office_id: int | None = Query(default=None),
    active: bool | None = Query(default=None),
    page: PageParams = Depends(),
    db: Session = Depends(get_session),
):
    agents = crud.list_agents(db, office_id=office_id, active=active)
    window = agents[page.offset : page.offset + page.limit]
    return page.envelope([AgentRead.model_validate(agent) for agent in window], len(agents))


@router.post("", status_code=201, response_model=AgentRead)
def create_agent(payload: AgentCreate, db: Session = Depends(get_session)):
    _check_office_and_email(db, payload)
    return crud.create_agent(db, payload)


@router.get("/{agent_id}", response_model=AgentRead)
def get_agent(agent_id: int, db: Session = Depends(get_session)):
    return _get_agent_or_404(db, agent_id)


@router.put("/{agent_id}", response_model=AgentRead)
def update_agent(agent_id: int, payload: AgentUpdate, db: Session = Depends(get_session)):
    agent = _get_agent_or_404(db, agent_id)
    _check_office_and_email(db, payload, agent_id=agent.id)
    if payload.office_id != agent.office_id and crud.agent_has_transactions(db, agent.id):
        raise HTTPException(status_code=400, detail="Agent has transactions in their current office.")
    return crud.update_agent(db, agent, payload)


@router.post("/{agent_id}/deactivate", response_model=AgentRead)
def deactivate_agent(agent_id: int, db: Session = Depends(get_session)):
    agent = _get_agent_or_404(db, agent_id)
    return crud.deactivate_agent(db, agent)
