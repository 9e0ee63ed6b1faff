"""Database access helpers."""
from __future__ import annotations

import json
from datetime import date
from decimal import Decimal
from typing import Any, Sequence

from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import Session

from brokerdesk.core.commission import DEFAULT_COMMISSION_RATES
from brokerdesk.core.currency import DEFAULT_EUR_TO_ALL, CurrencyRates
from brokerdesk.core.formatting import end_of_day, start_of_day
from brokerdesk.models import (
    TRANSACTION_STATUS_ENUM,
    TRANSACTION_TYPE_ENUM,
    Agent,
    AuditLog,
    Office,
    SystemSetting,
    Transaction,
)
from brokerdesk.schemas import AgentCreate, AgentUpdate, OfficeCreate, OfficeUpdate

SETTING_EUR_TO_ALL = "EUR_TO_ALL_RATE"
SETTING_SALE_RATE = "COMMISSION_SALE_RATE"
SETTING_RENT_RATE = "COMMISSION_RENT_RATE"

DEFAULT_SETTINGS = {
    SETTING_EUR_TO_ALL: (DEFAULT_EUR_TO_ALL, "Exchange rate from EUR to ALL"),
    SETTING_SALE_RATE: (DEFAULT_COMMISSION_RATES["SALE"], "Commission rate for property sales (3%)"),
    SETTING_RENT_RATE: (
        DEFAULT_COMMISSION_RATES["RENT"],
        "Commission rate for property rentals (50% of monthly rent)",
    ),
}

TRANSACTION_SORT_FIELDS = {
    "created_at": Transaction.created_at,
    "close_date": Transaction.close_date,
    "gross_amount": Transaction.gross_amount,
    "commission_amount": Transaction.commission_amount,
    "status": Transaction.status,
}

_ZERO = Decimal("0")


# --- Settings ---------------------------------------------------------------


def seed_default_settings(db: Session) -> list[str]:
    """Insert any missing default settings, leaving configured values alone."""

    existing = set(db.execute(select(SystemSetting.key)).scalars().all())
    created: list[str] = []
    for key, (value, description) in DEFAULT_SETTINGS.items():
        if key in existing:
            continue
        db.add(SystemSetting(key=key, value=value, description=description))
        created.append(key)
    if created:
        db.commit()
    return created


def list_settings(db: Session) -> Sequence[SystemSetting]:
    return db.execute(select(SystemSetting).order_by(SystemSetting.key)).scalars().all()


def get_setting(db: Session, key: str) -> SystemSetting | None:
    stmt = select(SystemSetting).where(SystemSetting.key == key)
    return db.execute(stmt).scalars().first()


def get_setting_value(db: Session, key: str) -> Decimal:
    setting = get_setting(db, key)
    if setting is None:
        return Decimal(str(DEFAULT_SETTINGS[key][0]))
    return Decimal(str(setting.value))


def upsert_setting(db: Session, key: str, value: Decimal, description: str | None = None) -> SystemSetting:
    setting = get_setting(db, key)
    if setting is None:
        setting = SystemSetting(key=key, value=value, description=description)
        db.add(setting)
    else:
        setting.value = value
        if description is not None:
            setting.description = description
    log_action(db, "setting_updated", {"key": key, "value": str(value)})
    db.commit()
    db.refresh(setting)
    return setting


def get_commission_rates(db: Session) -> dict[str, Decimal]:
    return {
        "SALE": get_setting_value(db, SETTING_SALE_RATE),
        "RENT": get_setting_value(db, SETTING_RENT_RATE),
    }


def get_currency_rates(db: Session) -> CurrencyRates:
    return CurrencyRates(eur_to_all=get_setting_value(db, SETTING_EUR_TO_ALL))


# --- Offices ----------------------------------------------------------------


def list_offices(db: Session, city: str | None = None) -> Sequence[Office]:
    stmt = select(Office)
    if city:
        stmt = stmt.where(Office.city.ilike(f"%{city.strip()}%"))
    stmt = stmt.order_by(Office.name)
    return db.execute(stmt).scalars().all()


def get_office(db: Session, office_id: int) -> Office | None:
    return db.get(Office, office_id)


def get_office_by_name(db: Session, name: str) -> Office | None:
    stmt = select(Office).where(func.lower(Office.name) == name.strip().lower())
    return db.execute(stmt).scalars().first()


def create_office(db: Session, payload: OfficeCreate) -> Office:
    office = Office(**payload.model_dump())
    db.add(office)
    db.commit()
    db.refresh(office)
    return office


def update_office(db: Session, office: Office, payload: OfficeUpdate) -> Office:
    for key, value in payload.model_dump().items():
        setattr(office, key, value)
    db.commit()
    db.refresh(office)
    return office


def office_in_use(db: Session, office_id: int) -> bool:
    agents = db.execute(select(func.count(Agent.id)).where(Agent.office_id == office_id)).scalar_one()
    deals = db.execute(
        select(func.count(Transaction.id)).where(Transaction.office_id == office_id)
    ).scalar_one()
    return bool(agents or deals)


def delete_office(db: Session, office: Office) -> None:
    db.delete(office)
    db.commit()


def office_stats(db: Session, office_id: int) -> dict[str, Any]:
    agent_total = db.execute(select(func.count(Agent.id)).where(Agent.office_id == office_id)).scalar_one()
    agent_active = db.execute(
        select(func.count(Agent.id)).where(Agent.office_id == office_id, Agent.is_active.is_(True))
    ).scalar_one()
    deal_total = db.execute(
        select(func.count(Transaction.id)).where(Transaction.office_id == office_id)
    ).scalar_one()
    closed = db.execute(
        select(
            func.count(Transaction.id),
            func.coalesce(func.sum(Transaction.commission_amount), 0),
            func.coalesce(func.sum(Transaction.office_share), 0),
        ).where(Transaction.office_id == office_id, Transaction.status == "CLOSED")
    ).one()
    return {
        "office_id": office_id,
        "agents": agent_total,
        "active_agents": agent_active,
        "transactions": deal_total,
        "closed_transactions": closed[0],
        "closed_commission": Decimal(str(closed[1])),
        "closed_office_share": Decimal(str(closed[2])),
    }


# --- Agents -----------------------------------------------------------------


def list_agents(
    db: Session,
    office_id: int | None = None,
    active: bool | None = None,
) -> Sequence[Agent]:
    stmt = select(Agent)
    if office_id is not None:
        stmt = stmt.where(Agent.office_id == office_id)
    if active is not None:
        stmt = stmt.where(Agent.is_active.is_(active))
    stmt = stmt.order_by(Agent.last_name, Agent.first_name)
    return db.execute(stmt).scalars().all()


def get_agent(db: Session, agent_id: int) -> Agent | None:
    return db.get(Agent, agent_id)


def get_agent_by_email(db: Session, email: str) -> Agent | None:
    stmt = select(Agent).where(func.lower(Agent.email) == email.strip().lower())
    return db.execute(stmt).scalars().first()


def create_agent(db: Session, payload: AgentCreate) -> Agent:
    agent = Agent(**payload.model_dump())
    db.add(agent)
    db.commit()
    db.refresh(agent)
    return agent


def update_agent(db: Session, agent: Agent, payload: AgentUpdate) -> Agent:
    for key, value in payload.model_dump().items():
        setattr(agent, key, value)
    db.commit()
    db.refresh(agent)
    return agent


def agent_has_transactions(db: Session, agent_id: int) -> bool:
    stmt = select(func.count(Transaction.id)).where(*_transaction_filters(agent_id=agent_id))
    return bool(db.execute(stmt).scalar_one())


def deactivate_agent(db: Session, agent: Agent) -> Agent:
    agent.is_active = False
    db.commit()
    db.refresh(agent)
    return agent


# --- Transactions -----------------------------------------------------------


def _transaction_filters(
    transaction_type: str | None = None,
    status: str | None = None,
    office_id: int | None = None,
    primary_agent_id: int | None = None,
    collaborating_agent_id: int | None = None,
    agent_id: int | None = None,
    min_amount: Decimal | None = None,
    max_amount: Decimal | None = None,
    start: date | None = None,
    end: date | None = None,
) -> list:
    clauses = []
    if transaction_type:
        clauses.append(Transaction.type == transaction_type.upper())
    if status:
        clauses.append(Transaction.status == status.upper())
    if office_id is not None:
        clauses.append(Transaction.office_id == office_id)
    if primary_agent_id is not None:
        clauses.append(Transaction.primary_agent_id == primary_agent_id)
    if collaborating_agent_id is not None:
        clauses.append(Transaction.collaborating_agent_id == collaborating_agent_id)
    if agent_id is not None:
        clauses.append(
            or_(
                Transaction.primary_agent_id == agent_id,
                Transaction.collaborating_agent_id == agent_id,
            )
        )
    if min_amount is not None:
        clauses.append(Transaction.gross_amount >= min_amount)
    if max_amount is not None:
        clauses.append(Transaction.gross_amount <= max_amount)
    if start is not None:
        clauses.append(Transaction.created_at >= start_of_day(start))
    if end is not None:
        clauses.append(Transaction.created_at <= end_of_day(end))
    return clauses


def list_transactions(
    db: Session,
    *,
    limit: int = 20,
    offset: int = 0,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    **filters: Any,
) -> tuple[Sequence[Transaction], int]:
    clauses = _transaction_filters(**filters)
    column = TRANSACTION_SORT_FIELDS.get(sort_by, Transaction.created_at)
    ordering = column.asc() if sort_order.lower() == "asc" else column.desc()

    stmt = select(Transaction).where(*clauses).order_by(ordering, Transaction.id.desc())
    items = db.execute(stmt.limit(limit).offset(offset)).scalars().all()
    total = db.execute(select(func.count(Transaction.id)).where(*clauses)).scalar_one()
    return items, total


def get_transaction(db: Session, transaction_id: int) -> Transaction | None:
    return db.get(Transaction, transaction_id)


def create_transaction(db: Session, values: dict[str, Any]) -> Transaction:
    transaction = Transaction(**values)
    db.add(transaction)
    db.flush()
    log_action(
        db,
        "transaction_created",
        {
            "commission_amount": str(transaction.commission_amount),
            "office_share": str(transaction.office_share),
            "primary_agent_share": str(transaction.primary_agent_share),
            "collaborating_agent_share": str(transaction.collaborating_agent_share),
        },
        transaction_id=transaction.id,
    )
    db.commit()
    db.refresh(transaction)
    return transaction


def update_transaction(db: Session, transaction: Transaction, values: dict[str, Any]) -> Transaction:
    for key, value in values.items():
        setattr(transaction, key, value)
    log_action(
        db,
        "transaction_updated",
        {key: str(value) if value is not None else None for key, value in values.items()},
        transaction_id=transaction.id,
    )
    db.commit()
    db.refresh(transaction)
    return transaction


def delete_transaction(db: Session, transaction: Transaction) -> None:
    log_action(db, "transaction_deleted", {"id": transaction.id}, transaction_id=None)
    db.delete(transaction)
    db.commit()


def transaction_stats(db: Session, **filters: Any) -> dict[str, Any]:
    clauses = _transaction_filters(**filters)

    status_rows = db.execute(
        select(Transaction.status, func.count(Transaction.id)).where(*clauses).group_by(Transaction.status)
    ).all()
    type_rows = db.execute(
        select(Transaction.type, func.count(Transaction.id)).where(*clauses).group_by(Transaction.type)
    ).all()
    status_breakdown = {status.lower(): 0 for status in TRANSACTION_STATUS_ENUM}
    status_breakdown.update({status.lower(): count for status, count in status_rows})
    type_breakdown = {kind.lower(): 0 for kind in TRANSACTION_TYPE_ENUM}
    type_breakdown.update({kind.lower(): count for kind, count in type_rows})

    closed = db.execute(
        select(
            func.coalesce(func.sum(Transaction.gross_amount), 0),
            func.coalesce(func.sum(Transaction.commission_amount), 0),
            func.coalesce(func.sum(Transaction.office_share), 0),
            func.avg(Transaction.gross_amount),
        ).where(*clauses, Transaction.status == "CLOSED")
    ).one()

    total = sum(status_breakdown.values())
    closed_count = status_breakdown["closed"]
    average = Decimal(str(closed[3])) if closed[3] is not None else _ZERO
    return {
        "total_transactions": total,
        "status_breakdown": status_breakdown,
        "type_breakdown": type_breakdown,
        "total_revenue": Decimal(str(closed[0])),
        "total_commission": Decimal(str(closed[1])),
        "total_office_share": Decimal(str(closed[2])),
        "average_transaction_value": average.quantize(Decimal("1")),
        "conversion_rate": round(closed_count / total * 100) if total else 0,
    }


def list_agent_transactions(
    db: Session,
    agent_id: int,
    start: date | None = None,
    end: date | None = None,
    status: str | None = "CLOSED",
) -> Sequence[Transaction]:
    clauses = _transaction_filters(agent_id=agent_id, status=status)
    if start is not None:
        clauses.append(Transaction.close_date >= start)
    if end is not None:
        clauses.append(Transaction.close_date <= end)
    stmt = select(Transaction).where(*clauses).order_by(Transaction.close_date, Transaction.id)
    return db.execute(stmt).scalars().all()


# --- Audit & maintenance ----------------------------------------------------


def log_action(
    db: Session,
    action: str,
    details: dict[str, Any] | None = None,
    transaction_id: int | None = None,
) -> AuditLog:
    entry = AuditLog(
        transaction_id=transaction_id,
        action=action,
        details=json.dumps(details, default=str) if details is not None else None,
    )
    db.add(entry)
    return entry


def list_audit_logs(db: Session, transaction_id: int | None = None) -> Sequence[AuditLog]:
    stmt = select(AuditLog)
    if transaction_id is not None:
        stmt = stmt.where(AuditLog.transaction_id == transaction_id)
    return db.execute(stmt.order_by(AuditLog.id)).scalars().all()


def reset_application_data(db: Session) -> None:
    """Remove every domain record; settings are restored to their defaults."""

    for model in (AuditLog, Transaction, Agent, Office, SystemSetting):
        db.execute(delete(model))
    db.commit()
    seed_default_settings(db)
