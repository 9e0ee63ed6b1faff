from __future__ import annotations

from io import BytesIO
from typing import Iterable

import pandas as pd
from sqlalchemy.orm import Session

from brokerdesk.models import Agent, Office, Transaction

TRANSACTION_COLUMNS = [
    "transaction_id",
    "type",
    "status",
    "office",
    "primary_agent",
    "collaborating_agent",
    "property_ref",
    "client_ref",
    "currency",
    "gross_amount",
    "commission_rate",
    "commission_amount",
    "office_share",
    "primary_agent_share",
    "collaborating_agent_share",
    "close_date",
    "created_at",
]


def _money(value) -> float | None:
    return float(value) if value is not None else None


def _transactions_df(transactions: Iterable[Transaction]) -> pd.DataFrame:
    rows = []
    for item in transactions:
        rows.append(
            {
                "transaction_id": item.id,
                "type": item.type,
                "status": item.status,
                "office": item.office.name if getattr(item, "office", None) else None,
                "primary_agent": item.primary_agent.full_name if item.primary_agent else None,
                "collaborating_agent": item.collaborating_agent.full_name if item.collaborating_agent else None,
                "property_ref": item.property_ref,
                "client_ref": item.client_ref,
                "currency": item.currency,
                "gross_amount": _money(item.gross_amount),
                "commission_rate": float(item.commission_rate) if item.commission_rate is not None else None,
                "commission_amount": _money(item.commission_amount),
                "office_share": _money(item.office_share),
                "primary_agent_share": _money(item.primary_agent_share),
                "collaborating_agent_share": _money(item.collaborating_agent_share),
                "close_date": item.close_date,
                "created_at": item.created_at,
            }
        )
    return pd.DataFrame(rows, columns=TRANSACTION_COLUMNS)


def _agents_df(agents: Iterable[Agent]) -> pd.DataFrame:
    rows = []
    for item in agents:
        rows.append(
            {
                "agent_id": item.id,
                "office_id": item.office_id,
                "first_name": item.first_name,
                "last_name": item.last_name,
                "email": item.email,
                "role": item.role,
                "is_active": item.is_active,
            }
        )
    return pd.DataFrame(
        rows,
        columns=["agent_id", "office_id", "first_name", "last_name", "email", "role", "is_active"],
    )


def _offices_df(offices: Iterable[Office]) -> pd.DataFrame:
    rows = [
        {"office_id": item.id, "name": item.name, "city": item.city, "phone": item.phone}
        for item in offices
    ]
    return pd.DataFrame(rows, columns=["office_id", "name", "city", "phone"])


def _agent_totals_df(transactions_df: pd.DataFrame) -> pd.DataFrame:
    """Closed-deal share per agent and currency, whether primary or collaborating."""

    columns = ["agent", "currency", "deals", "share"]
    closed = transactions_df[transactions_df["status"] == "CLOSED"]
    if closed.empty:
        return pd.DataFrame(columns=columns)

    primary = closed[["primary_agent", "currency", "primary_agent_share"]].rename(
        columns={"primary_agent": "agent", "primary_agent_share": "share"}
    )
    collaborating = closed.loc[
        closed["collaborating_agent"].notna(),
        ["collaborating_agent", "currency", "collaborating_agent_share"],
    ].rename(columns={"collaborating_agent": "agent", "collaborating_agent_share": "share"})

    combined = pd.concat([primary, collaborating], ignore_index=True)
    totals = (
        combined.groupby(["agent", "currency"], as_index=False)
        .agg(deals=("share", "size"), share=("share", "sum"))
        .sort_values(["agent", "currency"])
        .reset_index(drop=True)
    )
    return totals[columns]


def export_transactions_workbook(db: Session) -> bytes:
    """Return an XLSX workbook (bytes) with transactions and their commission splits."""

    transactions = db.query(Transaction).order_by(Transaction.created_at, Transaction.id).all()
    agents = db.query(Agent).order_by(Agent.last_name, Agent.first_name).all()
    offices = db.query(Office).order_by(Office.name).all()

    df_transactions = _transactions_df(transactions)
    df_totals = _agent_totals_df(df_transactions)

    buffer = BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        df_transactions.to_excel(writer, sheet_name="Transactions", index=False)
        df_totals.to_excel(writer, sheet_name="AgentTotals", index=False)
        _agents_df(agents).to_excel(writer, sheet_name="Agents", index=False)
        _offices_df(offices).to_excel(writer, sheet_name="Offices", index=False)

    buffer.seek(0)
    return buffer.getvalue()
