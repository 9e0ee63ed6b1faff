"""Application service layer."""
from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional

from sqlalchemy.orm import Session

from brokerdesk import crud
from brokerdesk.core.commission import (
    AgentEarnings,
    CommissionSplit,
    EarningsEntry,
    calculate_agent_earnings,
    calculate_split,
    commission_rate_for,
    compute_commission_amount,
    to_money,
)
from brokerdesk.models import Agent, Transaction
from brokerdesk.schemas import TransactionCreate, TransactionUpdate

logger = logging.getLogger(__name__)

RATE_QUANT = Decimal("0.000001")

# Editing any of these recomputes the split.
FINANCIAL_FIELDS = frozenset(
    {
        "type",
        "gross_amount",
        "commission_rate",
        "commission_amount",
        "collaborating_agent_id",
        "split_ratio",
    }
)


class WorkflowError(Exception):
    """A request that is well formed but not allowed in the current state."""


class TransactionService:
    """Coordinates transaction bookkeeping and commission splits."""

    def __init__(self, db: Session) -> None:
        self.db = db

    # -- commission -----------------------------------------------------------

    def resolve_commission(
        self,
        transaction_type: Optional[str],
        gross_amount: Optional[Decimal],
        commission_amount: Optional[Decimal],
    ) -> tuple[Optional[Decimal], Decimal]:
        """Return ``(commission_rate, commission_amount)`` for a deal.

        An explicit commission amount wins; otherwise it is derived from the
        gross amount and the configured rate for the transaction type.
        """

        if commission_amount is not None:
            amount = to_money(commission_amount, field_name="Commission amount")
            rate = None
            if gross_amount is not None and to_money(gross_amount, field_name="Gross amount") > 0:
                rate = (amount / Decimal(str(gross_amount))).quantize(RATE_QUANT, rounding=ROUND_HALF_UP)
            return rate, amount

        if transaction_type is None or gross_amount is None:
            raise WorkflowError("Provide a commission amount, or a transaction type and gross amount.")
        rate = commission_rate_for(transaction_type, crud.get_commission_rates(self.db))
        return rate, compute_commission_amount(gross_amount, rate)

    def preview_split(
        self,
        transaction_type: Optional[str],
        gross_amount: Optional[Decimal],
        commission_amount: Optional[Decimal],
        has_collaborating_agent: bool,
        split_ratio: Optional[Decimal] = None,
    ) -> tuple[Optional[Decimal], CommissionSplit]:
        rate, amount = self.resolve_commission(transaction_type, gross_amount, commission_amount)
        return rate, calculate_split(amount, has_collaborating_agent, split_ratio)

    # -- transactions ---------------------------------------------------------

    def _require_agent(self, agent_id: int, office_id: int, label: str) -> Agent:
        agent = crud.get_agent(self.db, agent_id)
        if agent is None or agent.office_id != office_id:
            raise WorkflowError(f"{label} not found in this office.")
        if not agent.is_active:
            raise WorkflowError(f"{label} is not active.")
        return agent

    def _check_agents(self, office_id: int, primary_agent_id: int, collaborating_agent_id: Optional[int]) -> None:
        self._require_agent(primary_agent_id, office_id, "Primary agent")
        if collaborating_agent_id is None:
            return
        if collaborating_agent_id == primary_agent_id:
            raise WorkflowError("Collaborating agent must differ from the primary agent.")
        self._require_agent(collaborating_agent_id, office_id, "Collaborating agent")

    def create_transaction(self, payload: TransactionCreate) -> Transaction:
        if crud.get_office(self.db, payload.office_id) is None:
            raise WorkflowError("Office not found.")
        self._check_agents(payload.office_id, payload.primary_agent_id, payload.collaborating_agent_id)

        rate, split = self.preview_split(
            payload.type,
            payload.gross_amount,
            payload.commission_amount,
            payload.collaborating_agent_id is not None,
            payload.split_ratio,
        )
        values = payload.model_dump(exclude={"commission_amount"})
        values.update(
            status="OPEN",
            commission_rate=rate if rate is not None else Decimal("0"),
            commission_amount=split.commission_amount,
            office_share=split.office_share,
            primary_agent_share=split.primary_agent_share,
            collaborating_agent_share=split.collaborating_agent_share,
        )
        transaction = crud.create_transaction(self.db, values)
        logger.info(
            "Created transaction %s: commission %s split office=%s primary=%s collaborator=%s",
            transaction.id,
            split.commission_amount,
            split.office_share,
            split.primary_agent_share,
            split.collaborating_agent_share,
        )
        return transaction

    def update_transaction(self, transaction: Transaction, payload: TransactionUpdate) -> Transaction:
        if transaction.status == "CLOSED":
            raise WorkflowError("Cannot update a closed transaction.")

        changes: dict[str, Any] = payload.model_dump(exclude_unset=True)
        if changes.get("type") is None:
            changes.pop("type", None)
        for required in ("primary_agent_id", "property_ref", "client_ref", "currency", "gross_amount"):
            if required in changes and changes[required] is None:
                raise WorkflowError(f"{required.replace('_', ' ').capitalize()} cannot be cleared.")

        primary_id = changes.get("primary_agent_id", transaction.primary_agent_id)
        collaborator_id = changes.get("collaborating_agent_id", transaction.collaborating_agent_id)
        if "primary_agent_id" in changes or "collaborating_agent_id" in changes:
            self._check_agents(transaction.office_id, primary_id, collaborator_id)

        if FINANCIAL_FIELDS & changes.keys():
            transaction_type = changes.get("type", transaction.type)
            gross_amount = changes.get("gross_amount", transaction.gross_amount)
            split_ratio = changes.get("split_ratio", transaction.split_ratio)
            rate_override = changes.pop("commission_rate", None)
            # A new gross amount, type or rate re-derives the commission unless one is sent.
            explicit = changes.get("commission_amount")
            if explicit is None and rate_override is not None:
                explicit = compute_commission_amount(gross_amount, rate_override)
            elif explicit is None and not ({"type", "gross_amount"} & changes.keys()):
                explicit = transaction.commission_amount
            rate, split = self.preview_split(
                transaction_type,
                gross_amount,
                explicit,
                collaborator_id is not None,
                split_ratio,
            )
            if rate_override is not None and changes.get("commission_amount") is None:
                rate = rate_override
            changes.update(
                commission_rate=rate if rate is not None else transaction.commission_rate,
                commission_amount=split.commission_amount,
                office_share=split.office_share,
                primary_agent_share=split.primary_agent_share,
                collaborating_agent_share=split.collaborating_agent_share,
            )
        else:
            changes.pop("commission_amount", None)

        return crud.update_transaction(self.db, transaction, changes)

    def change_status(self, transaction: Transaction, status: str) -> Transaction:
        changes: dict[str, Any] = {"status": status}
        if status == "CLOSED" and transaction.status != "CLOSED":
            changes["close_date"] = transaction.close_date or date.today()
        updated = crud.update_transaction(self.db, transaction, changes)
        logger.info("Transaction %s moved to %s", transaction.id, status)
        return updated

    def delete_transaction(self, transaction: Transaction) -> None:
        if transaction.status == "CLOSED":
            raise WorkflowError("Cannot delete a closed transaction.")
        crud.delete_transaction(self.db, transaction)

    # -- reports --------------------------------------------------------------

    def agent_earnings(
        self,
        agent: Agent,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> AgentEarnings:
        transactions = crud.list_agent_transactions(self.db, agent.id, start=start, end=end)
        entries = [
            EarningsEntry(
                transaction_type=item.type,
                currency=item.currency,
                primary_agent_id=item.primary_agent_id,
                collaborating_agent_id=item.collaborating_agent_id,
                primary_agent_share=Decimal(str(item.primary_agent_share)),
                collaborating_agent_share=Decimal(str(item.collaborating_agent_share or 0)),
            )
            for item in transactions
        ]
        return calculate_agent_earnings(agent.id, entries, crud.get_currency_rates(self.db))
