"""Commission split rules shared between the API, reports and the CLI."""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple

from brokerdesk.core.currency import CurrencyRates

TRANSACTION_TYPES = ("SALE", "RENT")

DEFAULT_COMMISSION_RATES = {
    "SALE": Decimal("0.03"),
    # Half of one month's rent.
    "RENT": Decimal("0.5"),
}

OFFICE_BASE_FRACTION = Decimal("0.5")
AGENT_POOL_FRACTION = Decimal("0.5")
DEFAULT_SPLIT_RATIO = Decimal("0.5")

MONEY_QUANT = Decimal("0.01")


class CommissionError(ValueError):
    """Base class for commission calculation failures."""


class InvalidAmount(CommissionError):
    """Raised when a monetary input is negative or not a finite number."""


class InvalidSplitRatio(CommissionError):
    """Raised when a split ratio falls outside [0, 1]."""


@dataclass(frozen=True)
class CommissionSplit:
    """Allocation of a commission pool across the office and the agents."""

    commission_amount: Decimal
    office_share: Decimal
    primary_agent_share: Decimal
    collaborating_agent_share: Decimal

    @property
    def total(self) -> Decimal:
        return self.office_share + self.primary_agent_share + self.collaborating_agent_share

    def as_dict(self) -> dict[str, Decimal]:
        return {
            "commission_amount": self.commission_amount,
            "office_share": self.office_share,
            "primary_agent_share": self.primary_agent_share,
            "collaborating_agent_share": self.collaborating_agent_share,
        }


def to_money(value, *, field_name: str = "amount") -> Decimal:
    """Coerce a numeric input into a finite, non-negative Decimal.

    Floats go through ``str`` first so ``0.1`` stays ``Decimal("0.1")``.
    """

    if isinstance(value, bool):
        raise InvalidAmount(f"{field_name} must be a number, not a boolean.")
    if isinstance(value, Decimal):
        decimal_value = value
    else:
        try:
            decimal_value = Decimal(str(value).strip())
        except (InvalidOperation, AttributeError, TypeError, ValueError) as exc:
            raise InvalidAmount(f"{field_name} must be a number.") from exc
    if not decimal_value.is_finite():
        raise InvalidAmount(f"{field_name} must be a finite number.")
    if decimal_value < 0:
        raise InvalidAmount(f"{field_name} cannot be negative.")
    return decimal_value


def _quantize(value: Decimal) -> Decimal:
    return value.quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def round_money(value, *, field_name: str = "amount") -> Decimal:
    """Validate a monetary input and round it to the cent."""

    return _quantize(to_money(value, field_name=field_name))


def _normalize_ratio(split_ratio) -> Decimal:
    if split_ratio is None:
        return DEFAULT_SPLIT_RATIO
    try:
        ratio = Decimal(str(split_ratio))
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise InvalidSplitRatio("Split ratio must be a number between 0 and 1.") from exc
    if not ratio.is_finite() or ratio < 0 or ratio > 1:
        raise InvalidSplitRatio("Split ratio must be between 0 and 1.")
    return ratio


def calculate_split(commission_amount, has_collaborating_agent: bool, split_ratio=None) -> CommissionSplit:
    """Split a commission pool between the office and one or two agents.

    The office always keeps half of the pool. The other half is the agent pool:
    with a collaborating agent it is shared between the two agents (equally
    unless ``split_ratio`` says otherwise), and on a solo deal the office and
    the primary agent share it equally. Agent shares are rounded to the cent
    and the office share takes the residual, so the three shares always add up
    to ``commission_amount``.
    """

    amount = to_money(commission_amount, field_name="Commission amount")

    office_base = amount * OFFICE_BASE_FRACTION
    remaining = amount * AGENT_POOL_FRACTION

    if has_collaborating_agent:
        ratio = _normalize_ratio(split_ratio)
        primary = _quantize(remaining * ratio)
        collaborator = _quantize(remaining * (1 - ratio))
    else:
        primary = _quantize(remaining * Decimal("0.5"))
        collaborator = Decimal("0.00")

    office = amount - primary - collaborator
    if office < 0:  # pragma: no cover - unreachable with ratios in [0, 1]
        raise InvalidAmount("Commission amount is too small to split.")

    return CommissionSplit(
        commission_amount=amount,
        office_share=office,
        primary_agent_share=primary,
        collaborating_agent_share=collaborator,
    )


def calculate_bulk(inputs: Iterable[Tuple[object, bool]]) -> List[CommissionSplit]:
    """Split several commission pools, preserving input order."""

    return [calculate_split(amount, collaborating) for amount, collaborating in inputs]


def commission_rate_for(transaction_type: str, rates: Optional[Mapping[str, Decimal]] = None) -> Decimal:
    """Return the configured commission rate for SALE or RENT."""

    key = (transaction_type or "").upper()
    source = rates or DEFAULT_COMMISSION_RATES
    if key not in TRANSACTION_TYPES or key not in source:
        raise ValueError(f"Invalid transaction type: {transaction_type}")
    return Decimal(str(source[key]))


def compute_commission_amount(gross_amount, commission_rate) -> Decimal:
    """Total commission pool for a deal, rounded to the cent."""

    gross = to_money(gross_amount, field_name="Gross amount")
    rate = to_money(commission_rate, field_name="Commission rate")
    return _quantize(gross * rate)


@dataclass
class EarningsEntry:
    """One transaction as seen by the earnings report."""

    transaction_type: str
    currency: str
    primary_agent_id: Optional[int]
    collaborating_agent_id: Optional[int]
    primary_agent_share: Decimal
    collaborating_agent_share: Decimal


@dataclass
class AgentEarnings:
    agent_id: int
    total_eur: Decimal = Decimal("0")
    total_all: Decimal = Decimal("0")
    by_type: dict = field(default_factory=dict)
    transactions_counted: int = 0


def calculate_agent_earnings(
    agent_id: int,
    entries: Sequence[EarningsEntry],
    rates: CurrencyRates,
) -> AgentEarnings:
    """Sum an agent's persisted shares across transactions, in EUR and ALL."""

    totals = {kind: Decimal("0") for kind in TRANSACTION_TYPES}
    counted = 0
    for entry in entries:
        if entry.primary_agent_id == agent_id:
            share = entry.primary_agent_share
        elif entry.collaborating_agent_id == agent_id:
            share = entry.collaborating_agent_share
        else:
            continue
        counted += 1
        totals[entry.transaction_type.upper()] += rates.to_eur(Decimal(str(share or 0)), entry.currency)

    total_eur = sum(totals.values(), Decimal("0"))
    by_type = {
        kind.lower(): {
            "eur": _quantize(value),
            "all": _quantize(rates.from_eur(value, "ALL")),
        }
        for kind, value in totals.items()
    }
    return AgentEarnings(
        agent_id=agent_id,
        total_eur=_quantize(total_eur),
        total_all=_quantize(rates.from_eur(total_eur, "ALL")),
        by_type=by_type,
        transactions_counted=counted,
    )


__all__ = [
    "AgentEarnings",
    "CommissionError",
    "CommissionSplit",
    "DEFAULT_COMMISSION_RATES",
    "EarningsEntry",
    "InvalidAmount",
    "InvalidSplitRatio",
    "TRANSACTION_TYPES",
    "calculate_agent_earnings",
    "calculate_bulk",
    "calculate_split",
    "commission_rate_for",
    "compute_commission_amount",
    "round_money",
    "to_money",
]
