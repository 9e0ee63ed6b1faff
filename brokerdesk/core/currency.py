"""EUR/ALL conversion used for reporting across mixed-currency deals."""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

CURRENCY_ENUM = ("EUR", "ALL")

DEFAULT_EUR_TO_ALL = Decimal("97.3")


@dataclass(frozen=True)
class CurrencyRates:
    """Exchange rates between the two currencies the office trades in."""

    eur_to_all: Decimal = DEFAULT_EUR_TO_ALL

    def __post_init__(self) -> None:
        rate = Decimal(str(self.eur_to_all))
        if not rate.is_finite() or rate <= 0:
            raise ValueError("EUR to ALL rate must be a positive number.")
        object.__setattr__(self, "eur_to_all", rate)

    @property
    def all_to_eur(self) -> Decimal:
        return Decimal("1") / self.eur_to_all

    def to_eur(self, amount: Decimal, currency: str) -> Decimal:
        code = _normalize(currency)
        if code == "EUR":
            return amount
        return amount / self.eur_to_all

    def from_eur(self, amount: Decimal, currency: str) -> Decimal:
        code = _normalize(currency)
        if code == "EUR":
            return amount
        return amount * self.eur_to_all

    def convert(self, amount: Decimal, source: str, target: str) -> Decimal:
        if _normalize(source) == _normalize(target):
            return amount
        return self.from_eur(self.to_eur(amount, source), target)


def _normalize(currency: str) -> str:
    code = (currency or "").strip().upper()
    if code not in CURRENCY_ENUM:
        raise ValueError(f"Unsupported currency: {currency}")
    return code
