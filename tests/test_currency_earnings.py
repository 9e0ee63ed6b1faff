from datetime import date
from decimal import Decimal

import pytest

from brokerdesk.core.commission import EarningsEntry, calculate_agent_earnings
from brokerdesk.core.currency import DEFAULT_EUR_TO_ALL, CurrencyRates
from brokerdesk.core.formatting import coerce_date, format_display_date, format_money


def test_default_rate_and_inverse():
    rates = CurrencyRates()
    assert rates.eur_to_all == DEFAULT_EUR_TO_ALL == Decimal("97.3")
    assert rates.all_to_eur == Decimal("1") / Decimal("97.3")


def test_conversions_between_eur_and_all():
    rates = CurrencyRates(eur_to_all="97.3")
    assert rates.to_eur(Decimal("973"), "ALL") == Decimal("10")
    assert rates.from_eur(Decimal("10"), "all") == Decimal("973.0")
    assert rates.to_eur(Decimal("10"), "EUR") == Decimal("10")
    assert rates.convert(Decimal("5"), "ALL", "ALL") == Decimal("5")


def test_round_trip_at_configured_rate():
    rates = CurrencyRates(eur_to_all=Decimal("100"))
    in_all = rates.convert(Decimal("250"), "EUR", "ALL")
    assert in_all == Decimal("25000")
    assert rates.convert(in_all, "ALL", "EUR") == Decimal("250")


@pytest.mark.parametrize("rate", [0, -1, "nan"])
def test_rate_must_be_positive(rate):
    with pytest.raises(ValueError):
        CurrencyRates(eur_to_all=rate)


def test_unknown_currency_is_rejected():
    with pytest.raises(ValueError, match="Unsupported currency"):
        CurrencyRates().to_eur(Decimal("1"), "USD")


def test_agent_earnings_sum_primary_and_collaborator_shares():
    entries = [
        EarningsEntry("SALE", "EUR", 1, None, Decimal("1875.00"), Decimal("0")),
        EarningsEntry("RENT", "ALL", 2, 1, Decimal("4865.00"), Decimal("9730.00")),
        # Not this agent's deal
        EarningsEntry("SALE", "EUR", 3, 4, Decimal("500.00"), Decimal("500.00")),
    ]

    earnings = calculate_agent_earnings(1, entries, CurrencyRates())

    assert earnings.transactions_counted == 2
    assert earnings.total_eur == Decimal("1975.00")
    assert earnings.total_all == Decimal("192167.50")
    assert earnings.by_type["sale"] == {"eur": Decimal("1875.00"), "all": Decimal("182437.50")}
    assert earnings.by_type["rent"] == {"eur": Decimal("100.00"), "all": Decimal("9730.00")}


def test_agent_earnings_empty():
    earnings = calculate_agent_earnings(7, [], CurrencyRates())
    assert earnings.total_eur == Decimal("0.00")
    assert earnings.total_all == Decimal("0.00")
    assert earnings.transactions_counted == 0
    assert set(earnings.by_type) == {"sale", "rent"}


def test_coerce_date_accepts_loose_input():
    assert coerce_date("2025-03-04") == date(2025, 3, 4)
    assert coerce_date("") is None
    assert coerce_date("2025-13-01") is None


def test_format_helpers():
    assert format_display_date(date(2025, 3, 4)) == "04/03/2025"
    assert format_money(Decimal("1234.5")) == "1,234.50"
    assert format_money(Decimal("5625"), "EUR") == "€5,625.00"
    assert format_money("187.5", "ALL") == "L187.50"
