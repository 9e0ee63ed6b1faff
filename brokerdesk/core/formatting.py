"""Helpers for consistent user-facing money and date formatting."""
from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from typing import Any

from dateutil import parser as date_parser

DISPLAY_DATE_FORMAT = "%d/%m/%Y"
CURRENCY_SYMBOLS = {"EUR": "€", "ALL": "L"}


def coerce_date(value: Any) -> date | None:
    """Normalise date-like input (dates, datetimes, loose strings) to a date."""
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return date_parser.parse(text, dayfirst=False).date()
    except (ValueError, OverflowError):
        return None


def format_display_date(value: Any) -> str:
    """Format a value as dd/mm/yyyy or return an empty string."""
    coerced = coerce_date(value)
    if coerced is None:
        return "" if value in (None, "") else str(value)
    return coerced.strftime(DISPLAY_DATE_FORMAT)


def format_money(value: Any, currency: str | None = None) -> str:
    """Format numeric values with thousand separators and two decimals."""

    if value in (None, ""):
        decimal_value = Decimal("0")
    else:
        try:
            decimal_value = Decimal(str(value))
        except (InvalidOperation, TypeError, ValueError):
            return str(value)

    text = f"{decimal_value.quantize(Decimal('0.01')):,.2f}"
    if currency:
        symbol = CURRENCY_SYMBOLS.get(currency.upper(), currency.upper())
        return f"{symbol}{text}"
    return text


def start_of_day(value: date) -> datetime:
    return datetime.combine(value, time.min)


def end_of_day(value: date) -> datetime:
    return datetime.combine(value, time.max)


__all__ = [
    "coerce_date",
    "end_of_day",
    "format_display_date",
    "format_money",
    "start_of_day",
]
